# clinicdesk/clock.py
import calendar
from datetime import MAXYEAR, MINYEAR, date, datetime, time, timedelta
from typing import Optional, Tuple

from . import errors
from .config import SERVER_TIMEZONE


def local_now() -> datetime:
    """Current clinic wall-clock time (naive, in SERVER_TIMEZONE)."""
    return datetime.now(SERVER_TIMEZONE).replace(tzinfo=None)


def as_local(moment: datetime) -> datetime:
    """Aware datetimes are converted to clinic wall-clock time; naive ones are taken as already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(SERVER_TIMEZONE).replace(tzinfo=None)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return (
        datetime.combine(date(year, month, 1), time.min),
        datetime.combine(date(year, month, last_day), time.max),
    )


def age_on(date_of_birth: Optional[date], today: date) -> Optional[int]:
    """Whole years between date_of_birth and today; None without a birth date."""
    if date_of_birth is None:
        return None
    if isinstance(date_of_birth, datetime):
        date_of_birth = date_of_birth.date()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def yesterday_end(now: datetime) -> datetime:
    return datetime.combine(now.date() - timedelta(days=1), time.max)


def resolve_period(month: Optional[int], year: Optional[int], now: datetime) -> Tuple[int, int]:
    """(year, month) for a report, defaulting to the current month. Zero is not a default."""
    year = now.year if year is None else year
    month = now.month if month is None else month
    if not MINYEAR <= year <= MAXYEAR:
        raise errors.ValidationError(f"Year must be between {MINYEAR} and {MAXYEAR}")
    if not 1 <= month <= 12:
        raise errors.ValidationError("Month must be between 1 and 12")
    return year, month
