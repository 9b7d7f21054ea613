# clinicdesk/attendance_logic.py
import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import errors
from . import models as db_models
from .auth import Principal
from .clock import local_now, month_bounds, resolve_period, yesterday_end
from .config import DEFAULT_CHECK_IN_TIME

logger = logging.getLogger(__name__)

ON_TIME = "On Time"
LATE = "Late"
LEAVE = "Leave"
NO_TIME = "00:00:00"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


async def get_tenant_receptionist(session: AsyncSession, principal: Principal,
                                  receptionist_id: int) -> db_models.Receptionist:
    result = await session.execute(
        select(db_models.Receptionist).where(
            db_models.Receptionist.id == receptionist_id,
            db_models.Receptionist.doctor_id == principal.tenant_id,
        )
    )
    receptionist = result.scalars().first()
    if not receptionist:
        raise errors.NotFound("Receptionist not found")
    return receptionist


async def todays_attendance(session: AsyncSession, receptionist_id: int, today: date):
    result = await session.execute(
        select(db_models.Attendance).where(
            db_models.Attendance.receptionist_id == receptionist_id,
            db_models.Attendance.date == today,
        )
    )
    return result.scalars().first()


# =========================================================================
# 1. CHECK-IN / CHECK-OUT
# =========================================================================
async def check_in(session: AsyncSession, principal: Principal,
                   now: Optional[datetime] = None) -> db_models.Attendance:
    now = now or local_now()
    if await todays_attendance(session, principal.id, now.date()):
        raise errors.AlreadyCheckedIn()

    attendance = db_models.Attendance(receptionist_id=principal.id, date=now.date(), check_in_time=now)
    session.add(attendance)
    try:
        await session.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent check-in for the same day
        await session.rollback()
        raise errors.AlreadyCheckedIn() from e
    await session.refresh(attendance)

    logger.info("ATTENDANCE: Receptionist %s checked in at %s", principal.id, now)
    return attendance


async def check_out(session: AsyncSession, principal: Principal,
                    now: Optional[datetime] = None) -> db_models.Attendance:
    now = now or local_now()
    attendance = await todays_attendance(session, principal.id, now.date())
    if not attendance:
        raise errors.NoCheckInFound()
    if attendance.check_out_time:
        raise errors.AlreadyCheckedOut()

    attendance.check_out_time = now
    await session.commit()
    logger.info("ATTENDANCE: Receptionist %s checked out at %s", principal.id, now)
    return attendance


# =========================================================================
# 2. MONTHLY HISTORY
# =========================================================================
def reconstruct_days(records: Iterable[db_models.Attendance], first_day: date, last_day: date,
                     expected_check_in: time) -> List[Dict[str, str]]:
    """
    One entry per calendar day from first_day to last_day inclusive, oldest first.
    Days without a record become "Leave".
    """
    by_day = {record.check_in_time.date(): record for record in records}
    history = []
    day = first_day
    while day <= last_day:
        record = by_day.get(day)
        if record:
            late = record.check_in_time > datetime.combine(day, expected_check_in)
            history.append({
                "date": day.isoformat(),
                "check_in_time": record.check_in_time.strftime(TIMESTAMP_FORMAT),
                "check_out_time": (
                    record.check_out_time.strftime(TIMESTAMP_FORMAT) if record.check_out_time else NO_TIME
                ),
                "status": LATE if late else ON_TIME,
            })
        else:
            history.append({
                "date": day.isoformat(),
                "check_in_time": NO_TIME,
                "check_out_time": NO_TIME,
                "status": LEAVE,
            })
        day += timedelta(days=1)
    return history


async def attendance_history(session: AsyncSession, principal: Principal, receptionist_id: int,
                             month: Optional[int] = None, year: Optional[int] = None,
                             status: Optional[str] = None,
                             now: Optional[datetime] = None) -> List[Dict[str, str]]:
    """
    Day-by-day attendance of a receptionist for a month, latest day first.
    The current month stops at yesterday since today is still in progress.
    """
    now = now or local_now()
    year, month = resolve_period(month, year, now)

    receptionist = await get_tenant_receptionist(session, principal, receptionist_id)
    doctor = await session.get(db_models.Doctor, principal.tenant_id)
    expected_check_in = (doctor.check_in_time if doctor else None) or DEFAULT_CHECK_IN_TIME

    start, end = month_bounds(year, month)
    if (year, month) == (now.year, now.month):
        end = yesterday_end(now)
    if end < start:
        return []

    result = await session.execute(
        select(db_models.Attendance)
        .where(
            db_models.Attendance.receptionist_id == receptionist.id,
            db_models.Attendance.check_in_time.between(start, end),
        )
        .order_by(db_models.Attendance.check_in_time.asc())
    )
    history = reconstruct_days(result.scalars().all(), start.date(), end.date(), expected_check_in)

    if status:
        history = [entry for entry in history if entry["status"].lower() == status.lower()]
    history.reverse()
    return history


# =========================================================================
# 3. STATS
# =========================================================================
def average_time_of_day(moments: List[datetime]) -> Optional[str]:
    if not moments:
        return None
    seconds = sum(m.hour * 3600 + m.minute * 60 + m.second for m in moments) // len(moments)
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


async def attendance_stats(session: AsyncSession, principal: Principal, receptionist_id: int) -> dict:
    receptionist = await get_tenant_receptionist(session, principal, receptionist_id)
    result = await session.execute(
        select(db_models.Attendance).where(db_models.Attendance.receptionist_id == receptionist.id)
    )
    records = result.scalars().all()

    return {
        "total_attendance": len(records),
        "avg_check_in_time": average_time_of_day([r.check_in_time for r in records]),
        "avg_check_out_time": average_time_of_day([r.check_out_time for r in records if r.check_out_time]),
        "receptionist": receptionist,
    }
