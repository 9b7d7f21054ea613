# clinicdesk/identifiers.py
import logging
import random

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import errors
from .config import ID_GENERATION_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


def initials_of(name: str) -> str:
    return "".join(part[0] for part in name.split()).upper()


def candidate_id(name: str, rng=random) -> str:
    return f"{initials_of(name)}{rng.randint(10000, 99999)}"


async def generate_unique_id(
    session: AsyncSession,
    column,
    name: str,
    max_attempts: int = ID_GENERATION_MAX_ATTEMPTS,
    rng=random,
) -> str:
    """
    Human readable id like "JD48213" for `name`, unique in the table owning `column`
    (e.g. Patient.patient_id). Retries on collision up to max_attempts.
    """
    for attempt in range(1, max_attempts + 1):
        uid = candidate_id(name, rng)
        result = await session.execute(select(column).where(column == uid).limit(1))
        if result.scalar_one_or_none() is None:
            return uid
        logger.debug("IDS: Collision on %s (attempt %d).", uid, attempt)

    logger.error("IDS: Gave up after %d attempts for %s.", max_attempts, column)
    raise errors.GenerationExhausted(f"Could not generate a unique id after {max_attempts} attempts")
