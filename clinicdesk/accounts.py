# clinicdesk/accounts.py
"""
Credentials for doctors and receptionists.

Both roles log in through one endpoint with their email, so an email belongs to at
most one account across the two tables. Passwords are stored as bcrypt hashes.
"""
import logging
from typing import Optional, Union

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import errors
from . import models as db_models
from .auth import Principal
from .config import BCRYPT_ROUNDS
from .models import Role

logger = logging.getLogger(__name__)

Account = Union[db_models.Doctor, db_models.Receptionist]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("AUTH: Stored password hash is malformed.")
        return False


async def email_taken(db: AsyncSession, email: str) -> bool:
    for model in (db_models.Doctor, db_models.Receptionist):
        result = await db.execute(select(model.id).where(model.email == email))
        if result.scalars().first():
            return True
    return False


def principal_for(account: Account) -> Principal:
    if isinstance(account, db_models.Doctor):
        return Principal(id=account.id, role=Role.DOCTOR, tenant_id=account.id,
                         accepted_terms=bool(account.accepted_terms))
    return Principal(id=account.id, role=Role.RECEPTIONIST, tenant_id=account.doctor_id)


async def find_account(db: AsyncSession, email: str) -> Optional[Account]:
    """Doctors are looked up first, then receptionists."""
    for model in (db_models.Doctor, db_models.Receptionist):
        result = await db.execute(select(model).where(model.email == email))
        account = result.scalars().first()
        if account:
            return account
    return None


async def load_account(db: AsyncSession, principal: Principal) -> Account:
    model = db_models.Doctor if principal.is_doctor else db_models.Receptionist
    account = await db.get(model, principal.id)
    if not account:
        raise errors.NotFound("User not found")
    return account


async def authenticate(db: AsyncSession, email: str, password: str) -> Account:
    account = await find_account(db, email)
    if not account:
        raise errors.NotFound("User not found")
    if not verify_password(password, account.password_hash):
        logger.info("AUTH: Failed login for %s", email)
        raise errors.Unauthorized("Invalid credentials")
    return account


async def change_password(db: AsyncSession, principal: Principal, old_password: str, new_password: str):
    account = await load_account(db, principal)
    if not verify_password(old_password, account.password_hash):
        raise errors.Unauthorized("Old password is incorrect")
    account.password_hash = hash_password(new_password)
    await db.commit()
    logger.info("AUTH: Password changed for %s %s", principal.role.value, principal.id)
