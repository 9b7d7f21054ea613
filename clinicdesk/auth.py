# clinicdesk/auth.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header

from . import errors
from .config import JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_TTL_MINUTES
from .models import Role


@dataclass(frozen=True)
class Principal:
    """
    The caller of a request. tenant_id is the id of the doctor whose clinic is acted on.
    accepted_terms only gates doctors; receptionists carry True.
    """
    id: int
    role: Role
    tenant_id: int
    accepted_terms: bool = True

    @property
    def is_doctor(self) -> bool:
        return self.role == Role.DOCTOR


def issue_token(principal: Principal, ttl_minutes: int = ACCESS_TOKEN_TTL_MINUTES) -> str:
    claims = {
        "sub": str(principal.id),
        "role": principal.role.value,
        "tenant_id": principal.tenant_id,
        "accepted_terms": principal.accepted_terms,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Principal:
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return Principal(
            id=int(claims["sub"]),
            role=Role(claims["role"]),
            tenant_id=int(claims["tenant_id"]),
            accepted_terms=bool(claims.get("accepted_terms", False)),
        )
    except jwt.PyJWTError as e:
        raise errors.Unauthorized("Invalid or expired token, please login again.") from e
    except (KeyError, ValueError) as e:
        raise errors.Unauthorized("Malformed token claims.") from e


async def get_token_principal(authorization: Optional[str] = Header(None)) -> Principal:
    """Whoever holds a valid token, whether or not they accepted the terms."""
    if not authorization:
        raise errors.Unauthorized("Access denied. No token provided.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise errors.Unauthorized("Access denied. Expected a bearer token.")
    return decode_token(token)


async def get_current_principal(principal: Principal = Depends(get_token_principal)) -> Principal:
    if principal.is_doctor and not principal.accepted_terms:
        raise errors.TermsNotAccepted()
    return principal


def require_role(*roles: Role):
    """Dependency factory: only principals holding one of `roles` pass."""
    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise errors.Unauthorized("Unauthorized request")
        return principal
    return checker


require_doctor = require_role(Role.DOCTOR)
require_receptionist = require_role(Role.RECEPTIONIST)
