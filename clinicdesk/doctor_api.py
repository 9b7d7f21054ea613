import logging
from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from . import accounts
from . import errors
from . import models as db_models
from . import schemas as api_schemas
from .auth import Principal, get_current_principal, get_token_principal, issue_token, require_doctor
from .database import atomic, get_async_session
from .identifiers import generate_unique_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["Doctors"])


async def get_doctor(db: AsyncSession, doctor_id: int) -> db_models.Doctor:
    doctor = await db.get(db_models.Doctor, doctor_id)
    if not doctor:
        raise errors.NotFound("Doctor not found")
    return doctor


def login_response(message: str, principal: Principal) -> dict:
    return {
        "message": message,
        "token": issue_token(principal),
        "role": principal.role.value,
        "tenant_id": principal.tenant_id,
        "accepted_terms": principal.accepted_terms,
    }


# --- Onboarding ---
@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=api_schemas.DoctorRegistered)
async def register_doctor(payload: api_schemas.DoctorRegister, db: AsyncSession = Depends(get_async_session)):
    async with atomic(db):
        if await accounts.email_taken(db, payload.email):
            raise errors.Conflict("Email is already registered with another user.")

        doctor = db_models.Doctor(
            doctor_id=await generate_unique_id(db, db_models.Doctor.doctor_id, payload.name),
            password_hash=accounts.hash_password(payload.password),
            **payload.model_dump(exclude={"password"}),
        )
        db.add(doctor)

    await db.refresh(doctor)
    logger.info("DOCTOR: Registered %s", doctor.doctor_id)
    return {"message": "Registration successful. Please login to continue.", "doctor": doctor}


@router.post("/login", response_model=api_schemas.LoginResponse)
async def login(payload: api_schemas.LoginRequest, db: AsyncSession = Depends(get_async_session)):
    """One login for both roles. The token names the clinic the caller works in."""
    account = await accounts.authenticate(db, payload.email, payload.password)
    principal = accounts.principal_for(account)
    logger.info("AUTH: %s %s logged in", principal.role.value, principal.id)
    return login_response("Login successful", principal)


@router.put("/accept-terms", response_model=api_schemas.LoginResponse)
async def accept_terms(principal: Principal = Depends(get_token_principal),
                       db: AsyncSession = Depends(get_async_session)):
    if not principal.is_doctor:
        raise errors.Unauthorized("Unauthorized request")
    doctor = await get_doctor(db, principal.id)
    doctor.accepted_terms = True
    await db.commit()
    return login_response("Terms and conditions accepted", accounts.principal_for(doctor))


@router.put("/change-password", response_model=api_schemas.Message)
async def change_password(payload: api_schemas.ChangePasswordRequest,
                          principal: Principal = Depends(get_current_principal),
                          db: AsyncSession = Depends(get_async_session)):
    await accounts.change_password(db, principal, payload.old_password, payload.new_password)
    return {"message": "Password changed successfully"}


# --- Profile ---
@router.get("/me", response_model=api_schemas.Doctor)
async def get_profile(principal: Principal = Depends(require_doctor),
                      db: AsyncSession = Depends(get_async_session)):
    return await get_doctor(db, principal.id)


@router.put("/me", response_model=api_schemas.Doctor)
async def edit_profile(payload: api_schemas.DoctorUpdate,
                       principal: Principal = Depends(require_doctor),
                       db: AsyncSession = Depends(get_async_session)):
    doctor = await get_doctor(db, principal.id)
    payload.apply_to(doctor)
    await db.commit()
    return doctor


@router.delete("/me", response_model=api_schemas.Message)
async def remove_doctor(principal: Principal = Depends(require_doctor),
                        db: AsyncSession = Depends(get_async_session)):
    """Delete the clinic: the doctor with every receptionist, patient, appointment and medicine."""
    async with atomic(db):
        doctor = await get_doctor(db, principal.id)
        await db.delete(doctor)
    logger.info("DOCTOR: Removed %s and their clinic", doctor.doctor_id)
    return {"message": "Doctor removed successfully"}


# --- Fees ---
@router.get("/fees")
async def get_fees(principal: Principal = Depends(get_current_principal),
                   db: AsyncSession = Depends(get_async_session)):
    doctor = await get_doctor(db, principal.tenant_id)
    return {"fees": float(doctor.fees) if doctor.fees is not None else None}


@router.put("/fees")
async def set_fees(payload: api_schemas.FeesRequest,
                   principal: Principal = Depends(require_doctor),
                   db: AsyncSession = Depends(get_async_session)):
    if payload.fees is None or payload.fees == "":
        raise errors.ValidationError("Fees cannot be empty")
    try:
        fees = Decimal(str(payload.fees))
        if fees.is_finite():
            fees = fees.quantize(Decimal("0.01"))
    except InvalidOperation as e:
        raise errors.ValidationError("Fees must be a valid number") from e
    if not fees.is_finite() or fees <= 0:
        raise errors.ValidationError("Fees must be a positive value")
    if fees > db_models.MAX_DOCTOR_FEES:
        raise errors.ValidationError(f"Fees cannot exceed {db_models.MAX_DOCTOR_FEES}")

    doctor = await get_doctor(db, principal.id)
    doctor.fees = fees
    await db.commit()
    logger.info("DOCTOR: %s fees set to %s", doctor.doctor_id, doctor.fees)
    return {"message": "Fees updated successfully!", "fees": float(doctor.fees)}


# --- Clinic hours ---
@router.get("/check-in-out-time", response_model=api_schemas.ClinicHours)
async def get_clinic_hours(principal: Principal = Depends(require_doctor),
                           db: AsyncSession = Depends(get_async_session)):
    return await get_doctor(db, principal.id)


@router.put("/check-in-out-time", response_model=api_schemas.ClinicHours)
async def set_clinic_hours(payload: api_schemas.ClinicHoursRequest,
                           principal: Principal = Depends(require_doctor),
                           db: AsyncSession = Depends(get_async_session)):
    if payload.check_in_time is None and payload.check_out_time is None:
        raise errors.ValidationError("Please provide at least one of check_in_time or check_out_time")

    doctor = await get_doctor(db, principal.id)
    if payload.check_in_time is not None:
        doctor.check_in_time = payload.check_in_time
    if payload.check_out_time is not None:
        doctor.check_out_time = payload.check_out_time
    await db.commit()
    return doctor
