import base64
import binascii
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from . import accounts
from . import attendance_logic
from . import errors
from . import models as db_models
from . import schemas as api_schemas
from .auth import Principal, get_current_principal, require_doctor, require_receptionist
from .clock import local_now
from .database import atomic, get_async_session
from .identifiers import generate_unique_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/receptionists", tags=["Receptionists"])


def decode_documents(uploads: List[api_schemas.DocumentUpload], receptionist_id: int = None):
    documents = []
    for upload in uploads:
        try:
            content = base64.b64decode(upload.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise errors.ValidationError("Documents must be base64 encoded") from e
        documents.append(db_models.ReceptionistDocument(
            receptionist_id=receptionist_id, document=content, content_type=upload.content_type,
        ))
    return documents


async def load_receptionist_detail(db: AsyncSession, receptionist_id: int) -> db_models.Receptionist:
    result = await db.execute(
        select(db_models.Receptionist)
        .where(db_models.Receptionist.id == receptionist_id)
        .options(selectinload(db_models.Receptionist.documents))
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


# =========================================================================
# 1. MANAGEMENT (doctor)
# =========================================================================
@router.post("", status_code=status.HTTP_201_CREATED, response_model=api_schemas.ReceptionistDetail)
async def add_receptionist(payload: api_schemas.ReceptionistCreate,
                           principal: Principal = Depends(require_doctor),
                           db: AsyncSession = Depends(get_async_session)):
    """Create a receptionist and their documents together, or neither."""
    documents = decode_documents(payload.documents)

    async with atomic(db):
        if await accounts.email_taken(db, payload.email):
            raise errors.Conflict("Email is already registered with another user.")

        receptionist = db_models.Receptionist(
            receptionist_id=await generate_unique_id(db, db_models.Receptionist.receptionist_id, payload.name),
            doctor_id=principal.tenant_id,
            password_hash=accounts.hash_password(payload.password),
            **payload.model_dump(exclude={"documents", "password"}),
        )
        db.add(receptionist)
        await db.flush()

        for document in documents:
            document.receptionist_id = receptionist.id
            db.add(document)

    logger.info("RECEPTIONIST: Added %s for doctor %s", receptionist.receptionist_id, principal.tenant_id)
    return await load_receptionist_detail(db, receptionist.id)


@router.put("/{receptionist_id}", response_model=api_schemas.ReceptionistDetail)
async def edit_receptionist(receptionist_id: int, payload: api_schemas.ReceptionistUpdate,
                            principal: Principal = Depends(require_doctor),
                            db: AsyncSession = Depends(get_async_session)):
    receptionist = await attendance_logic.get_tenant_receptionist(db, principal, receptionist_id)
    documents = decode_documents(payload.documents, receptionist.id) if payload.documents else []

    async with atomic(db):
        payload.apply_to(receptionist, exclude={"documents"})
        if documents:
            await db.execute(
                delete(db_models.ReceptionistDocument)
                .where(db_models.ReceptionistDocument.receptionist_id == receptionist.id)
            )
            db.add_all(documents)

    return await load_receptionist_detail(db, receptionist.id)


@router.delete("/{receptionist_id}", response_model=api_schemas.Message)
async def remove_receptionist(receptionist_id: int,
                              principal: Principal = Depends(require_doctor),
                              db: AsyncSession = Depends(get_async_session)):
    receptionist = await attendance_logic.get_tenant_receptionist(db, principal, receptionist_id)
    async with atomic(db):
        await db.delete(receptionist)
    logger.info("RECEPTIONIST: Removed %s", receptionist.receptionist_id)
    return {"message": "Receptionist removed successfully!"}


@router.get("", response_model=List[api_schemas.ReceptionistListItem])
async def list_receptionists(principal: Principal = Depends(require_doctor),
                             db: AsyncSession = Depends(get_async_session)):
    today = local_now().date()
    res = await db.execute(
        select(db_models.Receptionist, db_models.Attendance.id)
        .outerjoin(
            db_models.Attendance,
            (db_models.Attendance.receptionist_id == db_models.Receptionist.id)
            & (db_models.Attendance.date == today),
        )
        .where(db_models.Receptionist.doctor_id == principal.tenant_id)
        .order_by(db_models.Receptionist.name)
    )
    return [{
        "id": r.id,
        "receptionist_id": r.receptionist_id,
        "name": r.name,
        "date_of_joining": r.date_of_joining,
        "availability_status": "Available" if attendance_id else "Not Available",
    } for r, attendance_id in res.all()]


@router.get("/me")
async def get_me(principal: Principal = Depends(get_current_principal),
                 db: AsyncSession = Depends(get_async_session)):
    """Profile of the caller; receptionists also get their clinic name and today's attendance."""
    if principal.is_doctor:
        doctor = await db.get(db_models.Doctor, principal.id)
        if not doctor:
            raise errors.NotFound("Doctor not found")
        return {"role": principal.role.value, "doctor": api_schemas.Doctor.model_validate(doctor)}

    result = await db.execute(
        select(db_models.Receptionist)
        .where(db_models.Receptionist.id == principal.id)
        .options(selectinload(db_models.Receptionist.documents), selectinload(db_models.Receptionist.doctor))
    )
    receptionist = result.scalars().first()
    if not receptionist:
        raise errors.NotFound("Receptionist not found")
    attendance = await attendance_logic.todays_attendance(db, receptionist.id, local_now().date())
    return {
        "role": principal.role.value,
        "receptionist": api_schemas.ReceptionistDetail.model_validate(receptionist),
        "clinic_name": receptionist.doctor.clinic_name,
        "attendance": api_schemas.Attendance.model_validate(attendance) if attendance else None,
    }


@router.get("/{receptionist_id}", response_model=api_schemas.ReceptionistDetail)
async def get_receptionist(receptionist_id: int,
                           principal: Principal = Depends(get_current_principal),
                           db: AsyncSession = Depends(get_async_session)):
    receptionist = await attendance_logic.get_tenant_receptionist(db, principal, receptionist_id)
    return await load_receptionist_detail(db, receptionist.id)


# =========================================================================
# 2. ATTENDANCE
# =========================================================================
@router.post("/check-in", response_model=api_schemas.Attendance)
async def check_in(principal: Principal = Depends(require_receptionist),
                   db: AsyncSession = Depends(get_async_session)):
    return await attendance_logic.check_in(db, principal)


@router.post("/check-out", response_model=api_schemas.Attendance)
async def check_out(principal: Principal = Depends(require_receptionist),
                    db: AsyncSession = Depends(get_async_session)):
    return await attendance_logic.check_out(db, principal)


@router.get("/{receptionist_id}/attendance-stats", response_model=api_schemas.AttendanceStats)
async def get_attendance_stats(receptionist_id: int,
                               principal: Principal = Depends(get_current_principal),
                               db: AsyncSession = Depends(get_async_session)):
    return await attendance_logic.attendance_stats(db, principal, receptionist_id)


@router.get("/{receptionist_id}/attendance-history", response_model=api_schemas.AttendanceHistory)
async def get_attendance_history(receptionist_id: int, month: Optional[int] = None, year: Optional[int] = None,
                                 status: Optional[str] = None,
                                 principal: Principal = Depends(require_doctor),
                                 db: AsyncSession = Depends(get_async_session)):
    history = await attendance_logic.attendance_history(
        db, principal, receptionist_id, month=month, year=year, status=status,
    )
    return {"attendance_history": history}
