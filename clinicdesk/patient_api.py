from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload, with_loader_criteria
from typing import List, Optional
from datetime import date

from . import errors
from . import appointment_logic
from . import models as db_models
from . import schemas as api_schemas
from .auth import Principal, get_current_principal, require_doctor, require_receptionist
from .clock import day_bounds, local_now
from .database import get_async_session
from .notifications import Notifier, get_notifier

router = APIRouter(prefix="/api/patients", tags=["Patients"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=api_schemas.NewPatientResponse)
async def create_patient(payload: api_schemas.PatientCreate,
                         principal: Principal = Depends(get_current_principal),
                         notifier: Notifier = Depends(get_notifier),
                         db: AsyncSession = Depends(get_async_session)):
    patient, appointment = await appointment_logic.register_patient(db, notifier, principal, payload)
    return {"message": "Patient added successfully", "appointment": appointment, "patient": patient}


@router.post("/{patient_id}/appointments", status_code=status.HTTP_201_CREATED,
             response_model=api_schemas.NewPatientResponse)
async def book_appointment(patient_id: int, payload: api_schemas.AppointmentCreate,
                           principal: Principal = Depends(require_receptionist),
                           notifier: Notifier = Depends(get_notifier),
                           db: AsyncSession = Depends(get_async_session)):
    patient, appointment = await appointment_logic.book_appointment(db, notifier, principal, patient_id, payload)
    return {"message": "Appointment booked successfully", "appointment": appointment, "patient": patient}


@router.get("", response_model=List[api_schemas.PatientWithAppointments])
async def get_patients(day: Optional[date] = Query(None, alias="date"), search_term: Optional[str] = None,
                       principal: Principal = Depends(get_current_principal),
                       db: AsyncSession = Depends(get_async_session)):
    """Patients with an appointment on the given day (today by default), with those appointments."""
    start, end = day_bounds(day or local_now().date())
    in_range = db_models.Appointment.date.between(start, end)

    query = (
        select(db_models.Patient)
        .join(db_models.Appointment)
        .where(db_models.Patient.doctor_id == principal.tenant_id, in_range)
        .options(
            selectinload(db_models.Patient.appointments),
            with_loader_criteria(db_models.Appointment, in_range),
        )
        .distinct()
        .order_by(db_models.Patient.name)
    )
    if search_term:
        query = query.where(db_models.Patient.name.icontains(search_term, autoescape=True))

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/search", response_model=List[api_schemas.PatientBrief])
async def search_patients(search_term: Optional[str] = None,
                          principal: Principal = Depends(require_receptionist),
                          db: AsyncSession = Depends(get_async_session)):
    query = select(db_models.Patient).where(db_models.Patient.doctor_id == principal.tenant_id)
    if search_term:
        query = query.where(or_(
            db_models.Patient.name.icontains(search_term, autoescape=True),
            db_models.Patient.mobile_number.contains(search_term, autoescape=True),
        ))
    result = await db.execute(query.order_by(db_models.Patient.name))
    return result.scalars().all()


@router.put("/{patient_id}/toxicity", response_model=api_schemas.Patient)
async def toggle_toxicity(patient_id: int,
                          principal: Principal = Depends(require_doctor),
                          db: AsyncSession = Depends(get_async_session)):
    result = await db.execute(
        select(db_models.Patient).where(
            db_models.Patient.id == patient_id, db_models.Patient.doctor_id == principal.tenant_id,
        )
    )
    patient = result.scalars().first()
    if not patient:
        raise errors.NotFound("Patient not found")

    patient.toxicity = not patient.toxicity
    await db.commit()
    return patient
