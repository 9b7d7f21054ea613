# clinicdesk/appointment_logic.py
"""
Appointment lifecycle.

Status moves None -> "in" -> "out" and never backwards. At most one appointment per
doctor is "in": moving one in flips the doctor's other "in" visits to "out" first
(read, bulk update, write; concurrent callers may briefly both see "in").
Visits scheduled in the future cannot be changed.
"""
import base64
import binascii
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from . import errors
from . import models as db_models
from . import schemas as api_schemas
from .auth import Principal
from .clock import day_bounds, local_now
from .database import atomic
from .identifiers import generate_unique_id
from .notifications import (
    Notifier, NEW_APPOINTMENT, APPOINTMENT_UPDATED, UPDATED_APPOINTMENT, PARAMETERS_UPDATED,
)

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_FEES = db_models.MAX_APPOINTMENT_FEES

IN = db_models.AppointmentStatus.IN.value
OUT = db_models.AppointmentStatus.OUT.value

DATA_URL_RE = re.compile(r"^data:(.+);base64,(.+)$", re.DOTALL)


def can_transition(current: Optional[str], target: str) -> bool:
    if current == OUT:
        return False
    if target == IN:
        return True
    if target == OUT:
        return current == IN
    return False


def status_rank():
    """Sort key for listings: in-progress visits first, then waiting, then finished."""
    return case(
        (db_models.Appointment.status.is_(None), 1),
        (db_models.Appointment.status == OUT, 2),
        else_=0,
    )


def tenant_patient_ids(tenant_id: int):
    return select(db_models.Patient.id).where(db_models.Patient.doctor_id == tenant_id)


async def get_tenant_appointment(session: AsyncSession, principal: Principal, appointment_id: int,
                                 with_patient: bool = False) -> db_models.Appointment:
    query = (
        select(db_models.Appointment)
        .join(db_models.Patient)
        .where(db_models.Appointment.id == appointment_id, db_models.Patient.doctor_id == principal.tenant_id)
    )
    if with_patient:
        query = query.options(selectinload(db_models.Appointment.patient))
    appointment = (await session.execute(query)).scalars().first()
    if not appointment:
        raise errors.NotFound("Appointment not found")
    return appointment


def add_to_fees(appointment: db_models.Appointment, amount: int) -> int:
    total = (appointment.fees or 0) + amount
    if total > MAX_APPOINTMENT_FEES:
        raise errors.ValidationError(f"Total fees cannot exceed {MAX_APPOINTMENT_FEES}")
    return total


def ensure_not_future(appointment: db_models.Appointment, now: datetime, action: str):
    if appointment.date > now:
        raise errors.FutureAppointmentError(f"Cannot {action} future appointments")


def appointment_payload(appointment: db_models.Appointment) -> Dict[str, Any]:
    return api_schemas.Appointment.model_validate(appointment).model_dump(mode="json")


# =========================================================================
# 1. VISIT MUTATIONS
# =========================================================================
async def add_extra_charges(session: AsyncSession, principal: Principal, appointment_id: int,
                            charges: int, now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now or local_now(), "add extra charges to")
    if charges is None or charges <= 0 or charges > MAX_APPOINTMENT_FEES:
        raise errors.ValidationError("Invalid charges")

    appointment.fees = add_to_fees(appointment, charges)
    await session.commit()
    logger.info("APPOINTMENT: %s extra charges %d -> fees %d", appointment.id, charges, appointment.fees)
    return appointment


async def add_parameters(session: AsyncSession, notifier: Notifier, principal: Principal,
                         appointment_id: int, parameters: Dict[str, Any],
                         now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now or local_now(), "add parameters to")

    appointment.parameters = parameters
    await session.commit()

    await notifier.publish(PARAMETERS_UPDATED, {
        "appointment_id": appointment.id,
        "parameters": parameters,
        "tenant_id": principal.tenant_id,
    })
    return appointment


async def add_payment_mode(session: AsyncSession, principal: Principal, appointment_id: int,
                           payment_mode: str, now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now or local_now(), "add payment mode to")
    if payment_mode not in {mode.value for mode in db_models.PaymentMode}:
        raise errors.ValidationError("Invalid payment mode")

    appointment.payment_mode = payment_mode
    await session.commit()
    return appointment


def decode_data_url(data_url: str):
    """'data:image/png;base64,AAAA' -> (b'...', 'image/png')"""
    match = DATA_URL_RE.match(data_url or "")
    if not match:
        raise errors.ValidationError("Invalid base64 image format")
    content_type, payload = match.groups()
    try:
        return base64.b64decode(payload, validate=True), content_type
    except (binascii.Error, ValueError) as e:
        raise errors.ValidationError("Invalid base64 image format") from e


async def add_document(session: AsyncSession, principal: Principal, appointment_id: int,
                       data_url: str, now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now or local_now(), "add prescription for")
    document, content_type = decode_data_url(data_url)

    appointment.document = document
    appointment.document_type = content_type
    await session.commit()
    return appointment


async def submit_prescription(session: AsyncSession, principal: Principal, appointment_id: int,
                              prescription: Any, now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now or local_now(), "submit prescription for")
    if not isinstance(prescription, list):
        raise errors.ValidationError("Prescription must be an array")

    appointment.prescription = prescription
    await session.commit()
    return appointment


def parse_fees(fees) -> Optional[int]:
    """Positive amount or None when not given. '50.7' counts as 50."""
    if fees is None or fees == "":
        return None
    try:
        value = float(fees)
    except (TypeError, ValueError):
        value = math.nan
    if not math.isfinite(value) or value <= 0:
        raise errors.ValidationError("Fees must be a valid number greater than 0")
    if value > MAX_APPOINTMENT_FEES:
        raise errors.ValidationError(f"Fees cannot exceed {MAX_APPOINTMENT_FEES}")
    return int(value)


async def submit_appointment(session: AsyncSession, notifier: Notifier, principal: Principal,
                             appointment_id: int, payload: api_schemas.SubmitAppointmentRequest,
                             now: Optional[datetime] = None) -> db_models.Appointment:
    """Close the visit: record notes, add the consultation fee once, move to "out"."""
    now = now or local_now()
    appointment = await get_tenant_appointment(session, principal, appointment_id)
    ensure_not_future(appointment, now, "submit")

    fees = parse_fees(payload.fees)
    if payload.follow_up is not None and payload.follow_up < now.date():
        raise errors.ValidationError("Follow-up date cannot be in the past")
    # Resubmitting a closed visit must not charge twice
    total_fees = add_to_fees(appointment, fees) if fees and appointment.status != OUT else appointment.fees

    sent = payload.model_fields_set
    for field in ("note", "follow_up", "investigation"):
        if field in sent:
            setattr(appointment, field, getattr(payload, field))

    appointment.fees = total_fees
    appointment.status = OUT
    await session.commit()
    logger.info("APPOINTMENT: %s submitted, fees %d", appointment.id, appointment.fees)

    await notifier.publish(UPDATED_APPOINTMENT, {
        "appointment": {
            "appointment_id": appointment.id,
            "fees": appointment.fees,
            "follow_up": appointment.follow_up,
            "note": appointment.note,
            "prescription": appointment.prescription,
        },
        "tenant_id": principal.tenant_id,
    })
    return appointment


# =========================================================================
# 2. STATUS TRANSITIONS
# =========================================================================
async def set_appointment_status(session: AsyncSession, notifier: Notifier, principal: Principal,
                                 appointment_id: int, status: str,
                                 now: Optional[datetime] = None) -> db_models.Appointment:
    appointment = await get_tenant_appointment(session, principal, appointment_id, with_patient=True)
    ensure_not_future(appointment, now or local_now(), "change status of")
    if status not in (IN, OUT):
        raise errors.ValidationError("Invalid status provided.")
    if not can_transition(appointment.status, status):
        if appointment.status == OUT:
            raise errors.InvalidTransition("Appointment is already out.")
        raise errors.InvalidTransition("Cannot set status to out if it's not set to in first.")

    if status == IN:
        # Only one visit per doctor can be in progress
        await session.execute(
            update(db_models.Appointment)
            .where(
                db_models.Appointment.status == IN,
                db_models.Appointment.id != appointment.id,
                db_models.Appointment.patient_id.in_(tenant_patient_ids(principal.tenant_id)),
            )
            .values(status=OUT)
            .execution_options(synchronize_session="fetch")
        )

    previous = appointment.status
    appointment.status = status
    await session.commit()
    logger.info("APPOINTMENT: %s status %s -> %s (tenant %s)", appointment.id, previous, status, principal.tenant_id)

    if status == IN:
        await notifier.publish(APPOINTMENT_UPDATED, {
            "appointment": appointment_payload(appointment),
            "tenant_id": principal.tenant_id,
        })
    return appointment


async def set_current_appointment(session: AsyncSession, notifier: Notifier, principal: Principal,
                                  appointment_id: int, now: Optional[datetime] = None) -> db_models.Appointment:
    return await set_appointment_status(session, notifier, principal, appointment_id, IN, now=now)


# =========================================================================
# 3. QUERIES
# =========================================================================
async def get_first_appointment(session: AsyncSession, principal: Principal,
                                now: Optional[datetime] = None) -> db_models.Appointment:
    """
    The visit to attend next. Doctors only see the one in progress; receptionists also
    see who is waiting. Falls back to an in-progress visit on any day.
    """
    start, end = day_bounds((now or local_now()).date())
    A = db_models.Appointment

    if principal.is_doctor:
        status_filter = A.status == IN
    else:
        status_filter = (A.status == IN) | A.status.is_(None)

    base = (
        select(A)
        .join(db_models.Patient)
        .where(db_models.Patient.doctor_id == principal.tenant_id)
        .options(selectinload(A.patient))
        .order_by(A.status.desc().nulls_last(), A.date.asc())
        .limit(1)
    )

    appointment = (await session.execute(base.where(A.date.between(start, end), status_filter))).scalars().first()
    if not appointment:
        appointment = (await session.execute(base.where(A.status == IN))).scalars().first()
    if not appointment:
        raise errors.NoAppointment()
    return appointment


async def list_todays_appointments(session: AsyncSession, principal: Principal,
                                   search_term: Optional[str] = None, day: Optional[date] = None,
                                   now: Optional[datetime] = None) -> List[db_models.Appointment]:
    start, end = day_bounds(day or (now or local_now()).date())
    A = db_models.Appointment

    query = (
        select(A)
        .join(db_models.Patient)
        .where(db_models.Patient.doctor_id == principal.tenant_id, A.date.between(start, end))
        .options(selectinload(A.patient))
        .order_by(status_rank().asc(), A.created_at.asc(), A.id.asc())
    )
    if search_term:
        query = query.where(db_models.Patient.name.icontains(search_term, autoescape=True))

    result = await session.execute(query)
    return list(result.scalars().all())


async def get_patient_appointments(session: AsyncSession, principal: Principal,
                                   patient_id: int) -> db_models.Patient:
    result = await session.execute(
        select(db_models.Patient)
        .where(db_models.Patient.id == patient_id, db_models.Patient.doctor_id == principal.tenant_id)
        .options(selectinload(db_models.Patient.appointments))
    )
    patient = result.scalars().first()
    if not patient:
        raise errors.NotFound("Patient not found")
    return patient


# =========================================================================
# 4. BOOKING
# =========================================================================
async def doctor_fee(session: AsyncSession, tenant_id: int) -> int:
    doctor = await session.get(db_models.Doctor, tenant_id)
    if not doctor:
        raise errors.NotFound("Doctor not found")
    return int(doctor.fees or 0)


async def announce_if_today(notifier: Notifier, principal: Principal, appointment: db_models.Appointment,
                            patient: db_models.Patient, now: datetime):
    start, end = day_bounds(now.date())
    if start <= appointment.date <= end:
        await notifier.publish(NEW_APPOINTMENT, {
            "appointment": appointment_payload(appointment),
            "patient": api_schemas.Patient.model_validate(patient).model_dump(mode="json"),
            "tenant_id": principal.tenant_id,
        })


async def register_patient(session: AsyncSession, notifier: Notifier, principal: Principal,
                           payload: api_schemas.PatientCreate, now: Optional[datetime] = None):
    """Create a patient and their first appointment together, or neither."""
    now = now or local_now()
    if payload.date < now:
        raise errors.ValidationError("Appointment date cannot be in the past")

    async with atomic(session):
        fees = await doctor_fee(session, principal.tenant_id)

        existing = await session.execute(
            select(db_models.Patient.id).where(
                db_models.Patient.doctor_id == principal.tenant_id,
                db_models.Patient.name == payload.name,
                db_models.Patient.mobile_number == payload.mobile_number,
            )
        )
        if existing.scalars().first():
            raise errors.Conflict("Patient already exists")

        patient = db_models.Patient(
            patient_id=await generate_unique_id(session, db_models.Patient.patient_id, payload.name),
            doctor_id=principal.tenant_id,
            **payload.model_dump(include={
                "name", "mobile_number", "address", "email", "date_of_birth", "blood_group", "gender",
            }),
        )
        session.add(patient)
        await session.flush()

        appointment = db_models.Appointment(
            patient_id=patient.id,
            reason=payload.reason,
            process=payload.process,
            date=payload.date,
            fees=fees,
        )
        session.add(appointment)

    await session.refresh(patient)
    await session.refresh(appointment)
    logger.info("PATIENT: Registered %s with appointment %s", patient.patient_id, appointment.id)
    await announce_if_today(notifier, principal, appointment, patient, now)
    return patient, appointment


async def book_appointment(session: AsyncSession, notifier: Notifier, principal: Principal,
                           patient_id: int, payload: api_schemas.AppointmentCreate,
                           now: Optional[datetime] = None):
    now = now or local_now()
    if payload.date < now:
        raise errors.ValidationError("Appointment date cannot be in the past")

    result = await session.execute(
        select(db_models.Patient).where(
            db_models.Patient.id == patient_id, db_models.Patient.doctor_id == principal.tenant_id,
        )
    )
    patient = result.scalars().first()
    if not patient:
        raise errors.NotFound("Patient not found")

    appointment = db_models.Appointment(
        patient_id=patient.id,
        reason=payload.reason,
        process=payload.process,
        date=payload.date,
        fees=await doctor_fee(session, principal.tenant_id),
    )
    session.add(appointment)
    await session.commit()
    await session.refresh(appointment)

    await announce_if_today(notifier, principal, appointment, patient, now)
    return patient, appointment
