from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

from .database import get_async_session
from . import appointment_logic
from . import schemas as api_schemas
from .auth import Principal, get_current_principal, require_doctor
from .notifications import Notifier, get_notifier

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])


# =========================================================================
# 1. VISIT DETAILS
# =========================================================================
@router.post("/extra-charges/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def add_extra_charges(appt_id: int, payload: api_schemas.ExtraChargesRequest,
                            principal: Principal = Depends(get_current_principal),
                            session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.add_extra_charges(session, principal, appt_id, payload.charges)
    return {"message": "Extra charges added successfully", "appointment": appt}


@router.post("/payment-mode/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def add_payment_mode(appt_id: int, payload: api_schemas.PaymentModeRequest,
                           principal: Principal = Depends(get_current_principal),
                           session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.add_payment_mode(session, principal, appt_id, payload.payment_mode)
    return {"message": "Payment mode updated successfully", "appointment": appt}


@router.put("/parameters/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def add_parameters(appt_id: int, payload: api_schemas.ParametersRequest,
                         principal: Principal = Depends(get_current_principal),
                         notifier: Notifier = Depends(get_notifier),
                         session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.add_parameters(session, notifier, principal, appt_id, payload.parameters)
    return {"message": "Parameters added successfully", "appointment": appt}


@router.post("/prescription/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def add_prescription_document(appt_id: int, payload: api_schemas.DocumentRequest,
                                    principal: Principal = Depends(get_current_principal),
                                    session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.add_document(session, principal, appt_id, payload.base64_image)
    return {"message": "Prescription added successfully", "appointment": appt}


@router.post("/submit-prescription/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def submit_prescription(appt_id: int, payload: api_schemas.PrescriptionRequest,
                              principal: Principal = Depends(require_doctor),
                              session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.submit_prescription(session, principal, appt_id, payload.prescription)
    return {"message": "Prescription submitted successfully", "appointment": appt}


@router.put("/submit-appointment/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def submit_appointment(appt_id: int, payload: api_schemas.SubmitAppointmentRequest,
                             principal: Principal = Depends(get_current_principal),
                             notifier: Notifier = Depends(get_notifier),
                             session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.submit_appointment(session, notifier, principal, appt_id, payload)
    return {"message": "Appointment submitted successfully", "appointment": appt}


# =========================================================================
# 2. STATUS
# =========================================================================
@router.put("/set-current-appointment/{appt_id}", response_model=api_schemas.AppointmentEnvelope)
async def set_appointment_status(appt_id: int, payload: api_schemas.StatusRequest,
                                 principal: Principal = Depends(get_current_principal),
                                 notifier: Notifier = Depends(get_notifier),
                                 session: AsyncSession = Depends(get_async_session)):
    appt = await appointment_logic.set_appointment_status(session, notifier, principal, appt_id, payload.status)
    return {"message": f"Appointment status updated to {payload.status}.", "appointment": appt}


@router.get("/current-appointment", response_model=api_schemas.AppointmentWithPatient)
async def get_current_appointment(principal: Principal = Depends(get_current_principal),
                                  session: AsyncSession = Depends(get_async_session)):
    return await appointment_logic.get_first_appointment(session, principal)


# =========================================================================
# 3. LISTINGS
# =========================================================================
@router.get("/todays-appointments", response_model=List[api_schemas.AppointmentWithPatient])
async def get_todays_appointments(search_term: Optional[str] = None,
                                  day: Optional[date] = Query(None, alias="date"),
                                  principal: Principal = Depends(get_current_principal),
                                  session: AsyncSession = Depends(get_async_session)):
    return await appointment_logic.list_todays_appointments(session, principal, search_term=search_term, day=day)


@router.get("/patient-appointments/{patient_id}", response_model=api_schemas.PatientWithAppointments)
async def get_patient_appointments(patient_id: int,
                                   principal: Principal = Depends(require_doctor),
                                   session: AsyncSession = Depends(get_async_session)):
    return await appointment_logic.get_patient_appointments(session, principal, patient_id)
