from datetime import date, datetime
from typing import Optional, Tuple

from fastapi import APIRouter, Depends
from sqlalchemy import extract, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import models as db_models
from . import schemas as api_schemas
from .appointment_logic import tenant_patient_ids
from .auth import Principal, get_current_principal, require_doctor
from .clock import age_on, day_bounds, local_now, month_bounds, resolve_period
from .database import get_async_session
from .models import AppointmentStatus, Gender

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


def resolve_month(month: Optional[int], year: Optional[int]) -> Tuple[datetime, datetime]:
    year, month = resolve_period(month, year, local_now())
    return month_bounds(year, month)


def percentage(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


async def patients_registered_in(db: AsyncSession, tenant_id: int, start: datetime, end: datetime):
    result = await db.execute(
        select(db_models.Patient).where(
            db_models.Patient.doctor_id == tenant_id,
            db_models.Patient.created_at.between(start, end),
        )
    )
    return result.scalars().all()


# --- 1. TODAY ---
@router.get("/today-stats", response_model=api_schemas.TodayStats)
async def get_today_stats(principal: Principal = Depends(get_current_principal),
                          db: AsyncSession = Depends(get_async_session)):
    start, end = day_bounds(local_now().date())
    res = await db.execute(
        select(db_models.Appointment.status, func.count(db_models.Appointment.id))
        .where(
            db_models.Appointment.patient_id.in_(tenant_patient_ids(principal.tenant_id)),
            db_models.Appointment.date.between(start, end),
        )
        .group_by(db_models.Appointment.status)
    )
    counts = {appointment_status: count for appointment_status, count in res.all()}
    completed = counts.get(AppointmentStatus.IN.value, 0) + counts.get(AppointmentStatus.OUT.value, 0)
    pending = counts.get(None, 0)
    return {
        "total_appointments": sum(counts.values()),
        "total_completed_appointments": completed,
        "total_pending_appointments": pending,
    }


# --- 2. PATIENT DEMOGRAPHICS ---
@router.get("/age-groups", response_model=api_schemas.AgeGroups)
async def get_age_groups(month: Optional[int] = None, year: Optional[int] = None,
                         principal: Principal = Depends(require_doctor),
                         db: AsyncSession = Depends(get_async_session)):
    start, end = resolve_month(month, year)
    today = local_now().date()
    ages = [age_on(p.date_of_birth, today) for p in await patients_registered_in(db, principal.id, start, end)]
    ages = [age for age in ages if age is not None]
    return {
        "young_count": sum(1 for age in ages if age <= 17),
        "adult_count": sum(1 for age in ages if 18 <= age <= 49),
        "senior_count": sum(1 for age in ages if age >= 50),
    }


@router.get("/gender-percentages", response_model=api_schemas.GenderPercentages)
async def get_gender_percentages(month: Optional[int] = None, year: Optional[int] = None,
                                 principal: Principal = Depends(require_doctor),
                                 db: AsyncSession = Depends(get_async_session)):
    start, end = resolve_month(month, year)
    patients = await patients_registered_in(db, principal.id, start, end)
    total = len(patients)
    genders = [p.gender for p in patients]
    return {
        "male_percentage": percentage(genders.count(Gender.MALE.value), total),
        "female_percentage": percentage(genders.count(Gender.FEMALE.value), total),
        "other_percentage": percentage(genders.count(Gender.OTHER.value), total),
    }


# --- 3. REVENUE ---
@router.get("/revenue/monthly", response_model=api_schemas.MonthlyRevenue)
async def get_monthly_revenue(month: Optional[int] = None, year: Optional[int] = None,
                              principal: Principal = Depends(require_doctor),
                              db: AsyncSession = Depends(get_async_session)):
    start, end = resolve_month(month, year)
    res = await db.execute(
        select(func.coalesce(func.sum(db_models.Appointment.fees), 0)).where(
            db_models.Appointment.patient_id.in_(tenant_patient_ids(principal.id)),
            db_models.Appointment.date.between(start, end),
        )
    )
    return {"revenue": int(res.scalar_one())}


@router.get("/revenue/yearly", response_model=api_schemas.YearlyRevenue)
async def get_yearly_revenue(year: Optional[int] = None,
                             principal: Principal = Depends(require_doctor),
                             db: AsyncSession = Depends(get_async_session)):
    year, _ = resolve_period(None, year, local_now())
    start = datetime.combine(date(year, 1, 1), datetime.min.time())
    end = month_bounds(year, 12)[1]
    month_of = extract("month", db_models.Appointment.date)

    res = await db.execute(
        select(month_of, func.sum(db_models.Appointment.fees))
        .where(
            db_models.Appointment.patient_id.in_(tenant_patient_ids(principal.id)),
            db_models.Appointment.date.between(start, end),
        )
        .group_by(month_of)
        .order_by(month_of)
    )
    monthly_revenue = [0] * 12
    for month, revenue in res.all():
        monthly_revenue[int(month) - 1] = int(revenue or 0)
    return {"year": year, "monthly_revenue": monthly_revenue}
