from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List, Optional

from . import errors
from . import models as db_models
from . import schemas as api_schemas
from .auth import Principal, get_current_principal, require_receptionist
from .database import get_async_session

router = APIRouter(prefix="/api/medicines", tags=["Medicines"])


async def find_duplicate(db: AsyncSession, tenant_id: int, name, strength, form, brand, exclude_id=None):
    query = select(db_models.Medicine.id).where(
        db_models.Medicine.doctor_id == tenant_id,
        db_models.Medicine.name == name,
        db_models.Medicine.strength == strength,
        db_models.Medicine.form == form,
        db_models.Medicine.brand == brand,
    )
    if exclude_id is not None:
        query = query.where(db_models.Medicine.id != exclude_id)
    return (await db.execute(query)).scalars().first()


async def get_tenant_medicine(db: AsyncSession, principal: Principal, medicine_id: int) -> db_models.Medicine:
    res = await db.execute(select(db_models.Medicine).where(
        db_models.Medicine.id == medicine_id, db_models.Medicine.doctor_id == principal.tenant_id,
    ))
    medicine = res.scalars().first()
    if not medicine:
        raise errors.NotFound("Medicine not found")
    return medicine


@router.post("", status_code=status.HTTP_201_CREATED, response_model=api_schemas.Medicine)
async def add_medicine(payload: api_schemas.MedicineCreate,
                       principal: Principal = Depends(require_receptionist),
                       db: AsyncSession = Depends(get_async_session)):
    if await find_duplicate(db, principal.tenant_id, payload.name, payload.strength, payload.form, payload.brand):
        raise errors.Conflict("Medicine with same specifications already exists")

    medicine = db_models.Medicine(doctor_id=principal.tenant_id, **payload.model_dump())
    db.add(medicine)
    await db.commit()
    await db.refresh(medicine)
    return medicine


@router.get("", response_model=List[api_schemas.Medicine])
async def get_medicines(search_term: Optional[str] = None,
                        principal: Principal = Depends(get_current_principal),
                        db: AsyncSession = Depends(get_async_session)):
    query = select(db_models.Medicine).where(db_models.Medicine.doctor_id == principal.tenant_id)
    if search_term:
        query = query.where(db_models.Medicine.name.icontains(search_term, autoescape=True))
    res = await db.execute(query.order_by(db_models.Medicine.name.asc()))
    return res.scalars().all()


@router.put("/{medicine_id}", response_model=api_schemas.Medicine)
async def edit_medicine(medicine_id: int, payload: api_schemas.MedicineUpdate,
                        principal: Principal = Depends(require_receptionist),
                        db: AsyncSession = Depends(get_async_session)):
    medicine = await get_tenant_medicine(db, principal, medicine_id)
    changes = payload.model_dump(exclude_unset=True)
    merged = {field: changes.get(field, getattr(medicine, field)) for field in ("name", "strength", "form", "brand")}
    if await find_duplicate(db, principal.tenant_id, exclude_id=medicine.id, **merged):
        raise errors.Conflict("Medicine with same specifications already exists")

    payload.apply_to(medicine)
    await db.commit()
    return medicine


@router.delete("/{medicine_id}", response_model=api_schemas.Message)
async def delete_medicine(medicine_id: int,
                          principal: Principal = Depends(require_receptionist),
                          db: AsyncSession = Depends(get_async_session)):
    medicine = await get_tenant_medicine(db, principal, medicine_id)
    await db.delete(medicine)
    await db.commit()
    return {"message": "Medicine deleted successfully"}
