"""Holiday calendar endpoints."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, require_permission
from backend.common.constants import HolidayType
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.holidays.schemas import HolidayCreate, HolidayResponse, HolidayUpdate
from backend.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])


@router.get("")
async def list_holidays(
    year: Optional[int] = Query(None, ge=1900, le=2100),
    type: Optional[HolidayType] = Query(None, alias="type"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    holidays = await HolidayService.list_holidays(db, year=year, holiday_type=type)
    return {"data": [HolidayResponse.model_validate(h) for h in holidays]}


@router.get("/{holiday_id}")
async def get_holiday(
    holiday_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    holiday = await HolidayService.get_holiday(db, holiday_id)
    return {"data": HolidayResponse.model_validate(holiday)}


@router.post("", status_code=201)
async def create_holiday(
    body: HolidayCreate,
    actor: Employee = Depends(require_permission("holiday:manage")),
    db: AsyncSession = Depends(get_db),
):
    holiday = await HolidayService.create_holiday(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Holiday created", "data": HolidayResponse.model_validate(holiday)}


@router.patch("/{holiday_id}")
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    actor: Employee = Depends(require_permission("holiday:manage")),
    db: AsyncSession = Depends(get_db),
):
    holiday = await HolidayService.update_holiday(db, holiday_id, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Holiday updated", "data": HolidayResponse.model_validate(holiday)}


@router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    actor: Employee = Depends(require_permission("holiday:manage")),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_holiday(db, holiday_id, actor_id=actor.id)
    await db.commit()
