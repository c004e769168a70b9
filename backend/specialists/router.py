"""Specialist roster endpoints."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, require_permission
from backend.common.constants import SpecialistStatus
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.specialists.schemas import (
    SpecialistCreate,
    SpecialistResponse,
    SpecialistUpdate,
)
from backend.specialists.service import SpecialistService

router = APIRouter(prefix="", tags=["specialists"])


def _out(specialist) -> dict:
    return SpecialistResponse.model_validate(specialist).model_dump(mode="json")


@router.get("")
async def list_specialists(
    status: Optional[SpecialistStatus] = Query(None),
    team: Optional[str] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    specialists = await SpecialistService.list_specialists(db, status=status, team=team)
    return {"data": [_out(s) for s in specialists]}


@router.get("/specialization/{specialization}")
async def by_specialization(
    specialization: str,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    specialists = await SpecialistService.by_specialization(db, specialization)
    return {"data": [_out(s) for s in specialists]}


@router.get("/employee/{employee_id}")
async def by_employee(
    employee_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _out(await SpecialistService.get_by_employee(db, employee_id))}


@router.get("/{specialist_id}")
async def get_specialist(
    specialist_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _out(await SpecialistService.get_specialist(db, specialist_id))}


@router.post("", status_code=201)
async def create_specialist(
    body: SpecialistCreate,
    actor: Employee = Depends(require_permission("specialist:manage")),
    db: AsyncSession = Depends(get_db),
):
    specialist = await SpecialistService.create_specialist(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Specialist created", "data": _out(specialist)}


@router.patch("/{specialist_id}")
async def update_specialist(
    specialist_id: uuid.UUID,
    body: SpecialistUpdate,
    actor: Employee = Depends(require_permission("specialist:manage")),
    db: AsyncSession = Depends(get_db),
):
    specialist = await SpecialistService.update_specialist(db, specialist_id, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Specialist updated", "data": _out(specialist)}


@router.post("/{specialist_id}/increment")
async def increment_load(
    specialist_id: uuid.UUID,
    actor: Employee = Depends(require_permission("specialist:manage")),
    db: AsyncSession = Depends(get_db),
):
    specialist = await SpecialistService.get_specialist(db, specialist_id)
    await SpecialistService.increment(db, specialist)
    await db.commit()
    return {"data": _out(specialist)}


@router.post("/{specialist_id}/decrement")
async def decrement_load(
    specialist_id: uuid.UUID,
    actor: Employee = Depends(require_permission("specialist:manage")),
    db: AsyncSession = Depends(get_db),
):
    specialist = await SpecialistService.get_specialist(db, specialist_id)
    await SpecialistService.decrement(db, specialist)
    await db.commit()
    return {"data": _out(specialist)}


@router.delete("/{specialist_id}", status_code=204)
async def delete_specialist(
    specialist_id: uuid.UUID,
    actor: Employee = Depends(require_permission("specialist:manage")),
    db: AsyncSession = Depends(get_db),
):
    await SpecialistService.delete_specialist(db, specialist_id, actor_id=actor.id)
    await db.commit()
