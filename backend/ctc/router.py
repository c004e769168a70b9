"""CTC master endpoints — finance_admin, hr and super_admin only."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import require_permission
from backend.common.constants import Currency
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.ctc.schemas import CTCCreate, CTCResponse, CTCUpdate
from backend.ctc.service import CTCService
from backend.database import get_db

router = APIRouter(prefix="", tags=["ctc"])


def _out(record) -> dict:
    return CTCResponse.model_validate(record).model_dump(mode="json")


@router.get("")
async def list_records(
    search: Optional[str] = Query(None, description="Employee code, name or email"),
    currency: Optional[Currency] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(require_permission("ctc:read")),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await CTCService.list_records(db, pagination, search=search, currency=currency)
    return {"data": [_out(r) for r in rows], "meta": meta.model_dump()}


@router.get("/{record_id}")
async def get_record(
    record_id: uuid.UUID,
    employee: Employee = Depends(require_permission("ctc:read")),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _out(await CTCService.get_record(db, record_id))}


@router.post("", status_code=201)
async def create_record(
    body: CTCCreate,
    actor: Employee = Depends(require_permission("ctc:manage")),
    db: AsyncSession = Depends(get_db),
):
    record = await CTCService.create_record(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "CTC record created", "data": _out(record)}


@router.put("/{record_id}")
async def update_record(
    record_id: uuid.UUID,
    body: CTCUpdate,
    actor: Employee = Depends(require_permission("ctc:manage")),
    db: AsyncSession = Depends(get_db),
):
    record = await CTCService.update_record(db, record_id, body, actor_id=actor.id)
    await db.commit()
    return {"message": "CTC record updated", "data": _out(record)}


@router.delete("/{record_id}", status_code=204)
async def delete_record(
    record_id: uuid.UUID,
    actor: Employee = Depends(require_permission("ctc:manage")),
    db: AsyncSession = Depends(get_db),
):
    await CTCService.delete_record(db, record_id, actor_id=actor.id)
    await db.commit()
