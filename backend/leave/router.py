"""Leave router — apply, review, cancel, balances.

All endpoints require authentication. Manager/HR-specific endpoints enforce role checks.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor, require_role
from backend.common.constants import LeaveStatus, LeaveType, UserRole
from backend.common.exceptions import ForbiddenException
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.leave.schemas import (
    LeaveApply,
    LeaveCancelRequest,
    LeaveRejectRequest,
    LeaveRequestOut,
    LeaveUpdate,
)
from backend.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


def _out(leave) -> dict:
    return LeaveRequestOut.model_validate(leave).model_dump(mode="json")


# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", status_code=201)
async def apply_leave(
    body: LeaveApply,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, overlap and balance."""
    leave = await LeaveService.apply_leave(db, actor.employee, body)
    await db.commit()
    return {"message": "Leave request submitted", "data": _out(leave)}


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance")
async def my_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return {"data": await LeaveService.get_balance(db, actor.id, year)}


@router.get("/balance/{employee_id}")
async def employee_balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    if employee_id != actor.id and not actor.has_role(UserRole.hr):
        raise ForbiddenException("Only HR can view other employees' balances.")
    return {"data": await LeaveService.get_balance(db, employee_id, year)}


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my")
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await LeaveService.my_leaves(db, actor.id, pagination, status=status)
    return {"data": [_out(r) for r in rows], "meta": meta.model_dump()}


# ── GET /pending ────────────────────────────────────────────────────

@router.get("/pending")
async def pending_for_me(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Requests waiting on the caller (reportees, or everything for HR)."""
    rows = await LeaveService.pending_for(db, actor)
    return {"data": [_out(r) for r in rows], "meta": {"total": len(rows)}}


# ── GET / — HR / managers ───────────────────────────────────────────

@router.get("")
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    _: Employee = Depends(require_role(UserRole.manager, UserRole.hr)),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await LeaveService.list_leaves(
        db, actor, pagination, status=status, leave_type=leave_type, employee_id=employee_id,
    )
    return {"data": [_out(r) for r in rows], "meta": meta.model_dump()}


# ── /{leave_id} ─────────────────────────────────────────────────────

@router.get("/{leave_id}")
async def get_leave(
    leave_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _out(await LeaveService.get_leave(db, actor, leave_id))}


@router.put("/{leave_id}")
async def update_leave(
    leave_id: uuid.UUID,
    body: LeaveUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.update_leave(db, actor, leave_id, body)
    await db.commit()
    return {"message": "Leave request updated", "data": _out(leave)}


@router.post("/{leave_id}/approve")
async def approve_leave(
    leave_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.approve_leave(db, actor, leave_id)
    await db.commit()
    return {"message": "Leave request approved", "data": _out(leave)}


@router.post("/{leave_id}/reject")
async def reject_leave(
    leave_id: uuid.UUID,
    body: LeaveRejectRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.reject_leave(db, actor, leave_id, body.reason)
    await db.commit()
    return {"message": "Leave request rejected", "data": _out(leave)}


@router.post("/{leave_id}/cancel")
async def cancel_leave(
    leave_id: uuid.UUID,
    body: LeaveCancelRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    leave = await LeaveService.cancel_leave(db, actor, leave_id, body.reason)
    await db.commit()
    return {"message": "Leave request cancelled", "data": _out(leave)}


@router.delete("/{leave_id}", status_code=204)
async def delete_leave(
    leave_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await LeaveService.delete_leave(db, actor, leave_id)
    await db.commit()
