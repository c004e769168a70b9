"""Timesheet router — weekly grid, recall and approvals.

All endpoints require authentication; who may review an entry is decided
per entry in the service (project managers, reporting manager or RMG).
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor
from backend.database import get_db
from backend.timesheets.schemas import (
    DayApprovalRequest,
    EntryRejectRequest,
    ReminderRequest,
    RevisionRequest,
    TimesheetEntryOut,
    TimesheetSubmit,
    WeekApprovalRequest,
    WeekOut,
    WeekSummary,
)
from backend.timesheets.service import TimesheetService

router = APIRouter(prefix="", tags=["timesheets"])


def _entry(entry) -> dict:
    return TimesheetEntryOut.model_validate(entry).model_dump(mode="json")


def _week(week: dict) -> dict:
    return WeekOut.model_validate(week).model_dump(mode="json")


# ── Own grid ────────────────────────────────────────────────────────

@router.post("/submit", status_code=201)
async def submit_week(
    body: TimesheetSubmit,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Save or submit the caller's week. Empty cells are skipped."""
    week = await TimesheetService.submit_week(db, actor, body)
    await db.commit()
    message = "Timesheet saved as draft" if body.draft else "Timesheet submitted"
    return {"message": message, "data": _week(week)}


@router.get("/week/{week_start}")
async def get_week(
    week_start: date,
    employee_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    week = await TimesheetService.week_view(db, actor, employee_id or actor.id, week_start)
    return {"data": _week(week)}


@router.get("/weeks")
async def list_weeks(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    weeks = await TimesheetService.list_weeks(db, actor, employee_id or actor.id, status=status)
    return {
        "data": [WeekSummary.model_validate(w).model_dump(mode="json") for w in weeks],
        "meta": {"total": len(weeks)},
    }


@router.get("/range")
async def date_range(
    start: date = Query(...),
    end: date = Query(...),
    employee_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entries = await TimesheetService.date_range(db, actor, employee_id or actor.id, start, end)
    return {"data": [_entry(e) for e in entries], "meta": {"total": len(entries)}}


@router.delete("/week/{week_start}")
async def recall_week(
    week_start: date,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await TimesheetService.recall_week(db, actor, week_start)
    await db.commit()
    return {"message": "Timesheet recalled", "data": result}


@router.delete("/week/{week_start}/rows")
async def delete_row(
    week_start: date,
    activity: str = Query(..., min_length=1, max_length=100),
    project_id: Optional[uuid.UUID] = Query(None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    result = await TimesheetService.delete_row(db, actor, week_start, activity, project_id)
    await db.commit()
    return {"message": "Timesheet row removed", "data": result}


# ── Approvals ───────────────────────────────────────────────────────

@router.get("/approvals/pending")
async def pending_for_me(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entries = await TimesheetService.pending_for(db, actor)
    return {"data": [_entry(e) for e in entries], "meta": {"total": len(entries)}}


@router.put("/approvals/approve-week")
async def approve_week(
    body: WeekApprovalRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entries = await TimesheetService.approve_week(db, actor, body)
    await db.commit()
    return {"message": f"{len(entries)} entries approved", "data": [_entry(e) for e in entries]}


@router.put("/approvals/approve-days")
async def approve_days(
    body: DayApprovalRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entries = await TimesheetService.approve_days(db, actor, body)
    await db.commit()
    return {"message": f"{len(entries)} entries approved", "data": [_entry(e) for e in entries]}


@router.put("/approvals/revision-request")
async def request_revision(
    body: RevisionRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entries = await TimesheetService.request_revision(db, actor, body)
    await db.commit()
    return {
        "message": f"{len(entries)} entries returned for revision",
        "data": [_entry(e) for e in entries],
    }


@router.put("/entries/{entry_id}/approve")
async def approve_entry(
    entry_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entry = await TimesheetService.approve_entry(db, actor, entry_id)
    await db.commit()
    return {"message": "Timesheet entry approved", "data": _entry(entry)}


@router.put("/entries/{entry_id}/reject")
async def reject_entry(
    entry_id: uuid.UUID,
    body: EntryRejectRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    entry = await TimesheetService.reject_entry(db, actor, entry_id, body.reason)
    await db.commit()
    return {"message": "Timesheet entry rejected", "data": _entry(entry)}


@router.post("/reminders", status_code=201)
async def send_reminder(
    body: ReminderRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await TimesheetService.send_reminder(db, actor, body)
    await db.commit()
    return {"message": "Reminder sent"}
