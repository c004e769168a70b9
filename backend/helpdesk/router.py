"""Helpdesk router — ticket lifecycle, conversation, assignment and closure.

All endpoints require authentication. Role checks that depend on the
ticket (owner, assignee, module admin) happen in the service layer.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor
from backend.common.constants import (
    ApprovalStatus,
    TicketModule,
    TicketStatus,
    TicketUrgency,
)
from backend.common.pagination import PaginationParams
from backend.common.rate_limit import TICKET_CREATE_LIMIT, TICKET_MESSAGE_LIMIT, limiter
from backend.database import get_db
from backend.helpdesk.schemas import (
    AssignRequest,
    CancelRequest,
    CloseRequest,
    CompleteRequest,
    ConfirmRequest,
    MessageCreate,
    PauseRequest,
    ProgressUpdate,
    ReassignRequest,
    ReopenRequest,
    StatusUpdate,
    TicketCreate,
    TicketDetail,
    TicketSummary,
)
from backend.helpdesk.service import HelpdeskService

router = APIRouter(prefix="", tags=["helpdesk"])


def _detail(ticket) -> dict:
    return TicketDetail.model_validate(ticket).model_dump(mode="json")


def _summary(ticket) -> dict:
    return TicketSummary.model_validate(ticket).model_dump(mode="json")


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", status_code=201)
@limiter.limit(TICKET_CREATE_LIMIT)
async def create_ticket(
    request: Request,
    body: TicketCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Raise a new ticket; approval routing comes from the sub-category config."""
    ticket = await HelpdeskService.create_ticket(db, actor, body)
    await db.commit()
    return {"message": f"Ticket {ticket.ticket_number} created", "data": _detail(ticket)}


# ── GET / ───────────────────────────────────────────────────────────

@router.get("")
async def list_tickets(
    status: Optional[TicketStatus] = Query(None),
    module: Optional[TicketModule] = Query(None),
    urgency: Optional[TicketUrgency] = Query(None),
    assignee_id: Optional[uuid.UUID] = Query(None),
    owner_id: Optional[uuid.UUID] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None),
    search: Optional[str] = Query(None, description="Ticket number, subject or owner"),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await HelpdeskService.list_tickets(
        db,
        actor,
        pagination,
        filters={
            "status": status,
            "module": module,
            "urgency": urgency,
            "assignee_id": assignee_id,
            "owner_id": owner_id,
            "approval_status": approval_status,
        },
        search=search,
    )
    return {"data": [_summary(t) for t in rows], "meta": meta.model_dump()}


# ── GET /my ─────────────────────────────────────────────────────────
# Static paths before /{ticket_id}.

@router.get("/my")
async def my_tickets(
    status: Optional[TicketStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await HelpdeskService.my_tickets(db, actor, pagination, status=status)
    return {"data": [_summary(t) for t in rows], "meta": meta.model_dump()}


# ── GET /{ticket_id} ────────────────────────────────────────────────

@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.get_ticket_for(db, actor, ticket_id)
    return {"data": _detail(ticket)}


# ── Status transitions ──────────────────────────────────────────────

@router.patch("/{ticket_id}/status")
async def update_status(
    ticket_id: uuid.UUID,
    body: StatusUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.update_status(db, actor, ticket_id, body.status, body.reason)
    await db.commit()
    return {"message": f"Ticket status is now {ticket.status.value}", "data": _detail(ticket)}


@router.post("/{ticket_id}/cancel")
async def cancel_ticket(
    ticket_id: uuid.UUID,
    body: CancelRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.cancel(db, actor, ticket_id, body.reason)
    await db.commit()
    return {"message": "Ticket cancelled", "data": _detail(ticket)}


# ── Conversation ────────────────────────────────────────────────────

@router.post("/{ticket_id}/messages", status_code=201)
@limiter.limit(TICKET_MESSAGE_LIMIT)
async def add_message(
    request: Request,
    ticket_id: uuid.UUID,
    body: MessageCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.add_message(
        db, actor, ticket_id, body.message, [a.model_dump() for a in body.attachments],
    )
    await db.commit()
    return {"message": "Message added", "data": _detail(ticket)}


# ── Assignment ──────────────────────────────────────────────────────

@router.post("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: uuid.UUID,
    body: AssignRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.assign(
        db, actor, ticket_id, body.assignee_id, notes=body.notes, queue=body.queue,
    )
    await db.commit()
    return {"message": f"Ticket assigned to {ticket.assignee_name}", "data": _detail(ticket)}


@router.post("/{ticket_id}/reassign")
async def reassign_ticket(
    ticket_id: uuid.UUID,
    body: ReassignRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.reassign(db, actor, ticket_id, body.assignee_id, body.reason)
    await db.commit()
    return {"message": f"Ticket reassigned to {ticket.assignee_name}", "data": _detail(ticket)}


# ── Work ────────────────────────────────────────────────────────────

@router.post("/{ticket_id}/progress")
async def update_progress(
    ticket_id: uuid.UUID,
    body: ProgressUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.update_progress(
        db, actor, ticket_id, body.progress_status, body.notes,
    )
    await db.commit()
    return {"message": "Progress updated", "data": _detail(ticket)}


@router.post("/{ticket_id}/complete")
async def complete_ticket(
    ticket_id: uuid.UUID,
    body: CompleteRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.complete(db, actor, ticket_id, body.resolution_notes)
    await db.commit()
    return {"message": "Work marked as completed", "data": _detail(ticket)}


@router.post("/{ticket_id}/confirm")
async def confirm_completion(
    ticket_id: uuid.UUID,
    body: ConfirmRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.confirm_completion(db, actor, ticket_id, body.feedback)
    await db.commit()
    return {"message": "Resolution confirmed", "data": _detail(ticket)}


@router.post("/{ticket_id}/pause")
async def pause_ticket(
    ticket_id: uuid.UUID,
    body: PauseRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.pause(db, actor, ticket_id, body.reason)
    await db.commit()
    return {"message": "Ticket paused", "data": _detail(ticket)}


@router.post("/{ticket_id}/resume")
async def resume_ticket(
    ticket_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.resume(db, actor, ticket_id)
    await db.commit()
    return {"message": "Ticket resumed", "data": _detail(ticket)}


# ── Closure ─────────────────────────────────────────────────────────

@router.post("/{ticket_id}/close")
async def close_ticket(
    ticket_id: uuid.UUID,
    body: CloseRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.close(db, actor, ticket_id, body.closing_note)
    await db.commit()
    return {"message": "Ticket closed", "data": _detail(ticket)}


@router.post("/{ticket_id}/reopen")
async def reopen_ticket(
    ticket_id: uuid.UUID,
    body: ReopenRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    ticket = await HelpdeskService.reopen(db, actor, ticket_id, body.reason)
    await db.commit()
    return {"message": "Ticket reopened", "data": _detail(ticket)}


@router.delete("/{ticket_id}", status_code=204)
async def delete_ticket(
    ticket_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await HelpdeskService.delete_ticket(db, actor, ticket_id)
    await db.commit()
