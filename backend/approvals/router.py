"""Approval endpoints — decide a level, approver queues, decision history."""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.approvals.schemas import DecisionRequest
from backend.approvals.service import ApprovalService, parse_level
from backend.auth.dependencies import Actor, get_actor
from backend.database import get_db
from backend.helpdesk.schemas import ApprovalOut, TicketDetail

router = APIRouter(prefix="", tags=["approvals"])


# ── GET /pending ────────────────────────────────────────────────────

@router.get("/pending")
async def pending_approvals(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Tickets awaiting approval, flagged with what the caller may do."""
    items = await ApprovalService.pending(db, actor)
    return {"data": items, "meta": {"total": len(items)}}


# ── GET /all ────────────────────────────────────────────────────────

@router.get("/all")
async def all_approvals(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    items = await ApprovalService.all(db, actor)
    return {"data": items, "meta": {"total": len(items)}}


# ── GET /history/{ticket_id} ────────────────────────────────────────

@router.get("/history/{ticket_id}")
async def approval_history(
    ticket_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    decisions = await ApprovalService.history(db, actor, ticket_id)
    return {
        "data": [ApprovalOut.model_validate(d).model_dump(mode="json") for d in decisions],
    }


# ── POST /{level}/{ticket_id} ───────────────────────────────────────

@router.post("/{level}/{ticket_id}")
async def decide(
    level: str,
    ticket_id: uuid.UUID,
    body: DecisionRequest,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record the caller's decision at *level* (L1, L2 or L3)."""
    ticket = await ApprovalService.decide(
        db, actor, parse_level(level), ticket_id, body.decision, body.comments,
    )
    await db.commit()
    return {
        "message": f"Ticket {ticket.ticket_number} {body.decision.value.lower()}",
        "data": TicketDetail.model_validate(ticket).model_dump(mode="json"),
    }
