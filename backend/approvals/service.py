"""Multi-level approval engine for helpdesk tickets.

A ticket that needs approval walks the enabled levels of its sub-category
(L1 → L2 → L3 by default). Each level is decided by a holder of the
matching approver role; the last approval routes the ticket to its module,
any rejection ends it.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.approvals.schemas import ApprovalQueueItem
from backend.auth.dependencies import Actor
from backend.common.audit import create_audit_entry
from backend.common.clock import utcnow
from backend.common.constants import (
    APPROVER_ROLES,
    MODULE_ADMIN_ROLES,
    ApprovalDecision,
    ApprovalLevel,
    ApprovalStatus,
    MessageSender,
    MessageType,
    NotificationType,
    TicketStatus,
)
from backend.common.exceptions import BusinessRuleException, ForbiddenException
from backend.helpdesk.models import HelpdeskTicket, TicketApproval
from backend.helpdesk.service import HelpdeskService, add_history, add_message
from backend.helpdesk.workflow import APPROVAL_PENDING_STATUSES, LEVEL_STATUS, next_level
from backend.notifications.service import notify_ticket_role, notify_ticket_user
from backend.subcategories.service import SubCategoryService

logger = logging.getLogger(__name__)


def parse_level(raw: str) -> ApprovalLevel:
    try:
        level = ApprovalLevel(raw.upper())
    except ValueError:
        level = ApprovalLevel.none
    if level == ApprovalLevel.none:
        raise BusinessRuleException("INVALID_LEVEL", f"'{raw}' is not an approval level.")
    return level


def _already_decided(ticket: HelpdeskTicket, level: ApprovalLevel, approver_id: uuid.UUID) -> bool:
    return any(a.level == level and a.approver_id == approver_id for a in ticket.approvals)


class ApprovalService:

    # ── Decide ──────────────────────────────────────────────────────

    @staticmethod
    async def decide(
        db: AsyncSession,
        actor: Actor,
        level: ApprovalLevel,
        ticket_id: uuid.UUID,
        decision: ApprovalDecision,
        comments: Optional[str] = None,
    ) -> HelpdeskTicket:
        if not actor.has_role(APPROVER_ROLES[level]):
            raise ForbiddenException(f"You do not hold the {APPROVER_ROLES[level].value} role.")

        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        if ticket.status not in APPROVAL_PENDING_STATUSES or ticket.current_approval_level != level:
            raise BusinessRuleException(
                "LEVEL_MISMATCH",
                f"Ticket {ticket.ticket_number} is not awaiting {level.value} approval "
                f"(current level {ticket.current_approval_level.value}).",
            )
        if _already_decided(ticket, level, actor.id):
            logger.warning(
                "Duplicate %s decision on %s by %s ignored",
                level.value, ticket.ticket_number, actor.id,
            )
            raise BusinessRuleException(
                "ALREADY_DECIDED",
                f"You have already recorded a {level.value} decision on this ticket.",
            )

        now = utcnow()
        ticket.approvals.append(
            TicketApproval(
                level=level,
                approver_id=actor.id,
                approver_name=actor.name,
                approver_email=actor.email,
                decision=decision,
                comments=comments,
                decided_at=now,
            )
        )
        note = f"**{level.value} {decision.value}** by {actor.name}"
        if comments:
            note += f"\n\n{comments}"
        add_message(
            ticket, MessageSender.manager, note,
            actor=actor, message_type=MessageType.approval_note,
        )

        previous = ticket.status
        routed = False
        config = None
        upcoming: Optional[ApprovalLevel] = None
        if decision == ApprovalDecision.rejected:
            ticket.approval_status = ApprovalStatus.rejected
            ticket.current_approval_level = ApprovalLevel.none
            ticket.approval_completed = False
            ticket.status = TicketStatus.rejected
            add_history(
                ticket, "rejected", actor=actor,
                details=f"{level.value} rejected" + (f": {comments}" if comments else ""),
                previous_status=previous, new_status=ticket.status,
            )
        else:
            config = await SubCategoryService.find(db, ticket.module, ticket.sub_category)
            enabled = (config.enabled_levels() or None) if config else None
            upcoming = next_level(level, enabled)
            if upcoming is not None:
                ticket.current_approval_level = upcoming
                ticket.status = LEVEL_STATUS[upcoming]
                add_history(
                    ticket, "approved", actor=actor,
                    details=f"{level.value} approved; moved to {upcoming.value}",
                    previous_status=previous, new_status=ticket.status,
                )
            else:
                ticket.current_approval_level = ApprovalLevel.none
                ticket.approval_completed = True
                ticket.approval_status = ApprovalStatus.approved
                ticket.status = TicketStatus.routed
                ticket.routed_to = ticket.module
                routed = True
                add_history(
                    ticket, "approved", actor=actor,
                    details=f"{level.value} approved; approval complete",
                    previous_status=previous, new_status=TicketStatus.approved,
                )
                add_history(
                    ticket, "routed", details=f"Routed to {ticket.module.value}",
                    previous_status=TicketStatus.approved, new_status=ticket.status,
                )
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if decision == ApprovalDecision.approved else "reject",
            entity_type="helpdesk_ticket",
            entity_id=ticket.id,
            actor_id=actor.id,
            old_values={"status": previous, "level": level},
            new_values={"status": ticket.status, "comments": comments},
        )

        await notify_ticket_user(
            db, ticket, ticket.owner_id,
            f"Ticket {decision.value.lower()} at {level.value}",
            f"Your ticket {ticket.ticket_number} was {decision.value.lower()} "
            f"at {level.value} by {actor.name}.",
            type=(
                NotificationType.approval if decision == ApprovalDecision.approved
                else NotificationType.rejection
            ),
        )
        if upcoming is not None:
            await notify_ticket_role(
                db, ticket, APPROVER_ROLES[upcoming], "Approval required",
                f"Ticket {ticket.ticket_number} awaits {upcoming.value} approval.",
                type=NotificationType.approval,
                recipient_ids=config.approver_ids(upcoming) if config else None,
            )
        elif routed:
            await notify_ticket_role(
                db, ticket, MODULE_ADMIN_ROLES[ticket.module], "New ticket routed",
                f"Ticket {ticket.ticket_number} was approved and routed to {ticket.module.value}.",
            )

        logger.info(
            "Ticket %s %s at %s by %s -> %s",
            ticket.ticket_number, decision.value, level.value, actor.id, ticket.status.value,
        )
        return await HelpdeskService.get_ticket(db, ticket_id)

    # ── Queues ──────────────────────────────────────────────────────

    @staticmethod
    def annotate(ticket: HelpdeskTicket, actor: Actor, *, historical: bool = False) -> dict:
        level = ticket.current_approval_level
        can_act = (
            not historical
            and ticket.status in APPROVAL_PENDING_STATUSES
            and level in APPROVER_ROLES
            and actor.has_role(APPROVER_ROLES[level])
            and not _already_decided(ticket, level, actor.id)
        )
        item = ApprovalQueueItem.model_validate(ticket, from_attributes=True)
        item.can_approve = can_act
        item.can_reject = can_act
        item.view_only = not can_act
        item.is_historical = historical
        return item.model_dump(mode="json")

    @staticmethod
    def _ensure_approver(actor: Actor) -> None:
        if not (actor.has_role(*APPROVER_ROLES.values()) or actor.is_helpdesk_admin):
            raise ForbiddenException("Only approvers can view the approval queue.")

    @staticmethod
    async def _load(db: AsyncSession, *conditions) -> list[HelpdeskTicket]:
        query = (
            select(HelpdeskTicket)
            .options(selectinload(HelpdeskTicket.approvals))
            .where(HelpdeskTicket.requires_approval.is_(True), *conditions)
            .order_by(HelpdeskTicket.created_at)
        )
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def pending(db: AsyncSession, actor: Actor) -> list[dict]:
        ApprovalService._ensure_approver(actor)
        tickets = await ApprovalService._load(
            db,
            HelpdeskTicket.approval_completed.is_(False),
            HelpdeskTicket.approval_status == ApprovalStatus.pending,
        )
        return [ApprovalService.annotate(t, actor) for t in tickets]

    @staticmethod
    async def all(db: AsyncSession, actor: Actor) -> list[dict]:
        """Pending tickets plus decided ones flagged ``is_historical``."""
        items = await ApprovalService.pending(db, actor)
        decided = await ApprovalService._load(
            db,
            HelpdeskTicket.approval_status.in_([ApprovalStatus.approved, ApprovalStatus.rejected]),
        )
        items.extend(ApprovalService.annotate(t, actor, historical=True) for t in decided)
        return items

    @staticmethod
    async def history(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
    ) -> list[TicketApproval]:
        ticket = await HelpdeskService.get_ticket_for(db, actor, ticket_id)
        return list(ticket.approvals)
