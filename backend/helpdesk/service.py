"""Helpdesk service layer — ticket lifecycle, conversation and history."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.auth.dependencies import Actor
from backend.common.audit import create_audit_entry
from backend.common.clock import as_utc, utcnow
from backend.common.constants import (
    APPROVER_ROLES,
    MODULE_ADMIN_ROLES,
    TICKET_NUMBER_PREFIX,
    ApprovalLevel,
    ApprovalStatus,
    ClosingReason,
    MessageSender,
    MessageType,
    NotificationType,
    ProgressStatus,
    TicketStatus,
)
from backend.common.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
)
from backend.common.filters import apply_filters, apply_search
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.config import settings
from backend.core_hr.models import Employee
from backend.helpdesk.models import HelpdeskTicket, TicketCounter, TicketHistory, TicketMessage
from backend.helpdesk.schemas import TicketCreate
from backend.helpdesk.workflow import (
    APPROVAL_PENDING_STATUSES,
    ASSIGNABLE_STATUSES,
    CLOSABLE_STATUSES,
    LEVEL_STATUS,
    PAUSABLE_STATUSES,
    PROGRESS_TO_STATUS,
    REOPENABLE_STATUSES,
    TERMINAL_STATUSES,
    WORKABLE_STATUSES,
    ensure_cancellable,
    ensure_status,
    first_level,
)
from backend.notifications.service import notify_ticket_role, notify_ticket_user
from backend.sla.calculator import compute_deadlines
from backend.specialists.service import SpecialistService
from backend.subcategories.service import SubCategoryService

logger = logging.getLogger(__name__)

TICKET_COUNTER = "helpdesk_ticket"
SYSTEM_ACTOR = "System"

_SEARCH_COLUMNS = ["ticket_number", "subject", "owner_name", "sub_category"]


# ── History / conversation helpers ──────────────────────────────────

def add_history(
    ticket: HelpdeskTicket,
    action: str,
    *,
    actor: Optional[Actor] = None,
    details: Optional[str] = None,
    previous_status: Optional[TicketStatus] = None,
    new_status: Optional[TicketStatus] = None,
) -> TicketHistory:
    """Append a history entry; ``actor=None`` records the System."""
    entry = TicketHistory(
        action=action,
        performed_by_id=actor.id if actor else None,
        performed_by=actor.name if actor else SYSTEM_ACTOR,
        performed_by_role=actor.primary_role if actor else "system",
        details=details,
        previous_status=previous_status,
        new_status=new_status,
        created_at=utcnow(),
    )
    ticket.history.append(entry)
    return entry


def add_message(
    ticket: HelpdeskTicket,
    sender: MessageSender,
    text: str,
    *,
    actor: Optional[Actor] = None,
    message_type: MessageType = MessageType.message,
    attachments: Optional[list[dict]] = None,
) -> TicketMessage:
    message = TicketMessage(
        sender=sender,
        sender_id=actor.id if actor else None,
        sender_name=actor.name if actor else SYSTEM_ACTOR,
        message=text,
        message_type=message_type,
        attachments=attachments or [],
        created_at=utcnow(),
    )
    ticket.messages.append(message)
    return message


def _snapshot(ticket: HelpdeskTicket) -> dict[str, Any]:
    return {
        "status": ticket.status,
        "assignee_id": ticket.assignee_id,
        "approval_status": ticket.approval_status,
    }


class HelpdeskService:
    """Business logic for helpdesk tickets."""

    # ── Numbering ───────────────────────────────────────────────────

    @staticmethod
    async def next_ticket_number(db: AsyncSession) -> str:
        """Atomically bump the counter row and format ``TKT0001``."""
        result = await db.execute(
            update(TicketCounter)
            .where(TicketCounter.name == TICKET_COUNTER)
            .values(seq=TicketCounter.seq + 1)
            .returning(TicketCounter.seq)
            .execution_options(synchronize_session=False)
        )
        seq = result.scalar_one_or_none()
        if seq is None:
            db.add(TicketCounter(name=TICKET_COUNTER, seq=1))
            await db.flush()
            seq = 1
        return f"{TICKET_NUMBER_PREFIX}{seq:04d}"

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get_ticket(db: AsyncSession, ticket_id: uuid.UUID) -> HelpdeskTicket:
        """Load a ticket with messages, history and approvals."""
        stmt = (
            select(HelpdeskTicket)
            .options(
                selectinload(HelpdeskTicket.messages),
                selectinload(HelpdeskTicket.history),
                selectinload(HelpdeskTicket.approvals),
            )
            .where(HelpdeskTicket.id == ticket_id)
            .execution_options(populate_existing=True)
        )
        ticket = (await db.execute(stmt)).scalar_one_or_none()
        if ticket is None:
            raise NotFoundException("HelpdeskTicket", ticket_id)
        return ticket

    @staticmethod
    def can_view(actor: Actor, ticket: HelpdeskTicket) -> bool:
        if actor.id in (ticket.owner_id, ticket.assignee_id) or actor.is_helpdesk_admin:
            return True
        level_role = APPROVER_ROLES.get(ticket.current_approval_level)
        if ticket.status in APPROVAL_PENDING_STATUSES and level_role and actor.has_role(level_role):
            return True
        return any(a.approver_id == actor.id for a in ticket.approvals)

    @staticmethod
    async def get_ticket_for(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        if not HelpdeskService.can_view(actor, ticket):
            raise ForbiddenException("You do not have access to this ticket.")
        return ticket

    @staticmethod
    async def list_tickets(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        filters: Optional[dict[str, Any]] = None,
        search: Optional[str] = None,
    ) -> tuple[list[HelpdeskTicket], PaginationMeta]:
        """Admins see every ticket; everyone else sees own and assigned."""
        query = select(HelpdeskTicket)
        if not actor.is_helpdesk_admin:
            query = query.where(
                or_(HelpdeskTicket.owner_id == actor.id, HelpdeskTicket.assignee_id == actor.id),
            )
        query = apply_filters(query, HelpdeskTicket, filters or {})
        query = apply_search(query, HelpdeskTicket, search, _SEARCH_COLUMNS)
        return await paginate(
            db, query, pagination, model=HelpdeskTicket, default_sort="-created_at",
        )

    @staticmethod
    async def my_tickets(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        status: Optional[TicketStatus] = None,
    ) -> tuple[list[HelpdeskTicket], PaginationMeta]:
        query = select(HelpdeskTicket).where(HelpdeskTicket.owner_id == actor.id)
        if status is not None:
            query = query.where(HelpdeskTicket.status == status)
        return await paginate(
            db, query, pagination, model=HelpdeskTicket, default_sort="-created_at",
        )

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_ticket(
        db: AsyncSession,
        actor: Actor,
        data: TicketCreate,
    ) -> HelpdeskTicket:
        config = await SubCategoryService.find(db, data.module, data.sub_category)
        requires_approval = config.requires_approval if config else data.requires_approval
        enabled = (config.enabled_levels() or None) if config else None

        now = utcnow()
        deadlines = compute_deadlines(now, requires_approval)
        ticket = HelpdeskTicket(
            ticket_number=await HelpdeskService.next_ticket_number(db),
            owner_id=actor.id,
            owner_name=actor.name,
            owner_email=actor.email,
            owner_department=actor.employee.department,
            module=data.module,
            sub_category=data.sub_category,
            subject=data.subject,
            description=data.description,
            urgency=data.urgency,
            attachments=[a.model_dump() for a in data.attachments],
            requires_approval=requires_approval,
            processing_queue=config.processing_queue if config else None,
            specialist_queue=config.specialist_queue if config else None,
            approval_deadline=deadlines.approval_deadline,
            processing_deadline=deadlines.processing_deadline,
            due_at=deadlines.due_at,
            progress_status=ProgressStatus.not_started,
            reopen_count=0,
            created_at=now,
            updated_at=now,
        )
        level = first_level(enabled)
        if requires_approval:
            ticket.status = LEVEL_STATUS[level]
            ticket.current_approval_level = level
            ticket.approval_status = ApprovalStatus.pending
            ticket.approval_completed = False
            ticket.routed_to = None
        else:
            ticket.status = TicketStatus.routed
            ticket.current_approval_level = ApprovalLevel.none
            ticket.approval_status = ApprovalStatus.not_required
            ticket.approval_completed = True
            ticket.routed_to = data.module

        db.add(ticket)
        add_history(
            ticket, "created", actor=actor,
            details=f"Ticket created for {data.module.value} / {data.sub_category}",
            new_status=ticket.status,
        )
        await db.flush()

        await create_audit_entry(
            db, action="create", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id,
            new_values={"ticket_number": ticket.ticket_number, "status": ticket.status},
        )

        await notify_ticket_user(
            db, ticket, actor.id, "Ticket created",
            f"Your ticket {ticket.ticket_number} has been created: {ticket.subject}",
        )
        if requires_approval:
            await notify_ticket_role(
                db, ticket, APPROVER_ROLES[level], "Approval required",
                f"Ticket {ticket.ticket_number} from {ticket.owner_name} awaits "
                f"{level.value} approval.",
                type=NotificationType.approval,
                recipient_ids=config.approver_ids(level) if config else None,
            )
        else:
            await notify_ticket_role(
                db, ticket, MODULE_ADMIN_ROLES[ticket.module], "New ticket routed",
                f"Ticket {ticket.ticket_number} was routed to {ticket.module.value}.",
            )

        logger.info(
            "Ticket %s created by %s (%s, approval=%s)",
            ticket.ticket_number, actor.id, ticket.status.value, requires_approval,
        )
        return await HelpdeskService.get_ticket(db, ticket.id)

    # ── Permission helpers ──────────────────────────────────────────

    @staticmethod
    def _require_module_admin(actor: Actor, ticket: HelpdeskTicket) -> None:
        if not actor.is_module_admin(ticket.module):
            raise ForbiddenException(
                f"Only {ticket.module.value} administrators can perform this action.",
            )

    @staticmethod
    def _require_worker(actor: Actor, ticket: HelpdeskTicket) -> None:
        if actor.id != ticket.assignee_id and not actor.is_module_admin(ticket.module):
            raise ForbiddenException("Only the assignee or an administrator can do this.")

    @staticmethod
    def _require_owner(actor: Actor, ticket: HelpdeskTicket) -> None:
        if actor.id != ticket.owner_id:
            raise ForbiddenException("Only the ticket owner can do this.")

    @staticmethod
    async def _get_assignee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundException("Employee", employee_id)
        return employee

    # ── Status / cancel ─────────────────────────────────────────────

    @staticmethod
    async def update_status(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        status: TicketStatus,
        reason: Optional[str] = None,
    ) -> HelpdeskTicket:
        """Generic admin transition; cancellation uses the cancel rule."""
        if status == TicketStatus.cancelled:
            return await HelpdeskService.cancel(db, actor, ticket_id, reason)

        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_module_admin(actor, ticket)
        previous = ticket.status
        if previous == status:
            return ticket
        ticket.status = status
        details = f"Status changed from {previous.value} to {status.value}"
        if reason:
            details += f". Reason: {reason}"
        add_history(
            ticket, "status_updated", actor=actor, details=details,
            previous_status=previous, new_status=status,
        )
        await db.flush()
        await create_audit_entry(
            db, action="update", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, old_values={"status": previous}, new_values={"status": status},
        )
        await notify_ticket_user(
            db, ticket, ticket.owner_id, "Ticket status updated",
            f"Ticket {ticket.ticket_number} is now {status.value}.",
        )
        logger.info("Ticket %s: %s -> %s by %s", ticket.ticket_number, previous.value, status.value, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def cancel(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        if actor.id != ticket.owner_id and not actor.is_module_admin(ticket.module):
            raise ForbiddenException("Only the owner or an administrator can cancel a ticket.")
        ensure_cancellable(ticket.status)

        previous = ticket.status
        now = utcnow()
        ticket.status = TicketStatus.cancelled
        ticket.closed_at = now
        ticket.closed_by_id = actor.id
        ticket.closed_by_name = actor.name
        ticket.closing_reason = ClosingReason.user_cancellation
        ticket.closing_note = f"Ticket cancelled by {actor.name}: {reason or 'No reason provided'}"
        add_history(
            ticket, "cancelled", actor=actor, details=reason or "Cancelled",
            previous_status=previous, new_status=ticket.status,
        )
        await SpecialistService.adjust_load(db, ticket.assignee_id, -1)
        await db.flush()

        await create_audit_entry(
            db, action="cancel", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, old_values={"status": previous},
            new_values={"status": ticket.status, "reason": reason},
        )
        if actor.id != ticket.owner_id:
            await notify_ticket_user(
                db, ticket, ticket.owner_id, "Ticket cancelled",
                f"Ticket {ticket.ticket_number} was cancelled by {actor.name}.",
            )
        if ticket.assignee_id and ticket.assignee_id != actor.id:
            await notify_ticket_user(
                db, ticket, ticket.assignee_id, "Ticket cancelled",
                f"Ticket {ticket.ticket_number} assigned to you was cancelled.",
            )
        logger.info("Ticket %s cancelled by %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    # ── Conversation ────────────────────────────────────────────────

    @staticmethod
    async def add_message(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        text: str,
        attachments: Optional[list[dict]] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        if actor.id == ticket.owner_id:
            sender = MessageSender.employee
        elif actor.id == ticket.assignee_id:
            sender = MessageSender.specialist
        elif actor.is_helpdesk_admin:
            sender = MessageSender.itadmin
        else:
            raise ForbiddenException("You cannot post messages on this ticket.")

        add_message(ticket, sender, text, actor=actor, attachments=attachments)
        if sender != MessageSender.employee and ticket.first_response_at is None:
            ticket.first_response_at = utcnow()
        add_history(ticket, "message_added", actor=actor, details=f"Message from {sender.value}")
        await db.flush()

        if sender == MessageSender.employee:
            await notify_ticket_user(
                db, ticket, ticket.assignee_id, "New message on ticket",
                f"{actor.name} replied on ticket {ticket.ticket_number}.",
            )
        else:
            await notify_ticket_user(
                db, ticket, ticket.owner_id, "New message on your ticket",
                f"{actor.name} replied on ticket {ticket.ticket_number}.",
            )
        logger.debug("Message added to %s by %s (%s)", ticket.ticket_number, actor.id, sender.value)
        return await HelpdeskService.get_ticket(db, ticket_id)

    # ── Assignment ──────────────────────────────────────────────────

    @staticmethod
    async def assign(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        assignee_id: uuid.UUID,
        *,
        notes: Optional[str] = None,
        queue: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_module_admin(actor, ticket)
        ensure_status(ticket.status, ASSIGNABLE_STATUSES, "assign")
        assignee = await HelpdeskService._get_assignee(db, assignee_id)

        previous = ticket.status
        now = utcnow()
        ticket.assignee_id = assignee.id
        ticket.assignee_name = assignee.name
        ticket.assigned_by_id = actor.id
        ticket.assigned_by_name = actor.name
        ticket.assigned_at = now
        ticket.assignment_notes = notes
        ticket.assignment_queue = queue or ticket.specialist_queue
        ticket.status = TicketStatus.assigned
        ticket.progress_status = ProgressStatus.not_started
        if ticket.first_response_at is None:
            ticket.first_response_at = now
        add_history(
            ticket, "assigned", actor=actor,
            details=f"Assigned to {assignee.name}" + (f". Notes: {notes}" if notes else ""),
            previous_status=previous, new_status=ticket.status,
        )
        await SpecialistService.adjust_load(db, assignee.id, +1)
        await db.flush()

        await create_audit_entry(
            db, action="assign", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, new_values={"assignee_id": assignee.id},
        )
        await notify_ticket_user(
            db, ticket, assignee.id, "Ticket assigned to you",
            f"Ticket {ticket.ticket_number} has been assigned to you: {ticket.subject}",
        )
        await notify_ticket_user(
            db, ticket, ticket.owner_id, "Ticket assigned",
            f"Your ticket {ticket.ticket_number} has been assigned to {assignee.name}.",
        )
        logger.info("Ticket %s assigned to %s by %s", ticket.ticket_number, assignee.id, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def reassign(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        assignee_id: uuid.UUID,
        reason: str,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_module_admin(actor, ticket)
        if ticket.assignee_id is None:
            raise BusinessRuleException(
                "NOT_ASSIGNED", "Ticket is not assigned yet; use assign instead.",
            )
        if not reason or not reason.strip():
            raise BusinessRuleException(
                "MISSING_REASSIGN_REASON", "A reason is required to reassign a ticket.",
            )
        if ticket.status in TERMINAL_STATUSES:
            raise BusinessRuleException(
                "INVALID_STATUS", f"Cannot reassign a ticket in status '{ticket.status.value}'.",
            )
        if assignee_id == ticket.assignee_id:
            raise BusinessRuleException(
                "SAME_ASSIGNEE", "Ticket is already assigned to this employee.",
            )
        assignee = await HelpdeskService._get_assignee(db, assignee_id)

        previous_id, previous_name = ticket.assignee_id, ticket.assignee_name
        ticket.assignee_id = assignee.id
        ticket.assignee_name = assignee.name
        ticket.assigned_by_id = actor.id
        ticket.assigned_by_name = actor.name
        ticket.assigned_at = utcnow()
        add_history(
            ticket, "reassigned", actor=actor,
            details=f"Reassigned from {previous_name} to {assignee.name}. Reason: {reason.strip()}",
        )
        await SpecialistService.adjust_load(db, previous_id, -1)
        await SpecialistService.adjust_load(db, assignee.id, +1)
        await db.flush()

        await create_audit_entry(
            db, action="reassign", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, old_values={"assignee_id": previous_id},
            new_values={"assignee_id": assignee.id, "reason": reason.strip()},
        )
        await notify_ticket_user(
            db, ticket, assignee.id, "Ticket reassigned to you",
            f"Ticket {ticket.ticket_number} has been reassigned to you.",
        )
        await notify_ticket_user(
            db, ticket, previous_id, "Ticket reassigned",
            f"Ticket {ticket.ticket_number} has been reassigned to {assignee.name}.",
        )
        logger.info(
            "Ticket %s reassigned %s -> %s by %s",
            ticket.ticket_number, previous_id, assignee.id, actor.id,
        )
        return await HelpdeskService.get_ticket(db, ticket_id)

    # ── Work ────────────────────────────────────────────────────────

    @staticmethod
    async def update_progress(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        progress_status: ProgressStatus,
        notes: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_worker(actor, ticket)
        ensure_status(ticket.status, WORKABLE_STATUSES, "update progress on")

        previous = ticket.status
        ticket.progress_status = progress_status
        ticket.progress_notes = notes
        ticket.progress_updated_at = utcnow()
        ticket.status = PROGRESS_TO_STATUS.get(progress_status, ticket.status)
        if notes:
            add_message(
                ticket, MessageSender.specialist,
                f"**Progress Update: {progress_status.value}**\n\n{notes}",
                actor=actor, message_type=MessageType.status_update,
            )
        add_history(
            ticket, "progress_updated", actor=actor,
            details=f"Progress set to {progress_status.value}",
            previous_status=previous, new_status=ticket.status,
        )
        await db.flush()

        await notify_ticket_user(
            db, ticket, ticket.owner_id, "Ticket progress updated",
            f"Ticket {ticket.ticket_number} progress: {progress_status.value}.",
        )
        logger.info(
            "Ticket %s progress %s by %s", ticket.ticket_number, progress_status.value, actor.id,
        )
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def complete(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        resolution_notes: str,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_worker(actor, ticket)
        if not resolution_notes or not resolution_notes.strip():
            raise BusinessRuleException(
                "MISSING_RESOLUTION_NOTES", "Resolution notes are required to complete work.",
            )
        ensure_status(ticket.status, WORKABLE_STATUSES, "complete")

        previous = ticket.status
        now = utcnow()
        notes = resolution_notes.strip()
        ticket.resolution_notes = notes
        ticket.resolved_by = actor.name
        ticket.resolved_at = now
        ticket.status = TicketStatus.work_completed
        ticket.progress_status = ProgressStatus.completed
        ticket.progress_updated_at = now
        add_message(
            ticket, MessageSender.specialist, f"**Work Completed**\n\n{notes}",
            actor=actor, message_type=MessageType.closing_note,
        )
        add_history(
            ticket, "work_completed", actor=actor, details=notes,
            previous_status=previous, new_status=ticket.status,
        )
        await db.flush()

        await create_audit_entry(
            db, action="complete", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, new_values={"status": ticket.status},
        )
        await notify_ticket_user(
            db, ticket, ticket.owner_id, "Work completed",
            f"Work on ticket {ticket.ticket_number} is complete. Please confirm the resolution.",
        )
        logger.info("Ticket %s work completed by %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def confirm_completion(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        feedback: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_owner(actor, ticket)
        ensure_status(ticket.status, {TicketStatus.work_completed}, "confirm")

        previous = ticket.status
        ticket.status = TicketStatus.awaiting_closure
        ticket.user_confirmed_at = utcnow()
        if feedback:
            add_message(
                ticket, MessageSender.employee,
                f"User confirmed resolution with feedback: {feedback}", actor=actor,
            )
        add_history(
            ticket, "user_confirmed", actor=actor, details=feedback or "Resolution confirmed",
            previous_status=previous, new_status=ticket.status,
        )
        await db.flush()

        await notify_ticket_user(
            db, ticket, ticket.assignee_id, "Resolution confirmed",
            f"{actor.name} confirmed the resolution of ticket {ticket.ticket_number}.",
        )
        await notify_ticket_role(
            db, ticket, MODULE_ADMIN_ROLES[ticket.module], "Ticket ready to close",
            f"Ticket {ticket.ticket_number} was confirmed by its owner and awaits closure.",
        )
        logger.info("Ticket %s confirmed by owner %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def pause(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_worker(actor, ticket)
        ensure_status(ticket.status, PAUSABLE_STATUSES, "pause")
        previous = ticket.status
        ticket.status = TicketStatus.paused
        add_history(
            ticket, "paused", actor=actor, details=reason,
            previous_status=previous, new_status=ticket.status,
        )
        await db.flush()
        logger.info("Ticket %s paused by %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def resume(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_worker(actor, ticket)
        ensure_status(ticket.status, {TicketStatus.paused}, "resume")
        ticket.status = TicketStatus.in_progress
        add_history(
            ticket, "resumed", actor=actor,
            previous_status=TicketStatus.paused, new_status=ticket.status,
        )
        await db.flush()
        logger.info("Ticket %s resumed by %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    # ── Closure ─────────────────────────────────────────────────────

    @staticmethod
    async def close(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        closing_note: Optional[str] = None,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_module_admin(actor, ticket)
        ensure_status(ticket.status, CLOSABLE_STATUSES, "close")

        previous = ticket.status
        ticket.status = TicketStatus.closed
        ticket.closed_at = utcnow()
        ticket.closed_by_id = actor.id
        ticket.closed_by_name = actor.name
        ticket.closing_reason = ClosingReason.resolved
        ticket.closing_note = closing_note
        add_history(
            ticket, "closed", actor=actor, details=closing_note or "Ticket closed",
            previous_status=previous, new_status=ticket.status,
        )
        await SpecialistService.adjust_load(db, ticket.assignee_id, -1)
        await db.flush()

        await create_audit_entry(
            db, action="close", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, old_values={"status": previous},
            new_values={"status": ticket.status},
        )
        await notify_ticket_user(
            db, ticket, ticket.owner_id, "Ticket closed",
            f"Ticket {ticket.ticket_number} has been closed.",
        )
        logger.info("Ticket %s closed by %s", ticket.ticket_number, actor.id)
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def reopen(
        db: AsyncSession,
        actor: Actor,
        ticket_id: uuid.UUID,
        reason: str,
    ) -> HelpdeskTicket:
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        HelpdeskService._require_owner(actor, ticket)
        if not reason or not reason.strip():
            raise BusinessRuleException(
                "MISSING_REOPEN_REASON", "A reason is required to reopen a ticket.",
            )
        ensure_status(ticket.status, REOPENABLE_STATUSES, "reopen")

        previous = ticket.status
        previous_assignee = ticket.assignee_name
        ticket.status = TicketStatus.reopened
        ticket.reopen_count = (ticket.reopen_count or 0) + 1
        for field in (
            "closed_at", "closed_by_id", "closed_by_name", "closing_reason", "closing_note",
            "user_confirmed_at", "assignee_id", "assignee_name", "assigned_by_id",
            "assigned_by_name", "assigned_at", "assignment_notes", "assignment_queue",
        ):
            setattr(ticket, field, None)
        ticket.progress_status = ProgressStatus.not_started
        add_message(ticket, MessageSender.employee, f"Ticket reopened: {reason.strip()}", actor=actor)
        add_history(
            ticket, "reopened", actor=actor,
            details=f"Reopened (previously handled by {previous_assignee or 'nobody'}). "
                    f"Reason: {reason.strip()}",
            previous_status=previous, new_status=ticket.status,
        )
        await db.flush()

        await create_audit_entry(
            db, action="reopen", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id, old_values={"status": previous},
            new_values={"status": ticket.status, "reopen_count": ticket.reopen_count},
        )
        await notify_ticket_role(
            db, ticket, MODULE_ADMIN_ROLES[ticket.module], "Ticket reopened",
            f"Ticket {ticket.ticket_number} was reopened by {actor.name}.",
        )
        logger.info(
            "Ticket %s reopened by %s (count=%d)",
            ticket.ticket_number, actor.id, ticket.reopen_count,
        )
        return await HelpdeskService.get_ticket(db, ticket_id)

    @staticmethod
    async def delete_ticket(db: AsyncSession, actor: Actor, ticket_id: uuid.UUID) -> None:
        if not actor.is_helpdesk_admin:
            raise ForbiddenException("Only helpdesk administrators can delete tickets.")
        ticket = await HelpdeskService.get_ticket(db, ticket_id)
        if ticket.status not in TERMINAL_STATUSES:
            await SpecialistService.adjust_load(db, ticket.assignee_id, -1)
        await create_audit_entry(
            db, action="delete", entity_type="helpdesk_ticket", entity_id=ticket.id,
            actor_id=actor.id,
            old_values={"ticket_number": ticket.ticket_number, "status": ticket.status},
        )
        await db.delete(ticket)
        await db.flush()
        logger.warning("Ticket %s deleted by %s", ticket.ticket_number, actor.id)

    # ── Sweeps ──────────────────────────────────────────────────────

    @staticmethod
    async def auto_close_stale(
        db: AsyncSession,
        *,
        now: Optional[datetime] = None,
        dry_run: bool = False,
    ) -> list[HelpdeskTicket]:
        """Auto-close tickets left in Work Completed without confirmation."""
        now = now or utcnow()
        cutoff = now - timedelta(hours=settings.AUTO_CLOSE_AFTER_COMPLETION_HOURS)
        candidates = (
            await db.execute(
                select(HelpdeskTicket)
                .options(selectinload(HelpdeskTicket.history))
                .where(
                    HelpdeskTicket.status == TicketStatus.work_completed,
                    HelpdeskTicket.user_confirmed_at.is_(None),
                )
            )
        ).scalars().all()
        stale = [
            t for t in candidates
            if as_utc(t.resolved_at or t.progress_updated_at or t.updated_at) <= cutoff
        ]
        if dry_run:
            return stale

        hours = settings.AUTO_CLOSE_AFTER_COMPLETION_HOURS
        for ticket in stale:
            ticket.status = TicketStatus.auto_closed
            ticket.closed_at = now
            ticket.closed_by_name = SYSTEM_ACTOR
            ticket.closing_reason = ClosingReason.auto_closed
            ticket.closing_note = f"Automatically closed after {hours}h without user confirmation."
            add_history(
                ticket, "auto_closed", details=ticket.closing_note,
                previous_status=TicketStatus.work_completed, new_status=ticket.status,
            )
            await SpecialistService.adjust_load(db, ticket.assignee_id, -1)
            await notify_ticket_user(
                db, ticket, ticket.owner_id, "Ticket auto-closed",
                f"Ticket {ticket.ticket_number} was closed automatically after {hours}h "
                "without confirmation.",
            )
            logger.info("Ticket %s auto-closed", ticket.ticket_number)
        await db.flush()
        return stale
