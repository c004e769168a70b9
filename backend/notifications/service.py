"""Notification service — CRUD operations and cross-module helper dispatchers."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.service import get_employee_ids_with_role
from backend.common.clock import utcnow
from backend.common.constants import NotificationType, UserRole
from backend.common.exceptions import ForbiddenException, NotFoundException
from backend.common.pagination import PaginationParams, build_meta, count_rows
from backend.notifications.models import Notification
from backend.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.system,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        meta: Optional[dict[str, Any]] = None,
        recipient_role: Optional[UserRole] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            recipient_role=recipient_role,
            type=type,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def notify_users(
        db: AsyncSession,
        recipient_ids: list[uuid.UUID],
        **fields: Any,
    ) -> list[Notification]:
        """Send the same notification to several employees (deduplicated)."""
        created = []
        for recipient_id in dict.fromkeys(recipient_ids):
            created.append(
                await NotificationService.create_notification(
                    db, recipient_id=recipient_id, **fields,
                )
            )
        return created

    @staticmethod
    async def notify_role(
        db: AsyncSession,
        role: UserRole,
        *,
        exclude: Optional[uuid.UUID] = None,
        **fields: Any,
    ) -> list[Notification]:
        """Fan a notification out to every active holder of *role*."""
        recipient_ids = [
            emp_id for emp_id in await get_employee_ids_with_role(db, role)
            if emp_id != exclude
        ]
        if not recipient_ids:
            logger.info("No active holders of role %s; notification dropped", role.value)
        return await NotificationService.notify_users(
            db, recipient_ids, recipient_role=role, **fields,
        )

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        total = await count_rows(db, query)
        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        # Unread count (always unfiltered, for the badge)
        unread = await NotificationService.get_unread_count(db, employee_id)
        meta = build_meta(total, pagination.page, pagination.page_size)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(**meta.model_dump(), unread=unread),
        )

    @staticmethod
    async def _get_own(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only manage your own notifications.")
        return notification

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await NotificationService._get_own(db, notification_id, employee_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> None:
        notification = await NotificationService._get_own(db, notification_id, employee_id)
        await db.delete(notification)
        await db.flush()

    @staticmethod
    async def clear_all(db: AsyncSession, employee_id: uuid.UUID) -> int:
        """Delete every notification of the employee. Returns count removed."""
        result = await db.execute(
            delete(Notification)
            .where(Notification.recipient_id == employee_id)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]


# ── Cross-module helper dispatchers ─────────────────────────────────
# Imported by the helpdesk / approvals / leave / announcements services.
# They accept the ORM object directly to avoid tight schema coupling.


def _ticket_fields(ticket, title: str, message: str, type: NotificationType) -> dict[str, Any]:
    return {
        "type": type,
        "title": title,
        "message": message,
        "action_url": f"/helpdesk/tickets/{ticket.id}",
        "entity_type": "helpdesk_ticket",
        "entity_id": ticket.id,
        "meta": {
            "ticket_number": ticket.ticket_number,
            "status": ticket.status.value,
            "module": ticket.module.value,
        },
    }


async def notify_ticket_user(
    db: AsyncSession,
    ticket,  # backend.helpdesk.models.HelpdeskTicket
    recipient_id: Optional[uuid.UUID],
    title: str,
    message: str,
    type: NotificationType = NotificationType.ticket,
) -> Optional[Notification]:
    """Notify one employee about a ticket event (no-op without recipient)."""
    if recipient_id is None:
        return None
    return await NotificationService.create_notification(
        db, recipient_id=recipient_id, **_ticket_fields(ticket, title, message, type),
    )


async def notify_ticket_role(
    db: AsyncSession,
    ticket,  # backend.helpdesk.models.HelpdeskTicket
    role: UserRole,
    title: str,
    message: str,
    type: NotificationType = NotificationType.ticket,
    recipient_ids: Optional[list[uuid.UUID]] = None,
) -> list[Notification]:
    """Notify a role about a ticket event.

    When *recipient_ids* is given (configured approvers) only those
    employees are notified; otherwise every holder of the role is.
    """
    fields = _ticket_fields(ticket, title, message, type)
    if recipient_ids:
        return await NotificationService.notify_users(
            db, recipient_ids, recipient_role=role, **fields,
        )
    return await NotificationService.notify_role(db, role, **fields)


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # backend.leave.models.LeaveRequest
    approver_id: uuid.UUID,
) -> Notification:
    """Notify the approver that a new leave request needs review."""
    return await NotificationService.create_notification(
        db,
        recipient_id=approver_id,
        type=NotificationType.leave,
        title="New Leave Request",
        message=(
            f"{leave_request.employee_name} requested {leave_request.leave_type.value} "
            f"from {leave_request.start_date} to {leave_request.end_date} "
            f"({leave_request.days} day(s))."
        ),
        action_url=f"/leave/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,  # backend.leave.models.LeaveRequest
) -> Notification:
    """Notify the employee that their leave request was approved."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval,
        title="Leave Request Approved",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} has been approved."
        ),
        action_url=f"/leave/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_rejected(
    db: AsyncSession,
    leave_request,  # backend.leave.models.LeaveRequest
    reason: str,
) -> Notification:
    """Notify the employee that their leave request was rejected."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.rejection,
        title="Leave Request Rejected",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} was rejected. Reason: {reason}"
        ),
        action_url=f"/leave/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_announcement_published(
    db: AsyncSession,
    announcement,  # backend.announcements.models.Announcement
) -> list[Notification]:
    """Tell every active employee about a new announcement."""
    return await NotificationService.notify_role(
        db,
        UserRole.employee,
        exclude=announcement.author_id,
        type=NotificationType.announcement,
        title=f"New announcement: {announcement.title}",
        message=announcement.content[:200],
        action_url=f"/announcements/{announcement.id}",
        entity_type="announcement",
        entity_id=announcement.id,
        meta={"category": announcement.category, "priority": announcement.priority},
    )


async def notify_timesheet_submitted(
    db: AsyncSession,
    *,
    employee_id: uuid.UUID,
    employee_name: str,
    week_start,
    approver_ids: list[uuid.UUID],
) -> list[Notification]:
    """Ask the approvers (or RMG when there are none) to review a submitted week."""
    fields: dict[str, Any] = dict(
        type=NotificationType.approval,
        title="Timesheet Submitted",
        message=f"{employee_name} submitted a timesheet for the week of {week_start}.",
        action_url=f"/timesheets/approvals?employee_id={employee_id}&week_start={week_start}",
        entity_type="timesheet_week",
        entity_id=employee_id,
        meta={"week_start": str(week_start)},
    )
    if approver_ids:
        return await NotificationService.notify_users(db, approver_ids, **fields)
    return await NotificationService.notify_role(db, UserRole.rmg, exclude=employee_id, **fields)


_TIMESHEET_TITLES = {"approved": "Timesheet Approved", "rejected": "Timesheet Rejected"}


async def notify_timesheet_reviewed(
    db: AsyncSession,
    *,
    employee_id: uuid.UUID,
    week_start,
    outcome: str,
    entries: int,
    reason: Optional[str] = None,
) -> Notification:
    """Tell the employee that entries of their week were approved, rejected or sent back."""
    noun = "entry" if entries == 1 else "entries"
    message = f"{entries} timesheet {noun} for the week of {week_start} {outcome}."
    if reason:
        message += f" Reason: {reason}"
    return await NotificationService.create_notification(
        db,
        recipient_id=employee_id,
        type=NotificationType.approval if outcome == "approved" else NotificationType.rejection,
        title=_TIMESHEET_TITLES.get(outcome, "Timesheet Revision Requested"),
        message=message,
        action_url=f"/timesheets/week/{week_start}",
        entity_type="timesheet_week",
        entity_id=employee_id,
        meta={"week_start": str(week_start), "outcome": outcome},
    )


async def notify_timesheet_reminder(
    db: AsyncSession,
    *,
    employee_id: uuid.UUID,
    week_start,
    sender_name: str,
    project_name: Optional[str] = None,
) -> Notification:
    """Remind an employee to fill in a week."""
    return await NotificationService.create_notification(
        db,
        recipient_id=employee_id,
        type=NotificationType.reminder,
        title="Timesheet Reminder",
        message=(
            f"Please submit your timesheet for the week of {week_start}"
            f"{f' for {project_name}' if project_name else ''}. Reminder from {sender_name}."
        ),
        action_url=f"/timesheets/week/{week_start}",
        entity_type="timesheet_week",
        entity_id=employee_id,
        meta={"week_start": str(week_start)},
    )
