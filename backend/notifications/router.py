"""Notification endpoints — list, mark read, unread count, delete, send."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, require_permission
from backend.common.constants import NotificationType
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.notifications.schemas import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
)
from backend.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    return await NotificationService.get_notifications(
        db,
        employee_id=employee.id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── POST / — send a notification (HR / super_admin) ─────────────────

@router.post("", status_code=201)
async def send_notification(
    body: NotificationCreate,
    sender: Employee = Depends(require_permission("notification:send")),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump(exclude={"recipient_id", "recipient_role"})
    if body.recipient_id is not None:
        created = [
            await NotificationService.create_notification(
                db, recipient_id=body.recipient_id, **fields,
            )
        ]
    else:
        created = await NotificationService.notify_role(db, body.recipient_role, **fields)
    await db.commit()
    return {
        "message": f"Notification sent to {len(created)} recipient(s)",
        "data": {"count": len(created)},
    }


# ── GET /unread-count — badge count ─────────────────────────────────
# NOTE: Static paths MUST be registered before /{notification_id}
# so FastAPI does not treat them as a UUID path parameter.

@router.get("/unread-count")
async def unread_count(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the number of unread notifications (for header badge)."""
    count = await NotificationService.get_unread_count(db, employee.id)
    return {"data": {"count": count}}


# ── PUT /read-all — bulk mark all as read ───────────────────────────

@router.put("/read-all")
async def mark_all_read(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the authenticated user."""
    count = await NotificationService.mark_all_read(db, employee.id)
    await db.commit()
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── DELETE /clear-all ───────────────────────────────────────────────

@router.delete("/clear-all")
async def clear_all(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.clear_all(db, employee.id)
    await db.commit()
    return {"message": "All notifications cleared", "data": {"count": count}}


# ── PUT /{notification_id}/read — mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    await db.commit()
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }


# ── DELETE /{notification_id} ───────────────────────────────────────

@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, employee.id)
    await db.commit()
