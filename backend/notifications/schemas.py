"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from backend.common.constants import NotificationType, UserRole
from backend.common.pagination import PaginationMeta


# ── Requests ────────────────────────────────────────────────────────

class NotificationCreate(BaseModel):
    """Manual notification sent by HR / super_admin.

    Exactly one of ``recipient_id`` / ``recipient_role`` must be given.
    """

    recipient_id: Optional[uuid.UUID] = None
    recipient_role: Optional[UserRole] = None
    type: NotificationType = NotificationType.system
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    action_url: Optional[str] = Field(None, max_length=500)
    entity_type: Optional[str] = Field(None, max_length=50)
    entity_id: Optional[uuid.UUID] = None
    meta: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def _one_target(self) -> "NotificationCreate":
        if (self.recipient_id is None) == (self.recipient_role is None):
            raise ValueError("Provide exactly one of recipient_id or recipient_role.")
        return self


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    recipient_id: uuid.UUID
    recipient_role: Optional[UserRole] = None
    type: NotificationType
    title: str
    message: str
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    meta: Optional[dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    """Paginated list of notifications with unread count in meta."""

    data: list[NotificationResponse]
    meta: NotificationListMeta
