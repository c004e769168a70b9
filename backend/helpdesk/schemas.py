"""Helpdesk Pydantic schemas — request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.common.constants import (
    ApprovalDecision,
    ApprovalLevel,
    ApprovalStatus,
    ClosingReason,
    MessageSender,
    MessageType,
    ProgressStatus,
    SlaStatus,
    TicketModule,
    TicketStatus,
    TicketUrgency,
)
from backend.config import settings


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class Attachment(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    size: Optional[int] = Field(None, ge=0)


class TicketCreate(BaseModel):
    module: TicketModule
    sub_category: str = Field(..., min_length=1, max_length=150)
    subject: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=10000)
    urgency: TicketUrgency = TicketUrgency.medium
    requires_approval: bool = False
    attachments: list[Attachment] = []

    @field_validator("attachments")
    @classmethod
    def _attachment_limit(cls, value: list[Attachment]) -> list[Attachment]:
        if len(value) > settings.MAX_TICKET_ATTACHMENTS:
            raise ValueError(
                f"At most {settings.MAX_TICKET_ATTACHMENTS} attachments are allowed."
            )
        return value


class StatusUpdate(BaseModel):
    status: TicketStatus
    reason: Optional[str] = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    attachments: list[Attachment] = []


class AssignRequest(BaseModel):
    assignee_id: uuid.UUID
    notes: Optional[str] = Field(None, max_length=2000)
    queue: Optional[str] = Field(None, max_length=150)


class ReassignRequest(BaseModel):
    assignee_id: uuid.UUID
    reason: str = Field("", max_length=2000)


class ProgressUpdate(BaseModel):
    progress_status: ProgressStatus
    notes: Optional[str] = Field(None, max_length=5000)


class CompleteRequest(BaseModel):
    resolution_notes: str = Field("", max_length=5000)


class ConfirmRequest(BaseModel):
    feedback: Optional[str] = Field(None, max_length=2000)


class PauseRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class CloseRequest(BaseModel):
    closing_note: Optional[str] = Field(None, max_length=2000)


class ReopenRequest(BaseModel):
    reason: str = Field("", max_length=2000)


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sender: MessageSender
    sender_id: Optional[uuid.UUID] = None
    sender_name: str
    message: str
    message_type: MessageType
    attachments: list[Attachment] = []
    created_at: datetime


class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    action: str
    performed_by_id: Optional[uuid.UUID] = None
    performed_by: str
    performed_by_role: Optional[str] = None
    details: Optional[str] = None
    previous_status: Optional[TicketStatus] = None
    new_status: Optional[TicketStatus] = None
    created_at: datetime


class ApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    level: ApprovalLevel
    approver_id: uuid.UUID
    approver_name: str
    approver_email: str
    decision: ApprovalDecision
    comments: Optional[str] = None
    decided_at: datetime


class TicketSummary(BaseModel):
    """Ticket without its child collections (lists, dashboards)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    ticket_number: str
    owner_id: uuid.UUID
    owner_name: str
    owner_email: str
    owner_department: Optional[str] = None
    module: TicketModule
    sub_category: str
    subject: str
    urgency: TicketUrgency
    status: TicketStatus
    requires_approval: bool
    current_approval_level: ApprovalLevel
    approval_completed: bool
    approval_status: ApprovalStatus
    routed_to: Optional[TicketModule] = None
    assignee_id: Optional[uuid.UUID] = None
    assignee_name: Optional[str] = None
    sla_status: SlaStatus
    due_at: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None


class TicketDetail(TicketSummary):
    description: str
    attachments: list[Attachment] = []
    processing_queue: Optional[str] = None
    specialist_queue: Optional[str] = None
    assigned_by_id: Optional[uuid.UUID] = None
    assigned_by_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    assignment_notes: Optional[str] = None
    assignment_queue: Optional[str] = None
    progress_status: ProgressStatus
    progress_notes: Optional[str] = None
    progress_updated_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    approval_deadline: Optional[datetime] = None
    processing_deadline: datetime
    overdue_by_hours: float = 0.0
    first_response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closed_by_id: Optional[uuid.UUID] = None
    closed_by_name: Optional[str] = None
    closing_reason: Optional[ClosingReason] = None
    closing_note: Optional[str] = None
    user_confirmed_at: Optional[datetime] = None
    reopen_count: int = 0
    messages: list[MessageOut] = []
    history: list[HistoryOut] = []
    approvals: list[ApprovalOut] = []
