"""Helpdesk ORM models: tickets and their conversation, history and approvals.

SQLAlchemy 2.0 async-compatible models. Child collections are loaded
explicitly with ``selectinload``; never rely on lazy loading under asyncio.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.common.clock import utcnow
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
from backend.database import Base, pg_enum


# ═════════════════════════════════════════════════════════════════════
# HelpdeskTicket
# ═════════════════════════════════════════════════════════════════════


class HelpdeskTicket(Base):
    """Helpdesk request raised by an employee."""

    __tablename__ = "helpdesk_tickets"
    __table_args__ = (
        sa.Index("ix_helpdesk_tickets_owner", "owner_id"),
        sa.Index("ix_helpdesk_tickets_assignee", "assignee_id"),
        sa.Index("ix_helpdesk_tickets_status", "status"),
        sa.Index("ix_helpdesk_tickets_module_status", "module", "status"),
        sa.CheckConstraint("reopen_count >= 0", name="ck_helpdesk_reopen_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    ticket_number: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)

    # ── Owner (denormalised for listings) ───────────────────────────
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    owner_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    owner_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    owner_department: Mapped[Optional[str]] = mapped_column(sa.String(150))

    # ── Request ─────────────────────────────────────────────────────
    module: Mapped[TicketModule] = mapped_column(
        pg_enum(TicketModule, "ticket_module"), nullable=False,
    )
    sub_category: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    subject: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    description: Mapped[str] = mapped_column(sa.Text, nullable=False)
    urgency: Mapped[TicketUrgency] = mapped_column(
        pg_enum(TicketUrgency, "ticket_urgency"), default=TicketUrgency.medium,
    )
    status: Mapped[TicketStatus] = mapped_column(
        pg_enum(TicketStatus, "ticket_status"), nullable=False,
    )
    attachments: Mapped[list] = mapped_column(JSONB, default=list)

    # ── Approval ────────────────────────────────────────────────────
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    current_approval_level: Mapped[ApprovalLevel] = mapped_column(
        pg_enum(ApprovalLevel, "approval_level"), default=ApprovalLevel.none,
    )
    approval_completed: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        pg_enum(ApprovalStatus, "approval_status"), default=ApprovalStatus.pending,
    )

    # ── Routing ─────────────────────────────────────────────────────
    routed_to: Mapped[Optional[TicketModule]] = mapped_column(
        pg_enum(TicketModule, "ticket_module"),
    )
    processing_queue: Mapped[Optional[str]] = mapped_column(sa.String(150))
    specialist_queue: Mapped[Optional[str]] = mapped_column(sa.String(150))

    # ── Assignment ──────────────────────────────────────────────────
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    assignee_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    assigned_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    assigned_by_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    assigned_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    assignment_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    assignment_queue: Mapped[Optional[str]] = mapped_column(sa.String(150))

    # ── Progress / resolution ───────────────────────────────────────
    progress_status: Mapped[ProgressStatus] = mapped_column(
        pg_enum(ProgressStatus, "progress_status"), default=ProgressStatus.not_started,
    )
    progress_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    progress_updated_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    resolution_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    resolved_by: Mapped[Optional[str]] = mapped_column(sa.String(255))
    resolved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── SLA ─────────────────────────────────────────────────────────
    approval_deadline: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    processing_deadline: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False,
    )
    due_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    sla_status: Mapped[SlaStatus] = mapped_column(
        pg_enum(SlaStatus, "sla_status"), default=SlaStatus.on_track,
    )
    overdue_by_hours: Mapped[float] = mapped_column(sa.Float, default=0.0)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    # ── Closure ─────────────────────────────────────────────────────
    closed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    closed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"),
    )
    closed_by_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    closing_reason: Mapped[Optional[ClosingReason]] = mapped_column(
        pg_enum(ClosingReason, "closing_reason"),
    )
    closing_note: Mapped[Optional[str]] = mapped_column(sa.Text)
    user_confirmed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reopen_count: Mapped[int] = mapped_column(sa.Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    # ── Relationships ───────────────────────────────────────────────
    messages: Mapped[list[TicketMessage]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan",
        order_by="TicketMessage.created_at",
    )
    history: Mapped[list[TicketHistory]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan",
        order_by="TicketHistory.created_at",
    )
    approvals: Mapped[list[TicketApproval]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan",
        order_by="TicketApproval.decided_at",
    )

    def __repr__(self) -> str:
        return f"<HelpdeskTicket {self.ticket_number} [{self.status.value}]>"


# ═════════════════════════════════════════════════════════════════════
# Children
# ═════════════════════════════════════════════════════════════════════


class TicketMessage(Base):
    """One entry in a ticket conversation."""

    __tablename__ = "ticket_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("helpdesk_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender: Mapped[MessageSender] = mapped_column(
        pg_enum(MessageSender, "message_sender"), nullable=False,
    )
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    sender_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(
        pg_enum(MessageType, "message_type"), default=MessageType.message,
    )
    attachments: Mapped[list] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )

    ticket: Mapped[HelpdeskTicket] = relationship(back_populates="messages")


class TicketHistory(Base):
    """Append-only record of every lifecycle action on a ticket."""

    __tablename__ = "ticket_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("helpdesk_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    performed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    performed_by: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    performed_by_role: Mapped[Optional[str]] = mapped_column(sa.String(50))
    details: Mapped[Optional[str]] = mapped_column(sa.Text)
    previous_status: Mapped[Optional[TicketStatus]] = mapped_column(
        pg_enum(TicketStatus, "ticket_status"),
    )
    new_status: Mapped[Optional[TicketStatus]] = mapped_column(
        pg_enum(TicketStatus, "ticket_status"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )

    ticket: Mapped[HelpdeskTicket] = relationship(back_populates="history")


class TicketApproval(Base):
    """One approver's decision at one level."""

    __tablename__ = "ticket_approvals"
    __table_args__ = (
        sa.UniqueConstraint(
            "ticket_id", "level", "approver_id", name="uq_ticket_approvals_level_approver",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("helpdesk_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[ApprovalLevel] = mapped_column(
        pg_enum(ApprovalLevel, "approval_level"), nullable=False,
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False,
    )
    approver_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    approver_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    decision: Mapped[ApprovalDecision] = mapped_column(
        pg_enum(ApprovalDecision, "approval_decision"), nullable=False,
    )
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )

    ticket: Mapped[HelpdeskTicket] = relationship(back_populates="approvals")


class TicketCounter(Base):
    """Monotonic sequence behind ``TKT0001``-style ticket numbers."""

    __tablename__ = "ticket_counters"

    name: Mapped[str] = mapped_column(sa.String(50), primary_key=True)
    seq: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
