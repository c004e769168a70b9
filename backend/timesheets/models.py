"""Timesheet ORM model: one row per employee, day, project and activity.

The weekly grid shown to employees is derived from these rows; there is no
separate week table.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.clock import utcnow
from backend.common.constants import TimesheetApprovalStatus, TimesheetStatus
from backend.database import Base, pg_enum


class TimesheetEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "work_date", "project_id", "activity",
            name="uq_timesheet_entries_slot",
        ),
        sa.CheckConstraint(
            "minutes > 0 AND minutes <= 1440", name="ck_timesheet_entries_minutes"
        ),
        sa.Index("ix_timesheet_entries_employee_date", "employee_id", "work_date"),
        sa.Index("ix_timesheet_entries_project_approval", "project_id", "approval_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    employee_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="SET NULL")
    )
    project_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    activity: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    billable: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    minutes: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[TimesheetStatus] = mapped_column(
        pg_enum(TimesheetStatus, "timesheet_status"), default=TimesheetStatus.submitted
    )
    approval_status: Mapped[TimesheetApprovalStatus] = mapped_column(
        pg_enum(TimesheetApprovalStatus, "timesheet_approval_status"),
        default=TimesheetApprovalStatus.pending,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    review_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    @property
    def hours(self) -> str:
        return format_minutes(self.minutes)

    def __repr__(self) -> str:
        return f"<TimesheetEntry {self.employee_id} {self.work_date} {self.activity} {self.hours}>"


def format_minutes(minutes: int) -> str:
    """540 -> "09:00"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
