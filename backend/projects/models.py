"""Project and allocation ORM models for resource management."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.clock import utcnow
from backend.common.constants import (
    AllocationStatus,
    BillingType,
    Currency,
    ProjectRegion,
    ProjectStatus,
)
from backend.database import Base, pg_enum


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="ck_projects_dates"
        ),
        sa.Index("ix_projects_status", "status"),
        sa.Index("ix_projects_project_manager_id", "project_manager_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    project_code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    account_name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    legal_entity: Mapped[Optional[str]] = mapped_column(sa.String(255))
    billing_type: Mapped[BillingType] = mapped_column(
        pg_enum(BillingType, "billing_type"), nullable=False
    )
    practice_unit: Mapped[Optional[str]] = mapped_column(sa.String(100))
    region: Mapped[ProjectRegion] = mapped_column(
        pg_enum(ProjectRegion, "project_region"), nullable=False
    )
    project_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    delivery_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    currency: Mapped[Currency] = mapped_column(
        pg_enum(Currency, "currency"), default=Currency.inr
    )
    estimated_value: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(14, 2))
    status: Mapped[ProjectStatus] = mapped_column(
        pg_enum(ProjectStatus, "project_status"), default=ProjectStatus.draft
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def manages(self, employee_id: uuid.UUID) -> bool:
        return employee_id in (self.project_manager_id, self.delivery_manager_id)

    def __repr__(self) -> str:
        return f"<Project {self.project_code} {self.status.value}>"


class Allocation(Base):
    """Share of an employee's time booked on a project, in percent."""

    __tablename__ = "allocations"
    __table_args__ = (
        sa.CheckConstraint(
            "allocation >= 0 AND allocation <= 100", name="ck_allocations_percent"
        ),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date", name="ck_allocations_dates"
        ),
        sa.Index("ix_allocations_employee_status", "employee_id", "status"),
        sa.Index("ix_allocations_project_status", "project_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    allocation: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    role: Mapped[Optional[str]] = mapped_column(sa.String(100))
    billable: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    status: Mapped[AllocationStatus] = mapped_column(
        pg_enum(AllocationStatus, "allocation_status"), default=AllocationStatus.active
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Allocation {self.employee_id} -> {self.project_id} {self.allocation}%>"
