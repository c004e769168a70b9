"""Helpdesk specialist roster — capacity and live load per specialist."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.clock import utcnow
from backend.common.constants import SpecialistStatus
from backend.database import Base, pg_enum


class ITSpecialist(Base):
    __tablename__ = "it_specialists"
    __table_args__ = (
        sa.CheckConstraint("active_ticket_count >= 0", name="ck_specialist_count_non_negative"),
        sa.CheckConstraint("max_capacity >= 1", name="ck_specialist_capacity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    specializations: Mapped[list] = mapped_column(JSONB, default=list)
    team: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    designation: Mapped[Optional[str]] = mapped_column(sa.String(150))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    status: Mapped[SpecialistStatus] = mapped_column(
        pg_enum(SpecialistStatus, "specialist_status"),
        default=SpecialistStatus.active,
    )
    active_ticket_count: Mapped[int] = mapped_column(sa.Integer, default=0)
    max_capacity: Mapped[int] = mapped_column(sa.Integer, default=5)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    @property
    def utilization(self) -> float:
        """Active tickets as a percentage of capacity."""
        if not self.max_capacity:
            return 0.0
        return round((self.active_ticket_count or 0) / self.max_capacity * 100, 2)

    def __repr__(self) -> str:
        return f"<ITSpecialist {self.email} {self.active_ticket_count}/{self.max_capacity}>"
