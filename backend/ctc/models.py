"""CTC ORM models: one compensation master per employee plus its revision history."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.common.clock import utcnow
from backend.common.constants import CtcUom, Currency
from backend.database import Base, pg_enum


class CTCMaster(Base):
    __tablename__ = "ctc_master"
    __table_args__ = (
        sa.Index("ix_ctc_master_employee_name", "employee_name"),
        sa.Index("ix_ctc_master_currency", "currency"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), unique=True, nullable=False,
    )
    employee_code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    employee_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    employee_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    latest_annual_ctc: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), default=Decimal("0"))
    latest_planned_ctc: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), default=Decimal("0"))
    latest_actual_currency: Mapped[Currency] = mapped_column(
        pg_enum(Currency, "currency"), default=Currency.inr,
    )
    latest_actual_uom: Mapped[CtcUom] = mapped_column(
        pg_enum(CtcUom, "ctc_uom"), default=CtcUom.annual,
    )
    currency: Mapped[Currency] = mapped_column(pg_enum(Currency, "currency"), default=Currency.inr)
    uom: Mapped[CtcUom] = mapped_column(pg_enum(CtcUom, "ctc_uom"), default=CtcUom.annual)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    history: Mapped[list[CTCHistory]] = relationship(
        back_populates="master", cascade="all, delete-orphan",
        order_by="CTCHistory.from_date",
    )


class CTCHistory(Base):
    __tablename__ = "ctc_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    ctc_master_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("ctc_master.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actual_ctc: Mapped[Decimal] = mapped_column(sa.Numeric(14, 2), nullable=False)
    from_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    to_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    currency: Mapped[Currency] = mapped_column(pg_enum(Currency, "currency"), nullable=False)
    uom: Mapped[CtcUom] = mapped_column(pg_enum(CtcUom, "ctc_uom"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=utcnow)

    master: Mapped[CTCMaster] = relationship(back_populates="history")
