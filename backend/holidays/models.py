"""Holiday calendar ORM model."""

from __future__ import annotations

import uuid
import datetime as dt
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.clock import utcnow
from backend.common.constants import HolidayType
from backend.database import Base, pg_enum


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (
        sa.UniqueConstraint("date", "name", name="uq_holidays_date_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    date: Mapped[dt.date] = mapped_column(sa.Date, nullable=False, index=True)
    type: Mapped[HolidayType] = mapped_column(
        pg_enum(HolidayType, "holiday_type"), default=HolidayType.national,
    )
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    image_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    created_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Holiday {self.date} {self.name}>"
