"""Holiday calendar service."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import extract, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.common.audit import create_audit_entry
from backend.common.constants import HolidayType
from backend.common.exceptions import ConflictError, NotFoundException
from backend.holidays.models import Holiday
from backend.holidays.schemas import HolidayCreate, HolidayUpdate


class HolidayService:

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        holiday_type: Optional[HolidayType] = None,
    ) -> list[Holiday]:
        """Holidays ordered by date, optionally limited to one calendar year."""
        query = select(Holiday).order_by(Holiday.date.asc(), Holiday.name.asc())
        if year is not None:
            query = query.where(extract("year", Holiday.date) == year)
        if holiday_type is not None:
            query = query.where(Holiday.type == holiday_type)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def upcoming(db: AsyncSession, *, today: date, limit: int = 5) -> list[Holiday]:
        result = await db.execute(
            select(Holiday)
            .where(Holiday.date >= today)
            .order_by(Holiday.date.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def blocking_dates(db: AsyncSession, start: date, end: date) -> set[date]:
        """Dates in [start, end] that are non-working holidays.

        Optional holidays are not blocking.
        """
        result = await db.execute(
            select(Holiday.date).where(
                Holiday.date >= start,
                Holiday.date <= end,
                Holiday.type != HolidayType.optional,
            )
        )
        return {row[0] for row in result.all()}

    @staticmethod
    async def get_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", holiday_id)
        return holiday

    @staticmethod
    async def _ensure_unique(
        db: AsyncSession,
        day: date,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Holiday.id).where(Holiday.date == day, Holiday.name == name)
        if exclude_id is not None:
            query = query.where(Holiday.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("holiday", f"{name} on {day}")

    @staticmethod
    async def create_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Holiday:
        await HolidayService._ensure_unique(db, data.date, data.name)
        holiday = Holiday(**data.model_dump())
        db.add(holiday)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return holiday

    @staticmethod
    async def update_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        data: HolidayUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Holiday:
        holiday = await HolidayService.get_holiday(db, holiday_id)
        changes = data.model_dump(exclude_unset=True)
        if "date" in changes or "name" in changes:
            await HolidayService._ensure_unique(
                db,
                changes.get("date") or holiday.date,
                changes.get("name") or holiday.name,
                exclude_id=holiday.id,
            )
        for field, value in changes.items():
            setattr(holiday, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=changes,
        )
        return holiday

    @staticmethod
    async def delete_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        holiday = await HolidayService.get_holiday(db, holiday_id)
        await create_audit_entry(
            db,
            action="delete",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            old_values={"name": holiday.name, "date": holiday.date},
        )
        await db.delete(holiday)
        await db.flush()
