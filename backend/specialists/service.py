"""Specialist roster service — CRUD plus active-ticket load tracking."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.common.audit import create_audit_entry
from backend.common.constants import SpecialistStatus
from backend.common.exceptions import ConflictError, NotFoundException
from backend.core_hr.models import Employee
from backend.specialists.models import ITSpecialist
from backend.specialists.schemas import SpecialistCreate, SpecialistUpdate

logger = logging.getLogger(__name__)


class SpecialistService:

    @staticmethod
    async def list_specialists(
        db: AsyncSession,
        *,
        status: Optional[SpecialistStatus] = None,
        team: Optional[str] = None,
    ) -> list[ITSpecialist]:
        query = select(ITSpecialist).order_by(ITSpecialist.name)
        if status is not None:
            query = query.where(ITSpecialist.status == status)
        if team:
            query = query.where(ITSpecialist.team.ilike(team))
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def by_specialization(db: AsyncSession, specialization: str) -> list[ITSpecialist]:
        """Active specialists covering *specialization*, least loaded first."""
        wanted = specialization.strip().lower()
        specialists = await SpecialistService.list_specialists(
            db, status=SpecialistStatus.active,
        )
        matches = [
            s for s in specialists
            if wanted in {item.lower() for item in (s.specializations or [])}
        ]
        return sorted(matches, key=lambda s: (s.utilization, s.name))

    @staticmethod
    async def get_specialist(db: AsyncSession, specialist_id: uuid.UUID) -> ITSpecialist:
        specialist = await db.get(ITSpecialist, specialist_id)
        if specialist is None:
            raise NotFoundException("ITSpecialist", specialist_id)
        return specialist

    @staticmethod
    async def find_by_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Optional[ITSpecialist]:
        result = await db.execute(
            select(ITSpecialist).where(ITSpecialist.employee_id == employee_id),
        )
        return result.scalars().first()

    @staticmethod
    async def get_by_employee(db: AsyncSession, employee_id: uuid.UUID) -> ITSpecialist:
        specialist = await SpecialistService.find_by_employee(db, employee_id)
        if specialist is None:
            raise NotFoundException("ITSpecialist", f"employee {employee_id}")
        return specialist

    @staticmethod
    async def create_specialist(
        db: AsyncSession,
        data: SpecialistCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ITSpecialist:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", data.employee_id)

        email = (data.email or employee.email).lower()
        clash = await db.execute(
            select(ITSpecialist.id).where(
                or_(ITSpecialist.employee_id == data.employee_id, ITSpecialist.email == email),
            )
        )
        if clash.first() is not None:
            raise ConflictError("employee_id", str(data.employee_id))

        specialist = ITSpecialist(
            **data.model_dump(exclude={"name", "email"}),
            name=data.name or employee.name,
            email=email,
            active_ticket_count=0,
        )
        db.add(specialist)
        await db.flush()
        await create_audit_entry(
            db,
            action="create",
            entity_type="it_specialist",
            entity_id=specialist.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return specialist

    @staticmethod
    async def update_specialist(
        db: AsyncSession,
        specialist_id: uuid.UUID,
        data: SpecialistUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ITSpecialist:
        specialist = await SpecialistService.get_specialist(db, specialist_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(specialist, field, value)
        await db.flush()
        await create_audit_entry(
            db,
            action="update",
            entity_type="it_specialist",
            entity_id=specialist.id,
            actor_id=actor_id,
            new_values=changes,
        )
        return specialist

    @staticmethod
    async def delete_specialist(
        db: AsyncSession,
        specialist_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        specialist = await SpecialistService.get_specialist(db, specialist_id)
        await create_audit_entry(
            db,
            action="delete",
            entity_type="it_specialist",
            entity_id=specialist.id,
            actor_id=actor_id,
            old_values={"email": specialist.email, "team": specialist.team},
        )
        await db.delete(specialist)
        await db.flush()

    # ── Load tracking ───────────────────────────────────────────────

    @staticmethod
    async def increment(db: AsyncSession, specialist: ITSpecialist) -> ITSpecialist:
        specialist.active_ticket_count = (specialist.active_ticket_count or 0) + 1
        await db.flush()
        return specialist

    @staticmethod
    async def decrement(db: AsyncSession, specialist: ITSpecialist) -> ITSpecialist:
        """Decrease the active count; never goes below zero."""
        specialist.active_ticket_count = max(0, (specialist.active_ticket_count or 0) - 1)
        await db.flush()
        return specialist

    @staticmethod
    async def adjust_load(
        db: AsyncSession,
        employee_id: Optional[uuid.UUID],
        delta: int,
    ) -> Optional[ITSpecialist]:
        """Move the load of the employee's roster entry, if they have one."""
        if employee_id is None:
            return None
        specialist = await SpecialistService.find_by_employee(db, employee_id)
        if specialist is None:
            logger.debug("Employee %s has no specialist record; load unchanged", employee_id)
            return None
        if delta > 0:
            return await SpecialistService.increment(db, specialist)
        return await SpecialistService.decrement(db, specialist)
