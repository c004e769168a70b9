"""CTC master service — compensation records and their revision history."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.common.audit import create_audit_entry
from backend.common.constants import CtcUom, Currency
from backend.common.exceptions import ConflictError, NotFoundException
from backend.common.filters import apply_search
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.core_hr.models import Employee
from backend.ctc.models import CTCHistory, CTCMaster
from backend.ctc.schemas import CTCCreate, CTCHistoryEntry, CTCUpdate

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = ["employee_code", "employee_name", "employee_email"]


def annualise(entry: CTCHistoryEntry) -> Decimal:
    """Annual figure for a history entry (monthly amounts × 12)."""
    if entry.uom == CtcUom.monthly:
        return entry.actual_ctc * 12
    return entry.actual_ctc


def _history_row(entry: CTCHistoryEntry) -> CTCHistory:
    return CTCHistory(
        actual_ctc=entry.actual_ctc,
        from_date=entry.from_date,
        to_date=entry.to_date,
        currency=entry.currency,
        uom=entry.uom,
    )


class CTCService:

    @staticmethod
    async def list_records(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        currency: Optional[Currency] = None,
    ) -> tuple[list[CTCMaster], PaginationMeta]:
        query = select(CTCMaster).options(selectinload(CTCMaster.history))
        if currency is not None:
            query = query.where(CTCMaster.currency == currency)
        query = apply_search(query, CTCMaster, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=CTCMaster, default_sort="employee_name")

    @staticmethod
    async def get_record(db: AsyncSession, record_id: uuid.UUID) -> CTCMaster:
        result = await db.execute(
            select(CTCMaster)
            .options(selectinload(CTCMaster.history))
            .where(CTCMaster.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundException("CTCMaster", record_id)
        return record

    @staticmethod
    async def create_record(
        db: AsyncSession,
        data: CTCCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CTCMaster:
        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", data.employee_id)
        existing = await db.execute(
            select(CTCMaster.id).where(CTCMaster.employee_id == data.employee_id)
        )
        if existing.first() is not None:
            raise ConflictError("employee_id", data.employee_id)

        record = CTCMaster(
            employee_id=employee.id,
            employee_code=employee.employee_code,
            employee_name=employee.name,
            employee_email=employee.email,
            latest_annual_ctc=data.latest_annual_ctc,
            latest_planned_ctc=data.latest_planned_ctc,
            latest_actual_currency=data.currency,
            latest_actual_uom=data.uom,
            currency=data.currency,
            uom=data.uom,
            history=[_history_row(entry) for entry in data.history],
        )
        db.add(record)
        await db.flush()

        await create_audit_entry(
            db, action="create", entity_type="ctc_master", entity_id=record.id,
            actor_id=actor_id,
            new_values={"employee_id": employee.id, "latest_annual_ctc": str(data.latest_annual_ctc)},
        )
        logger.info("CTC record created for employee %s", employee.id)
        return await CTCService.get_record(db, record.id)

    @staticmethod
    async def update_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        data: CTCUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CTCMaster:
        """Apply field changes; a new history entry also moves the latest actual CTC."""
        record = await CTCService.get_record(db, record_id)
        old = {"latest_annual_ctc": str(record.latest_annual_ctc)}

        changes = data.model_dump(exclude_unset=True, exclude={"new_history"})
        for field, value in changes.items():
            if value is not None:
                setattr(record, field, value)

        if data.new_history is not None:
            record.history.append(_history_row(data.new_history))
            record.latest_annual_ctc = annualise(data.new_history)
            record.latest_actual_currency = data.new_history.currency
            record.latest_actual_uom = data.new_history.uom
        await db.flush()

        await create_audit_entry(
            db, action="update", entity_type="ctc_master", entity_id=record.id,
            actor_id=actor_id, old_values=old,
            new_values={"latest_annual_ctc": str(record.latest_annual_ctc), **changes},
        )
        return await CTCService.get_record(db, record_id)

    @staticmethod
    async def delete_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        record = await CTCService.get_record(db, record_id)
        await create_audit_entry(
            db, action="delete", entity_type="ctc_master", entity_id=record.id,
            actor_id=actor_id, old_values={"employee_id": record.employee_id},
        )
        await db.delete(record)
        await db.flush()
        logger.info("CTC record %s deleted by %s", record_id, actor_id)
