"""Leave service — apply, review, cancel and derived balances."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor
from backend.common.audit import create_audit_entry
from backend.common.clock import utcnow
from backend.common.constants import (
    LEAVE_ENTITLEMENTS,
    HalfDaySession,
    LeaveStatus,
    LeaveType,
    UserRole,
)
from backend.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.core_hr.models import Employee
from backend.holidays.service import HolidayService
from backend.leave.models import LeaveRequest
from backend.leave.schemas import LeaveApply, LeaveUpdate
from backend.notifications.service import (
    notify_leave_approved,
    notify_leave_rejected,
    notify_leave_request,
)

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = (LeaveStatus.pending, LeaveStatus.in_review)
_INACTIVE_STATUSES = (LeaveStatus.rejected, LeaveStatus.cancelled)
DEFAULT_REJECTION_REASON = "No reason provided"


class LeaveService:
    """Business logic for leave requests."""

    # ── Day counting ────────────────────────────────────────────────

    @staticmethod
    def _working_days(start: date, end: date, holidays: set[date]) -> list[date]:
        days: list[date] = []
        current = start
        while current <= end:
            if current.weekday() < 5 and current not in holidays:
                days.append(current)
            current += timedelta(days=1)
        return days

    @staticmethod
    async def count_days(
        db: AsyncSession,
        start: date,
        end: date,
        half_day_session: Optional[HalfDaySession] = None,
    ) -> Decimal:
        """Weekdays in [start, end] minus non-optional holidays.

        A half-day request counts 0.5 when its single day is a working day.
        """
        holidays = await HolidayService.blocking_dates(db, start, end)
        working = LeaveService._working_days(start, end, holidays)
        if half_day_session is not None:
            return Decimal("0.5") if working else Decimal("0")
        return Decimal(len(working))

    # ── Balances ────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> dict[str, dict[str, float]]:
        """``{type: {total, used, available}}`` from approved leaves starting in *year*."""
        year = year or utcnow().year
        result = await db.execute(
            select(LeaveRequest.leave_type, LeaveRequest.days).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        )
        used: dict[LeaveType, Decimal] = defaultdict(Decimal)
        for leave_type, days in result.all():
            used[leave_type] += Decimal(days)

        return {
            leave_type.value: {
                "total": float(total),
                "used": float(used[leave_type]),
                "available": float(Decimal(total) - used[leave_type]),
            }
            for leave_type, total in LEAVE_ENTITLEMENTS.items()
        }

    # ── Validation helpers ──────────────────────────────────────────

    @staticmethod
    async def _ensure_no_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveRequest.id).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.not_in(_INACTIVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("dates", f"{start.isoformat()} to {end.isoformat()}")

    @staticmethod
    async def _validated_days(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        start: date,
        end: date,
        half_day_session: Optional[HalfDaySession],
    ) -> Decimal:
        days = await LeaveService.count_days(db, start, end, half_day_session)
        if days <= 0:
            raise ValidationException(
                {"dates": ["No working days in the selected range (weekends or holidays)."]}
            )
        balance = await LeaveService.get_balance(db, employee_id, start.year)
        available = Decimal(str(balance[leave_type.value]["available"]))
        if days > available:
            raise ValidationException(
                {"balance": [
                    f"Insufficient {leave_type.value} balance. "
                    f"Available: {available}, Requested: {days}."
                ]}
            )
        return days

    @staticmethod
    def _is_hr(actor: Actor) -> bool:
        return actor.has_role(UserRole.hr)

    # ── Apply ───────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee: Employee,
        data: LeaveApply,
    ) -> LeaveRequest:
        await LeaveService._ensure_no_overlap(db, employee.id, data.start_date, data.end_date)
        days = await LeaveService._validated_days(
            db, employee.id, data.leave_type, data.start_date, data.end_date,
            data.half_day_session,
        )

        leave = LeaveRequest(
            employee_id=employee.id,
            employee_name=employee.name,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            half_day_session=data.half_day_session,
            days=days,
            reason=data.reason,
            status=LeaveStatus.pending,
            manager_id=employee.reporting_manager_id,
        )
        db.add(leave)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=employee.id,
            new_values={
                "leave_type": data.leave_type,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "days": str(days),
            },
        )
        if leave.manager_id:
            await notify_leave_request(db, leave, leave.manager_id)

        logger.info(
            "Leave %s applied by %s: %s %s..%s (%s days)",
            leave.id, employee.id, data.leave_type.value,
            data.start_date, data.end_date, days,
        )
        return leave

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def _get(db: AsyncSession, leave_id: uuid.UUID) -> LeaveRequest:
        leave = await db.get(LeaveRequest, leave_id)
        if leave is None:
            raise NotFoundException("LeaveRequest", leave_id)
        return leave

    @staticmethod
    async def get_leave(db: AsyncSession, actor: Actor, leave_id: uuid.UUID) -> LeaveRequest:
        leave = await LeaveService._get(db, leave_id)
        if actor.id not in (leave.employee_id, leave.manager_id) and not LeaveService._is_hr(actor):
            raise ForbiddenException("You do not have access to this leave request.")
        return leave

    @staticmethod
    async def list_leaves(
        db: AsyncSession,
        actor: Actor,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[LeaveRequest], PaginationMeta]:
        """HR sees every request; managers see their reportees' requests."""
        query = select(LeaveRequest)
        if not LeaveService._is_hr(actor):
            query = query.where(LeaveRequest.manager_id == actor.id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if leave_type is not None:
            query = query.where(LeaveRequest.leave_type == leave_type)
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        return await paginate(db, query, pagination, model=LeaveRequest, default_sort="-created_at")

    @staticmethod
    async def my_leaves(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> tuple[list[LeaveRequest], PaginationMeta]:
        query = select(LeaveRequest).where(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        return await paginate(db, query, pagination, model=LeaveRequest, default_sort="-start_date")

    @staticmethod
    async def pending_for(db: AsyncSession, actor: Actor) -> list[LeaveRequest]:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status.in_(REVIEWABLE_STATUSES))
            .order_by(LeaveRequest.start_date.asc())
        )
        if not LeaveService._is_hr(actor):
            query = query.where(LeaveRequest.manager_id == actor.id)
        return list((await db.execute(query)).scalars().all())

    # ── Review ──────────────────────────────────────────────────────

    @staticmethod
    def _ensure_reviewer(actor: Actor, leave: LeaveRequest) -> None:
        if actor.id == leave.employee_id:
            raise ForbiddenException("You cannot review your own leave request.")
        if actor.id != leave.manager_id and not LeaveService._is_hr(actor):
            raise ForbiddenException("Only the reporting manager or HR can review this request.")
        if leave.status not in REVIEWABLE_STATUSES:
            raise BusinessRuleException(
                "INVALID_STATUS",
                f"Cannot review a leave request in status '{leave.status.value}'.",
            )

    @staticmethod
    async def approve_leave(db: AsyncSession, actor: Actor, leave_id: uuid.UUID) -> LeaveRequest:
        leave = await LeaveService._get(db, leave_id)
        LeaveService._ensure_reviewer(actor, leave)

        old_status = leave.status
        leave.status = LeaveStatus.approved
        leave.reviewed_by_id = actor.id
        leave.reviewed_at = utcnow()
        await db.flush()

        await create_audit_entry(
            db, action="approve", entity_type="leave_request", entity_id=leave.id,
            actor_id=actor.id, old_values={"status": old_status},
            new_values={"status": leave.status},
        )
        await notify_leave_approved(db, leave)
        logger.info("Leave %s approved by %s", leave.id, actor.id)
        return leave

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        actor: Actor,
        leave_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        leave = await LeaveService._get(db, leave_id)
        LeaveService._ensure_reviewer(actor, leave)

        old_status = leave.status
        leave.status = LeaveStatus.rejected
        leave.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        leave.reviewed_by_id = actor.id
        leave.reviewed_at = utcnow()
        await db.flush()

        await create_audit_entry(
            db, action="reject", entity_type="leave_request", entity_id=leave.id,
            actor_id=actor.id, old_values={"status": old_status},
            new_values={"status": leave.status, "reason": leave.rejection_reason},
        )
        await notify_leave_rejected(db, leave, leave.rejection_reason)
        logger.info("Leave %s rejected by %s", leave.id, actor.id)
        return leave

    # ── Owner operations ────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        actor: Actor,
        leave_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        leave = await LeaveService._get(db, leave_id)
        if actor.id != leave.employee_id and not LeaveService._is_hr(actor):
            raise ForbiddenException("You can only cancel your own leave requests.")
        if leave.status == LeaveStatus.cancelled:
            raise BusinessRuleException("ALREADY_CANCELLED", "Leave request is already cancelled.")

        old_status = leave.status
        leave.status = LeaveStatus.cancelled
        leave.cancelled_at = utcnow()
        leave.cancellation_reason = reason
        await db.flush()

        await create_audit_entry(
            db, action="cancel", entity_type="leave_request", entity_id=leave.id,
            actor_id=actor.id, old_values={"status": old_status},
            new_values={"status": leave.status, "reason": reason},
        )
        logger.info("Leave %s cancelled by %s", leave.id, actor.id)
        return leave

    @staticmethod
    async def update_leave(
        db: AsyncSession,
        actor: Actor,
        leave_id: uuid.UUID,
        data: LeaveUpdate,
    ) -> LeaveRequest:
        leave = await LeaveService._get(db, leave_id)
        if actor.id != leave.employee_id:
            raise ForbiddenException("You can only edit your own leave requests.")
        if leave.status != LeaveStatus.pending:
            raise BusinessRuleException(
                "INVALID_STATUS", "Only pending leave requests can be edited.",
            )

        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_date", leave.start_date)
        end = changes.get("end_date", leave.end_date)
        half_day = changes.get("half_day_session", leave.half_day_session)
        leave_type = changes.get("leave_type", leave.leave_type)
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        if half_day is not None and start != end:
            raise ValidationException(
                {"half_day_session": ["Half-day leave is only allowed for a single day."]}
            )

        await LeaveService._ensure_no_overlap(db, leave.employee_id, start, end, exclude_id=leave.id)
        leave.days = await LeaveService._validated_days(
            db, leave.employee_id, leave_type, start, end, half_day,
        )
        leave.start_date = start
        leave.end_date = end
        leave.half_day_session = half_day
        leave.leave_type = leave_type
        if "reason" in changes and changes["reason"]:
            leave.reason = changes["reason"]
        await db.flush()

        await create_audit_entry(
            db, action="update", entity_type="leave_request", entity_id=leave.id,
            actor_id=actor.id, new_values=changes,
        )
        return leave

    @staticmethod
    async def delete_leave(db: AsyncSession, actor: Actor, leave_id: uuid.UUID) -> None:
        leave = await LeaveService._get(db, leave_id)
        is_owner = actor.id == leave.employee_id
        if not LeaveService._is_hr(actor):
            if not is_owner:
                raise ForbiddenException("You can only delete your own leave requests.")
            if leave.status != LeaveStatus.pending:
                raise BusinessRuleException(
                    "INVALID_STATUS", "Only pending leave requests can be deleted.",
                )
        await create_audit_entry(
            db, action="delete", entity_type="leave_request", entity_id=leave.id,
            actor_id=actor.id,
            old_values={"status": leave.status, "start_date": leave.start_date.isoformat()},
        )
        await db.delete(leave)
        await db.flush()
