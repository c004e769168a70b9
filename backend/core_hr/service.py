"""Core HR service layer — async CRUD for employees.

Uses:
  - ``paginate()`` from backend.common.pagination
  - ``apply_filters / apply_search`` from backend.common.filters
  - ``create_audit_entry`` from backend.common.audit
  - ``NotFoundException / ConflictError`` from backend.common.exceptions
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.models import RoleAssignment
from backend.auth.service import get_active_roles, hash_password
from backend.common.audit import create_audit_entry
from backend.common.exceptions import ConflictError, NotFoundException
from backend.common.filters import apply_filters, apply_search
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.core_hr.models import Employee
from backend.core_hr.schemas import EmployeeCreate, EmployeeDetail, EmployeeUpdate

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = ["first_name", "last_name", "display_name", "email", "employee_code"]


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
        reporting_manager_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[Employee], PaginationMeta]:
        """Return a page of employees matching the filters."""
        query = select(Employee)

        filters: dict[str, Any] = {
            "department__ilike": department,
            "is_active": is_active,
            "reporting_manager_id": reporting_manager_id,
        }
        query = apply_filters(query, Employee, filters)

        if search:
            query = apply_search(query, Employee, search, _SEARCH_COLUMNS)

        return await paginate(
            db, query, pagination, model=Employee, default_sort="employee_code",
        )

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee_or_404(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> EmployeeDetail:
        """Load employee detail with roles and direct-report count."""
        employee = await EmployeeService.get_employee_or_404(db, employee_id)

        count_result = await db.execute(
            select(func.count())
            .select_from(Employee)
            .where(
                Employee.reporting_manager_id == employee.id,
                Employee.is_active.is_(True),
            )
        )

        employee.ensure_display_name()
        detail = EmployeeDetail.model_validate(employee)
        detail.direct_reports_count = count_result.scalar() or 0
        detail.roles = sorted(r.value for r in await get_active_roles(db, employee.id))
        return detail

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Create a new employee record with its initial role assignments."""
        email = data.email.lower()
        existing = await db.execute(
            select(Employee.employee_code, Employee.email).where(
                or_(Employee.employee_code == data.employee_code, Employee.email == email),
            )
        )
        clash = existing.first()
        if clash is not None:
            if clash.employee_code == data.employee_code:
                raise ConflictError("employee_code", data.employee_code)
            raise ConflictError("email", email)

        if data.reporting_manager_id is not None:
            await EmployeeService.get_employee_or_404(db, data.reporting_manager_id)

        payload = data.model_dump(exclude={"password", "roles"})
        payload["email"] = email
        employee = Employee(**payload)
        employee.ensure_display_name()
        if data.password:
            employee.password_hash = hash_password(data.password)

        db.add(employee)
        await db.flush()

        for role in dict.fromkeys(data.roles):
            db.add(RoleAssignment(employee_id=employee.id, role=role, assigned_by=actor_id))
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json", exclude={"password"}),
        )
        logger.info("Employee %s created", employee.employee_code)
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial update; only fields explicitly set in *data* are written."""
        employee = await EmployeeService.get_employee_or_404(db, employee_id)
        changes = data.model_dump(exclude_unset=True)

        if "email" in changes and changes["email"]:
            changes["email"] = changes["email"].lower()
            if changes["email"] != employee.email:
                clash = await db.execute(
                    select(Employee.id).where(Employee.email == changes["email"]),
                )
                if clash.first() is not None:
                    raise ConflictError("email", changes["email"])

        if changes.get("reporting_manager_id") == employee.id:
            raise ConflictError("reporting_manager_id", str(employee.id))

        old_values = {field: getattr(employee, field) for field in changes}
        for field, value in changes.items():
            setattr(employee, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return employee

    # ── Deactivate ──────────────────────────────────────────────────

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        employee = await EmployeeService.get_employee_or_404(db, employee_id)
        employee.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        logger.info("Employee %s deactivated", employee.employee_code)
        return employee
