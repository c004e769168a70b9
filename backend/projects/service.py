"""Project and allocation service — CRUD, status changes and utilization.

Writes are limited to resource management (enforced in the router). Every
mutation is audited; an employee's active allocations never add up to more
than 100% over any overlapping period.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor
from backend.common.audit import create_audit_entry
from backend.common.constants import AllocationStatus, ProjectStatus, UserRole
from backend.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from backend.common.filters import apply_filters, apply_search
from backend.common.pagination import PaginationMeta, PaginationParams, paginate
from backend.core_hr.models import Employee
from backend.projects.models import Allocation, Project
from backend.projects.schemas import (
    AllocationCreate,
    AllocationUpdate,
    ProjectCreate,
    ProjectUpdate,
)

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = ["project_code", "name", "account_name"]
FULL_ALLOCATION = 100

# Roles that may read any project's staffing.
_STAFFING_READERS = (UserRole.rmg, UserRole.hr, UserRole.manager)


def _check_dates(start: date, end: Optional[date]) -> None:
    if end is not None and end < start:
        raise ValidationException({"end_date": ["end_date must be on or after start_date"]})


class ProjectService:
    """Async CRUD for projects."""

    @staticmethod
    async def list_projects(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        status: Optional[ProjectStatus] = None,
        region: Optional[str] = None,
        billing_type: Optional[str] = None,
        project_manager_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[Project], PaginationMeta]:
        query = apply_filters(select(Project), Project, {
            "status": status,
            "region": region,
            "billing_type": billing_type,
            "project_manager_id": project_manager_id,
        })
        if search:
            query = apply_search(query, Project, search, _SEARCH_COLUMNS)
        return await paginate(db, query, pagination, model=Project, default_sort="project_code")

    @staticmethod
    async def active_projects(db: AsyncSession) -> list[Project]:
        result = await db.execute(
            select(Project)
            .where(Project.status == ProjectStatus.active)
            .order_by(Project.name.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_project(db: AsyncSession, project_id: uuid.UUID) -> Project:
        project = await db.get(Project, project_id)
        if project is None:
            raise NotFoundException("Project", project_id)
        return project

    @staticmethod
    async def get_by_code(db: AsyncSession, code: str) -> Project:
        result = await db.execute(select(Project).where(Project.project_code == code))
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundException("Project", code)
        return project

    @staticmethod
    async def _ensure_managers_exist(db: AsyncSession, *employee_ids: Optional[uuid.UUID]) -> None:
        for employee_id in employee_ids:
            if employee_id is not None and await db.get(Employee, employee_id) is None:
                raise NotFoundException("Employee", employee_id)

    @staticmethod
    async def create_project(
        db: AsyncSession,
        data: ProjectCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Project:
        existing = await db.execute(
            select(Project.id).where(Project.project_code == data.project_code)
        )
        if existing.first() is not None:
            raise ConflictError("project_code", data.project_code)
        await ProjectService._ensure_managers_exist(
            db, data.project_manager_id, data.delivery_manager_id,
        )

        project = Project(**data.model_dump(), created_by_id=actor_id)
        db.add(project)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="project",
            entity_id=project.id,
            actor_id=actor_id,
            new_values={"project_code": project.project_code, "status": project.status},
        )
        logger.info("Project %s created by %s", project.project_code, actor_id)
        return project

    @staticmethod
    async def update_project(
        db: AsyncSession,
        project_id: uuid.UUID,
        data: ProjectUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Project:
        project = await ProjectService.get_project(db, project_id)
        if project.status == ProjectStatus.closed:
            raise BusinessRuleException("PROJECT_CLOSED", "Closed projects cannot be edited.")

        changes = data.model_dump(exclude_unset=True)
        _check_dates(
            changes.get("start_date", project.start_date),
            changes.get("end_date", project.end_date),
        )
        await ProjectService._ensure_managers_exist(
            db, changes.get("project_manager_id"), changes.get("delivery_manager_id"),
        )
        old_values = {field: getattr(project, field) for field in changes}
        for field, value in changes.items():
            setattr(project, field, value)
        await db.flush()

        await create_audit_entry(
            db, action="update", entity_type="project", entity_id=project.id,
            actor_id=actor_id, old_values=old_values, new_values=changes,
        )
        return project

    @staticmethod
    async def change_status(
        db: AsyncSession,
        project_id: uuid.UUID,
        status: ProjectStatus,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Project:
        """Move a project to *status*. Closing completes its active allocations."""
        project = await ProjectService.get_project(db, project_id)
        if project.status == ProjectStatus.closed:
            raise BusinessRuleException("PROJECT_CLOSED", "A closed project cannot be reopened.")

        old_status = project.status
        project.status = status
        completed = 0
        if status == ProjectStatus.closed:
            result = await db.execute(
                select(Allocation).where(
                    Allocation.project_id == project.id,
                    Allocation.status == AllocationStatus.active,
                )
            )
            for allocation in result.scalars().all():
                allocation.status = AllocationStatus.completed
                completed += 1
        await db.flush()

        await create_audit_entry(
            db, action="status_change", entity_type="project", entity_id=project.id,
            actor_id=actor_id, old_values={"status": old_status},
            new_values={"status": status, "allocations_completed": completed},
        )
        logger.info(
            "Project %s moved %s -> %s (%d allocations completed)",
            project.project_code, old_status.value, status.value, completed,
        )
        return project

    @staticmethod
    async def delete_project(
        db: AsyncSession,
        project_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Only drafts can be deleted; anything that ran is closed instead."""
        project = await ProjectService.get_project(db, project_id)
        if project.status != ProjectStatus.draft:
            raise BusinessRuleException(
                "PROJECT_NOT_DRAFT",
                f"Only draft projects can be deleted; close '{project.project_code}' instead.",
            )
        await create_audit_entry(
            db, action="delete", entity_type="project", entity_id=project.id,
            actor_id=actor_id, old_values={"project_code": project.project_code},
        )
        await db.execute(delete(Allocation).where(Allocation.project_id == project.id))
        await db.delete(project)
        await db.flush()


class AllocationService:
    """Async CRUD for allocations plus utilization."""

    @staticmethod
    async def list_allocations(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
        status: Optional[AllocationStatus] = None,
        billable: Optional[bool] = None,
    ) -> tuple[list[Allocation], PaginationMeta]:
        query = apply_filters(select(Allocation), Allocation, {
            "employee_id": employee_id,
            "project_id": project_id,
            "status": status,
            "billable": billable,
        })
        return await paginate(db, query, pagination, model=Allocation, default_sort="-start_date")

    @staticmethod
    async def active_allocations(db: AsyncSession) -> list[Allocation]:
        result = await db.execute(
            select(Allocation)
            .where(Allocation.status == AllocationStatus.active)
            .order_by(Allocation.start_date.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def for_employee(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
    ) -> list[Allocation]:
        """Active allocations of one employee, largest share first."""
        if employee_id != actor.id and not actor.has_role(*_STAFFING_READERS):
            raise ForbiddenException("You can only view your own allocations.")
        result = await db.execute(
            select(Allocation)
            .where(
                Allocation.employee_id == employee_id,
                Allocation.status == AllocationStatus.active,
            )
            .order_by(Allocation.allocation.desc(), Allocation.start_date.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def for_project(
        db: AsyncSession,
        actor: Actor,
        project_id: uuid.UUID,
    ) -> list[Allocation]:
        project = await ProjectService.get_project(db, project_id)
        if not project.manages(actor.id) and not actor.has_role(*_STAFFING_READERS):
            raise ForbiddenException("You do not have access to this project's staffing.")
        result = await db.execute(
            select(Allocation)
            .where(Allocation.project_id == project.id)
            .order_by(Allocation.status.asc(), Allocation.start_date.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def utilization(
        db: AsyncSession,
        actor: Actor,
        employee_id: uuid.UUID,
    ) -> dict[str, Any]:
        allocations = await AllocationService.for_employee(db, actor, employee_id)
        total = sum(a.allocation for a in allocations)
        return {
            "employee_id": employee_id,
            "total_allocation": total,
            "available": max(FULL_ALLOCATION - total, 0),
            "is_fully_allocated": total >= FULL_ALLOCATION,
            "is_billable": any(a.billable for a in allocations),
            "allocations": len(allocations),
        }

    @staticmethod
    async def get_allocation(db: AsyncSession, allocation_id: uuid.UUID) -> Allocation:
        allocation = await db.get(Allocation, allocation_id)
        if allocation is None:
            raise NotFoundException("Allocation", allocation_id)
        return allocation

    @staticmethod
    async def _ensure_capacity(
        db: AsyncSession,
        employee_id: uuid.UUID,
        percent: int,
        start: date,
        end: Optional[date],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(Allocation.allocation).where(
            Allocation.employee_id == employee_id,
            Allocation.status == AllocationStatus.active,
            or_(Allocation.end_date.is_(None), Allocation.end_date >= start),
        )
        if end is not None:
            query = query.where(Allocation.start_date <= end)
        if exclude_id is not None:
            query = query.where(Allocation.id != exclude_id)
        booked = sum((await db.execute(query)).scalars().all())
        if booked + percent > FULL_ALLOCATION:
            raise BusinessRuleException(
                "OVER_ALLOCATED",
                f"Employee is already {booked}% allocated in this period; "
                f"{percent}% more would exceed {FULL_ALLOCATION}%.",
            )

    @staticmethod
    async def create_allocation(
        db: AsyncSession,
        data: AllocationCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Allocation:
        project = await ProjectService.get_project(db, data.project_id)
        if project.status == ProjectStatus.closed:
            raise BusinessRuleException(
                "PROJECT_CLOSED", f"Project '{project.project_code}' is closed.",
            )
        employee = await db.get(Employee, data.employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundException("Employee", data.employee_id)

        duplicate = await db.execute(
            select(Allocation.id).where(
                Allocation.employee_id == data.employee_id,
                Allocation.project_id == data.project_id,
                Allocation.status == AllocationStatus.active,
            )
        )
        if duplicate.first() is not None:
            raise ConflictError("allocation", f"{employee.name} on {project.project_code}")
        await AllocationService._ensure_capacity(
            db, data.employee_id, data.allocation, data.start_date, data.end_date,
        )

        allocation = Allocation(**data.model_dump())
        db.add(allocation)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="allocation",
            entity_id=allocation.id,
            actor_id=actor_id,
            new_values={
                "employee_id": str(data.employee_id),
                "project_code": project.project_code,
                "allocation": data.allocation,
            },
        )
        logger.info(
            "Allocated %s to %s at %d%% by %s",
            data.employee_id, project.project_code, data.allocation, actor_id,
        )
        return allocation

    @staticmethod
    async def update_allocation(
        db: AsyncSession,
        allocation_id: uuid.UUID,
        data: AllocationUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Allocation:
        allocation = await AllocationService.get_allocation(db, allocation_id)
        if allocation.status != AllocationStatus.active:
            raise BusinessRuleException(
                "ALLOCATION_ENDED",
                f"Cannot edit an allocation in status '{allocation.status.value}'.",
            )
        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_date", allocation.start_date)
        end = changes.get("end_date", allocation.end_date)
        _check_dates(start, end)
        if {"allocation", "start_date", "end_date"} & changes.keys():
            await AllocationService._ensure_capacity(
                db, allocation.employee_id, changes.get("allocation", allocation.allocation),
                start, end, exclude_id=allocation.id,
            )

        old_values = {field: getattr(allocation, field) for field in changes}
        for field, value in changes.items():
            setattr(allocation, field, value)
        await db.flush()

        await create_audit_entry(
            db, action="update", entity_type="allocation", entity_id=allocation.id,
            actor_id=actor_id, old_values=old_values, new_values=changes,
        )
        return allocation

    @staticmethod
    async def change_status(
        db: AsyncSession,
        allocation_id: uuid.UUID,
        status: AllocationStatus,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Allocation:
        """Active allocations can be completed or cancelled; ended ones stay ended."""
        allocation = await AllocationService.get_allocation(db, allocation_id)
        if allocation.status != AllocationStatus.active:
            raise BusinessRuleException(
                "ALLOCATION_ENDED",
                f"Allocation is already '{allocation.status.value}'.",
            )
        if status == AllocationStatus.active:
            raise BusinessRuleException("INVALID_STATUS", "Allocation is already active.")

        allocation.status = status
        await db.flush()
        await create_audit_entry(
            db, action="status_change", entity_type="allocation", entity_id=allocation.id,
            actor_id=actor_id, old_values={"status": AllocationStatus.active},
            new_values={"status": status},
        )
        return allocation

    @staticmethod
    async def delete_allocation(
        db: AsyncSession,
        allocation_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        allocation = await AllocationService.get_allocation(db, allocation_id)
        await create_audit_entry(
            db, action="delete", entity_type="allocation", entity_id=allocation.id,
            actor_id=actor_id,
            old_values={
                "employee_id": str(allocation.employee_id),
                "project_id": str(allocation.project_id),
                "allocation": allocation.allocation,
            },
        )
        await db.delete(allocation)
        await db.flush()
