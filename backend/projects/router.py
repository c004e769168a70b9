"""Project and allocation endpoints.

Any signed-in employee can browse projects; creating, editing and staffing
them needs the resource-management permissions.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import Actor, get_actor, get_current_user, require_permission
from backend.common.constants import AllocationStatus, BillingType, ProjectRegion, ProjectStatus
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.database import get_db
from backend.projects.schemas import (
    AllocationCreate,
    AllocationOut,
    AllocationStatusUpdate,
    AllocationUpdate,
    ProjectCreate,
    ProjectOut,
    ProjectStatusUpdate,
    ProjectUpdate,
    Utilization,
)
from backend.projects.service import AllocationService, ProjectService

router = APIRouter(prefix="", tags=["projects"])
allocations_router = APIRouter(prefix="", tags=["allocations"])


def _project(project) -> dict:
    return ProjectOut.model_validate(project).model_dump(mode="json")


def _allocation(allocation) -> dict:
    return AllocationOut.model_validate(allocation).model_dump(mode="json")


# ═════════════════════════════════════════════════════════════════════
# /projects
# ═════════════════════════════════════════════════════════════════════

@router.get("")
async def list_projects(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[ProjectStatus] = Query(None),
    region: Optional[ProjectRegion] = Query(None),
    billing_type: Optional[BillingType] = Query(None),
    project_manager_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    _: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await ProjectService.list_projects(
        db, pagination, search=search, status=status, region=region,
        billing_type=billing_type, project_manager_id=project_manager_id,
    )
    return {"data": [_project(p) for p in rows], "meta": meta.model_dump()}


@router.get("/active")
async def active_projects(
    _: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await ProjectService.active_projects(db)
    return {"data": [_project(p) for p in rows], "meta": {"total": len(rows)}}


@router.get("/code/{project_code}")
async def get_project_by_code(
    project_code: str,
    _: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _project(await ProjectService.get_by_code(db, project_code))}


@router.get("/{project_id}")
async def get_project(
    project_id: uuid.UUID,
    _: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _project(await ProjectService.get_project(db, project_id))}


@router.post("", status_code=201)
async def create_project(
    body: ProjectCreate,
    actor: Employee = Depends(require_permission("project:manage")),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService.create_project(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Project created", "data": _project(project)}


@router.put("/{project_id}")
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    actor: Employee = Depends(require_permission("project:manage")),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService.update_project(db, project_id, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Project updated", "data": _project(project)}


@router.patch("/{project_id}/status")
async def change_project_status(
    project_id: uuid.UUID,
    body: ProjectStatusUpdate,
    actor: Employee = Depends(require_permission("project:manage")),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService.change_status(db, project_id, body.status, actor_id=actor.id)
    await db.commit()
    return {"message": f"Project moved to {project.status.value}", "data": _project(project)}


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: uuid.UUID,
    actor: Employee = Depends(require_permission("project:manage")),
    db: AsyncSession = Depends(get_db),
):
    await ProjectService.delete_project(db, project_id, actor_id=actor.id)
    await db.commit()


# ═════════════════════════════════════════════════════════════════════
# /allocations
# ═════════════════════════════════════════════════════════════════════

@allocations_router.get("")
async def list_allocations(
    employee_id: Optional[uuid.UUID] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AllocationStatus] = Query(None),
    billable: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    _: Employee = Depends(require_permission("allocation:read_all")),
    db: AsyncSession = Depends(get_db),
):
    rows, meta = await AllocationService.list_allocations(
        db, pagination, employee_id=employee_id, project_id=project_id,
        status=status, billable=billable,
    )
    return {"data": [_allocation(a) for a in rows], "meta": meta.model_dump()}


@allocations_router.get("/active")
async def active_allocations(
    _: Employee = Depends(require_permission("allocation:read_all")),
    db: AsyncSession = Depends(get_db),
):
    rows = await AllocationService.active_allocations(db)
    return {"data": [_allocation(a) for a in rows], "meta": {"total": len(rows)}}


@allocations_router.get("/employee/{employee_id}")
async def employee_allocations(
    employee_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows = await AllocationService.for_employee(db, actor, employee_id)
    return {"data": [_allocation(a) for a in rows], "meta": {"total": len(rows)}}


@allocations_router.get("/employee/{employee_id}/utilization")
async def employee_utilization(
    employee_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    summary = await AllocationService.utilization(db, actor, employee_id)
    return {"data": Utilization(**summary).model_dump(mode="json")}


@allocations_router.get("/project/{project_id}")
async def project_allocations(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    rows = await AllocationService.for_project(db, actor, project_id)
    return {"data": [_allocation(a) for a in rows], "meta": {"total": len(rows)}}


@allocations_router.get("/{allocation_id}")
async def get_allocation(
    allocation_id: uuid.UUID,
    _: Employee = Depends(require_permission("allocation:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return {"data": _allocation(await AllocationService.get_allocation(db, allocation_id))}


@allocations_router.post("", status_code=201)
async def create_allocation(
    body: AllocationCreate,
    actor: Employee = Depends(require_permission("allocation:manage")),
    db: AsyncSession = Depends(get_db),
):
    allocation = await AllocationService.create_allocation(db, body, actor_id=actor.id)
    await db.commit()
    return {"message": "Allocation created", "data": _allocation(allocation)}


@allocations_router.put("/{allocation_id}")
async def update_allocation(
    allocation_id: uuid.UUID,
    body: AllocationUpdate,
    actor: Employee = Depends(require_permission("allocation:manage")),
    db: AsyncSession = Depends(get_db),
):
    allocation = await AllocationService.update_allocation(
        db, allocation_id, body, actor_id=actor.id,
    )
    await db.commit()
    return {"message": "Allocation updated", "data": _allocation(allocation)}


@allocations_router.patch("/{allocation_id}/status")
async def change_allocation_status(
    allocation_id: uuid.UUID,
    body: AllocationStatusUpdate,
    actor: Employee = Depends(require_permission("allocation:manage")),
    db: AsyncSession = Depends(get_db),
):
    allocation = await AllocationService.change_status(
        db, allocation_id, body.status, actor_id=actor.id,
    )
    await db.commit()
    return {"message": f"Allocation {allocation.status.value}", "data": _allocation(allocation)}


@allocations_router.delete("/{allocation_id}", status_code=204)
async def delete_allocation(
    allocation_id: uuid.UUID,
    actor: Employee = Depends(require_permission("allocation:manage")),
    db: AsyncSession = Depends(get_db),
):
    await AllocationService.delete_allocation(db, allocation_id, actor_id=actor.id)
    await db.commit()
