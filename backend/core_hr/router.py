"""Core HR router — Employee API endpoints.

Routes:
    /employees                  — List, create employees
    /employees/{id}             — Get, update employee
    /employees/{id}/deactivate  — Soft-delete an employee
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, has_any_role, require_role
from backend.common.constants import UserRole
from backend.common.exceptions import ForbiddenException
from backend.common.pagination import PaginationParams
from backend.core_hr.models import Employee
from backend.core_hr.schemas import (
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    EmployeeUpdate,
)
from backend.core_hr.service import EmployeeService
from backend.database import get_db

router = APIRouter(prefix="", tags=["employees"])

_DIRECTORY_ROLES = (UserRole.hr, UserRole.rmg, UserRole.super_admin)


# ── GET /employees — List employees ─────────────────────────────────

@router.get("")
async def list_employees(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department: Optional[str] = Query(None, description="Filter by department"),
    is_active: Optional[bool] = Query(True, description="Filter by active flag"),
    reporting_manager_id: Optional[uuid.UUID] = Query(None),
):
    """List employees with pagination, search, and filtering.

    - **employee**: compact directory entries
    - **hr / rmg / super_admin**: full detail
    """
    rows, meta = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department=department,
        is_active=is_active,
        reporting_manager_id=reporting_manager_id,
    )

    schema = EmployeeDetail if has_any_role(request, *_DIRECTORY_ROLES) else EmployeeSummary
    return {
        "data": [schema.model_validate(emp).model_dump(mode="json") for emp in rows],
        "meta": meta.model_dump(),
    }


# ── GET /employees/{id} ─────────────────────────────────────────────

@router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Retrieve the employee profile.

    Access rules:
    - **employee**: own profile only
    - **manager**: own + direct reports
    - **hr / rmg / super_admin**: any employee
    """
    detail = await EmployeeService.get_employee(db, employee_id)
    is_own = current_user.id == employee_id
    is_manager_of = detail.reporting_manager_id == current_user.id
    if not (is_own or is_manager_of or has_any_role(request, *_DIRECTORY_ROLES)):
        raise ForbiddenException(
            detail="You can only view your own profile or your direct reports.",
        )
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee profile retrieved successfully.",
    }


# ── POST /employees — Create employee ──────────────────────────────

@router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr)),
):
    """Create a new employee record. Requires **hr** or **super_admin**."""
    employee = await EmployeeService.create_employee(db, body, actor_id=current_user.id)
    await db.commit()
    detail = await EmployeeService.get_employee(db, employee.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee created successfully.",
    }


# ── PATCH /employees/{id} — Update employee ────────────────────────

@router.patch("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr)),
):
    await EmployeeService.update_employee(db, employee_id, body, actor_id=current_user.id)
    await db.commit()
    detail = await EmployeeService.get_employee(db, employee_id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee updated successfully.",
    }


# ── POST /employees/{id}/deactivate ────────────────────────────────

@router.post("/{employee_id}/deactivate")
async def deactivate_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr)),
):
    await EmployeeService.deactivate_employee(db, employee_id, actor_id=current_user.id)
    await db.commit()
    return {"message": "Employee deactivated successfully."}
