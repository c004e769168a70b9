"""Auth router — password login, token refresh, logout, profile, role grants."""

from __future__ import annotations

import hashlib
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.dependencies import get_current_user, require_role
from backend.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    RefreshRequest,
    RefreshResponse,
    RoleAssignmentResponse,
    RoleGrantRequest,
    TokenResponse,
    UserInfo,
)
from backend.auth.service import (
    assign_role,
    authenticate,
    change_password,
    create_session,
    get_active_roles,
    highest_role,
    refresh_access_token,
    revoke_role,
    revoke_session,
)
from backend.common.audit import create_audit_entry
from backend.common.constants import PERMISSIONS, UserRole
from backend.common.rate_limit import LOGIN_LIMIT, limiter
from backend.core_hr.models import Employee
from backend.database import get_db

router = APIRouter(prefix="", tags=["auth"])


def _user_info(employee: Employee, role: UserRole, roles: set[UserRole]) -> dict:
    return {
        "id": employee.id,
        "employee_code": employee.employee_code,
        "display_name": employee.name,
        "email": employee.email,
        "role": role.value,
        "roles": sorted(r.value for r in roles),
        "department": employee.department,
        "designation": employee.designation,
    }


# ── POST /login — Email + password ──────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    employee = await authenticate(db, body.email, body.password)
    if employee is None:
        raise HTTPException(status_code=401, detail="Invalid email or password.")

    roles = await get_active_roles(db, employee.id) or {UserRole.employee}
    role = highest_role(roles)

    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    access_token, refresh_token, expires_in = await create_session(
        db, employee, role, ip, user_agent,
    )

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        new_values={"ip": ip, "user_agent": user_agent},
        ip_address=ip,
        user_agent=user_agent,
    )
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        user=UserInfo(**_user_info(employee, role, roles)),
    )


# ── POST /refresh — Rotate token pair ──────────────────────────────

@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    access_token, new_refresh, expires_in = await refresh_access_token(db, body.refresh_token)
    await db.commit()
    return RefreshResponse(
        access_token=access_token,
        refresh_token=new_refresh,
        expires_in=expires_in,
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = request.headers.get("Authorization", "").removeprefix("Bearer ")
    await revoke_session(db, hashlib.sha256(token.encode()).hexdigest())

    await create_audit_entry(
        db,
        action="logout",
        entity_type="user_session",
        entity_id=employee.id,
        actor_id=employee.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    roles: set[UserRole] = request.state.user_roles
    permissions = sorted({p for r in roles for p in PERMISSIONS.get(r, [])})

    result = await db.execute(
        select(func.count()).select_from(Employee).where(
            Employee.reporting_manager_id == employee.id,
            Employee.is_active.is_(True),
        ),
    )
    direct_reports_count = result.scalar() or 0

    return MeResponse(
        **_user_info(employee, highest_role(roles), roles),
        permissions=permissions,
        location=employee.location,
        reporting_manager_id=employee.reporting_manager_id,
        direct_reports_count=direct_reports_count,
    )


# ── POST /change-password ──────────────────────────────────────────

@router.post("/change-password")
async def update_password(
    body: ChangePasswordRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, employee, body.current_password, body.new_password)
    await db.commit()
    return {"message": "Password changed successfully"}


# ── Role grants (super_admin) ───────────────────────────────────────

@router.post("/roles", response_model=RoleAssignmentResponse, status_code=201)
async def grant_role(
    body: RoleGrantRequest,
    actor: Employee = Depends(require_role(UserRole.super_admin)),
    db: AsyncSession = Depends(get_db),
):
    assignment = await assign_role(db, body.employee_id, body.role, actor_id=actor.id)
    await db.commit()
    return RoleAssignmentResponse(
        employee_id=assignment.employee_id,
        role=assignment.role,
        is_active=assignment.is_active,
    )


@router.delete("/roles/{employee_id}/{role}", status_code=204)
async def remove_role(
    employee_id: uuid.UUID,
    role: UserRole,
    actor: Employee = Depends(require_role(UserRole.super_admin)),
    db: AsyncSession = Depends(get_db),
):
    await revoke_role(db, employee_id, role, actor_id=actor.id)
    await db.commit()
