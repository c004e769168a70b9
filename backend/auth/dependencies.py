"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.models import RoleAssignment, UserSession
from backend.common.constants import (
    HELPDESK_ADMIN_ROLES,
    MODULE_ADMIN_ROLES,
    PERMISSIONS,
    TicketModule,
    UserRole,
)
from backend.common.exceptions import ForbiddenException
from backend.config import settings
from backend.core_hr.models import Employee
from backend.database import get_db

_ALL_ROLES: set[UserRole] = set(UserRole)

# Role hierarchy: each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.super_admin: _ALL_ROLES,
    UserRole.it_admin: {UserRole.it_admin, UserRole.it_employee, UserRole.employee},
    UserRole.hr: {UserRole.hr, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
}


def expand_roles(roles: Iterable[UserRole]) -> set[UserRole]:
    """Return *roles* plus every role they imply through the hierarchy."""
    effective: set[UserRole] = set()
    for role in roles:
        effective |= _ROLE_HIERARCHY.get(role, {role, UserRole.employee})
    return effective


def has_any_role(request: Request, *roles: UserRole) -> bool:
    """True when the authenticated user effectively holds one of *roles*."""
    return bool(expand_roles(request.state.user_roles).intersection(roles))


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Validate JWT, verify session, return the authenticated Employee."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    # Verify session exists, not revoked, not expired
    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == _hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise HTTPException(status_code=401, detail="Session invalid or expired.")

    employee_id = uuid.UUID(payload["sub"])
    emp_result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
    )
    employee = emp_result.scalars().first()
    if employee is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    try:
        role = UserRole(payload.get("role", UserRole.employee.value))
    except ValueError:
        role = UserRole.employee

    roles_result = await db.execute(
        select(RoleAssignment.role).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.is_active.is_(True),
        ),
    )
    request.state.user_role = role
    request.state.user_roles = {row[0] for row in roles_result.all()} | {role}

    return employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. super_admin can access any role's endpoints.
    """

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        if not has_any_role(request, *allowed_roles):
            held = sorted(r.value for r in request.state.user_roles)
            raise ForbiddenException(
                detail=f"Roles {held} are not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return employee

    return _check


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission string."""

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        granted = {
            perm
            for role in request.state.user_roles
            for perm in PERMISSIONS.get(role, [])
        }
        if permission not in granted:
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted.",
            )
        return employee

    return _check


# ── Actor (employee + effective roles) ──────────────────────────────

@dataclass(frozen=True)
class Actor:
    """The authenticated employee together with every role they hold.

    ``roles`` is already expanded through the hierarchy, so a super_admin
    carries every role.
    """

    employee: Employee
    roles: frozenset[UserRole]

    @property
    def id(self) -> uuid.UUID:
        return self.employee.id

    @property
    def name(self) -> str:
        return self.employee.name

    @property
    def email(self) -> str:
        return self.employee.email

    def has_role(self, *roles: UserRole) -> bool:
        return bool(self.roles.intersection(roles))

    def is_module_admin(self, module: TicketModule) -> bool:
        return self.has_role(MODULE_ADMIN_ROLES[module])

    @property
    def is_helpdesk_admin(self) -> bool:
        return self.has_role(*HELPDESK_ADMIN_ROLES)

    @property
    def primary_role(self) -> str:
        """Most specific role label, for history entries."""
        for role in (
            UserRole.super_admin, UserRole.it_admin, UserRole.facilities_admin,
            UserRole.finance_admin, UserRole.l3_approver, UserRole.l2_approver,
            UserRole.l1_approver, UserRole.hr, UserRole.it_employee, UserRole.manager,
        ):
            if role in self.roles:
                return role.value
        return UserRole.employee.value


async def get_actor(
    request: Request,
    employee: Employee = Depends(get_current_user),
) -> Actor:
    return Actor(employee=employee, roles=frozenset(expand_roles(request.state.user_roles)))
