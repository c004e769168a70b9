"""Auth service — password login, JWT management, session lifecycle, roles."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.auth.models import RoleAssignment, UserSession
from backend.common.audit import create_audit_entry
from backend.common.constants import UserRole
from backend.common.exceptions import ConflictError, ForbiddenException, NotFoundException
from backend.config import settings
from backend.core_hr.models import Employee

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Role priority: higher index = higher privilege
_ROLE_PRIORITY: list[UserRole] = [
    UserRole.employee,
    UserRole.it_employee,
    UserRole.rmg,
    UserRole.manager,
    UserRole.l1_approver,
    UserRole.l2_approver,
    UserRole.l3_approver,
    UserRole.hr,
    UserRole.facilities_admin,
    UserRole.finance_admin,
    UserRole.it_admin,
    UserRole.super_admin,
]


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[Employee]:
    """Return the active employee matching the credentials, or None."""
    result = await db.execute(
        select(Employee).where(
            Employee.email == email.lower(),
            Employee.is_active.is_(True),
        ),
    )
    employee = result.scalars().first()
    if employee is None or not verify_password(password, employee.password_hash):
        return None
    return employee


async def change_password(
    db: AsyncSession,
    employee: Employee,
    current_password: str,
    new_password: str,
) -> None:
    if not verify_password(current_password, employee.password_hash):
        raise ForbiddenException(detail="Current password is incorrect.")
    employee.password_hash = hash_password(new_password)
    await db.flush()
    await create_audit_entry(
        db,
        action="change_password",
        entity_type="employee",
        entity_id=employee.id,
        actor_id=employee.id,
    )


# ── Roles ───────────────────────────────────────────────────────────

async def get_active_roles(db: AsyncSession, employee_id: uuid.UUID) -> set[UserRole]:
    """Return every active role held by the employee."""
    result = await db.execute(
        select(RoleAssignment.role).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.is_active.is_(True),
        ),
    )
    return {row[0] for row in result.all()}


def highest_role(roles: set[UserRole]) -> UserRole:
    best = UserRole.employee
    for role in roles:
        if _ROLE_PRIORITY.index(role) > _ROLE_PRIORITY.index(best):
            best = role
    return best


async def get_highest_role(db: AsyncSession, employee_id: uuid.UUID) -> UserRole:
    """Return the highest active role for an employee (default: employee)."""
    return highest_role(await get_active_roles(db, employee_id))


async def get_employee_ids_with_role(db: AsyncSession, role: UserRole) -> list[uuid.UUID]:
    """Return ids of active employees holding *role*.

    Every active employee implicitly holds ``employee``.
    """
    if role == UserRole.employee:
        result = await db.execute(
            select(Employee.id).where(Employee.is_active.is_(True)),
        )
        return [row[0] for row in result.all()]

    result = await db.execute(
        select(RoleAssignment.employee_id)
        .join(Employee, Employee.id == RoleAssignment.employee_id)
        .where(
            RoleAssignment.role == role,
            RoleAssignment.is_active.is_(True),
            Employee.is_active.is_(True),
        )
        .distinct()
    )
    return [row[0] for row in result.all()]


async def assign_role(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole,
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> RoleAssignment:
    """Grant *role* to the employee. Re-granting an active role is a conflict."""
    employee = await db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))

    existing = await db.execute(
        select(RoleAssignment).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.role == role,
            RoleAssignment.is_active.is_(True),
        ),
    )
    if existing.scalars().first() is not None:
        raise ConflictError("role", role.value)

    assignment = RoleAssignment(
        employee_id=employee_id,
        role=role,
        assigned_by=actor_id,
    )
    db.add(assignment)
    await db.flush()
    await create_audit_entry(
        db,
        action="assign_role",
        entity_type="employee",
        entity_id=employee_id,
        actor_id=actor_id,
        new_values={"role": role.value},
    )
    logger.info("Role %s granted to employee %s", role.value, employee_id)
    return assignment


async def revoke_role(
    db: AsyncSession,
    employee_id: uuid.UUID,
    role: UserRole,
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> None:
    result = await db.execute(
        select(RoleAssignment).where(
            RoleAssignment.employee_id == employee_id,
            RoleAssignment.role == role,
            RoleAssignment.is_active.is_(True),
        ),
    )
    assignment = result.scalars().first()
    if assignment is None:
        raise NotFoundException("RoleAssignment", f"{employee_id}/{role.value}")
    assignment.is_active = False
    assignment.revoked_at = datetime.now(timezone.utc)
    await db.flush()
    await create_audit_entry(
        db,
        action="revoke_role",
        entity_type="employee",
        entity_id=employee_id,
        actor_id=actor_id,
        old_values={"role": role.value},
    )


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _create_access_token(employee_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def _create_refresh_token(employee_id: uuid.UUID) -> str:
    payload = {
        "sub": str(employee_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,  # Unique ID, ensures each refresh token is distinct
        "exp": datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    employee: Employee,
    role: UserRole,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, str, int]:
    """Create JWT pair and persist session. Returns (access, refresh, expires_in)."""
    access_token, expires_in = _create_access_token(employee.id, role)
    refresh_token = _create_refresh_token(employee.id)

    session = UserSession(
        employee_id=employee.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    )
    db.add(session)
    await db.flush()

    return access_token, refresh_token, expires_in


# ── Refresh (with token rotation + reuse detection) ─────────────────

async def refresh_access_token(
    db: AsyncSession,
    refresh_token_str: str,
) -> tuple[str, str, int]:
    """Validate refresh token, rotate it, and issue new token pair.

    Returns (new_access_token, new_refresh_token, expires_in).

    Each refresh token can only be used once. If a previously used
    (revoked) refresh token is presented, ALL sessions for that user are
    revoked.
    """
    try:
        payload = jwt.decode(
            refresh_token_str,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise ForbiddenException(detail="Invalid or expired refresh token.")

    if payload.get("type") != "refresh":
        raise ForbiddenException(detail="Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.refresh_token_hash == hash_token(refresh_token_str),
        ),
    )
    session = result.scalars().first()

    if session is None:
        raise ForbiddenException(detail="Invalid refresh token.")

    if session.is_revoked:
        # Replayed refresh token: revoke every session of this user.
        await _revoke_all_user_sessions(db, session.employee_id)
        await db.commit()  # Persist revocations BEFORE raising (avoid rollback)
        logger.warning("Refresh token reuse detected for employee %s", session.employee_id)
        raise ForbiddenException(
            detail="Refresh token reuse detected. All sessions revoked for security.",
        )

    # Consume the old session
    session.is_revoked = True
    await db.flush()

    employee = await _get_active_employee(db, uuid.UUID(payload["sub"]))
    role = await get_highest_role(db, employee.id)
    access_token, new_refresh_token, expires_in = await create_session(
        db, employee, role, session.ip_address, session.user_agent,
    )
    return access_token, new_refresh_token, expires_in


# ── Revoke ──────────────────────────────────────────────────────────

async def _revoke_all_user_sessions(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> None:
    result = await db.execute(
        select(UserSession).where(
            UserSession.employee_id == employee_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.is_revoked = True
    await db.flush()


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its access-token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


# ── Internal helpers ────────────────────────────────────────────────

async def _get_active_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException(entity_type="Employee", entity_id=str(employee_id))
    return employee
