"""Auth module test suite — password login, JWT, sessions, RBAC, role grants."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from sqlalchemy import select

from backend.auth.dependencies import expand_roles
from backend.auth.models import RoleAssignment, UserSession
from backend.auth.service import get_employee_ids_with_role, highest_role
from backend.common.constants import PERMISSIONS, UserRole
from backend.config import settings
from tests.conftest import create_access_token

PASSWORD = "correct-horse-battery"


async def _login(client, email, password=PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


# ── Login ───────────────────────────────────────────────────────────


async def test_login_returns_token_pair(client, test_employee):
    resp = await _login(client, test_employee["email"])
    assert resp.status_code == 200
    data = resp.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == test_employee["email"]
    assert data["user"]["roles"] == ["employee"]


async def test_login_email_is_case_insensitive(client, test_employee):
    resp = await _login(client, test_employee["email"].upper())
    assert resp.status_code == 200


async def test_login_wrong_password(client, test_employee):
    resp = await _login(client, test_employee["email"], "not-the-password")
    assert resp.status_code == 401


async def test_login_inactive_employee(client, db, test_employee):
    from backend.core_hr.models import Employee

    employee = await db.get(Employee, test_employee["id"])
    employee.is_active = False
    await db.commit()

    resp = await _login(client, test_employee["email"])
    assert resp.status_code == 401


# ── JWT tokens ──────────────────────────────────────────────────────


async def test_jwt_generation_has_correct_claims(client, test_employee):
    """Access token JWT contains sub, role, type, exp claims."""
    resp = await _login(client, test_employee["email"])
    token = resp.json()["access_token"]
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload["sub"] == str(test_employee["id"])
    assert payload["role"] == UserRole.employee.value
    assert payload["type"] == "access"
    assert "exp" in payload


async def test_jwt_expiry_check(client, session_factory, test_employee):
    """Expired access token → 401 on /me."""
    expired_token = create_access_token(test_employee["id"], expired=True)

    # Persist a session row so the only rejection reason is expiry
    async with session_factory() as session:
        session.add(
            UserSession(
                id=uuid.uuid4(),
                employee_id=test_employee["id"],
                token_hash=hashlib.sha256(expired_token.encode()).hexdigest(),
                expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
                is_revoked=False,
                created_at=datetime.now(timezone.utc),
            )
        )
        await session.commit()

    resp = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {expired_token}"},
    )
    assert resp.status_code == 401


async def test_token_without_session_rejected(client, test_employee):
    token = create_access_token(test_employee["id"])
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_missing_header_rejected(client):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


# ── Logout ──────────────────────────────────────────────────────────


async def test_logout_revokes_session(client, auth_headers):
    """POST /logout revokes the session; subsequent /me returns 401."""
    resp = await client.post("/api/v1/auth/logout", headers=auth_headers)
    assert resp.status_code == 200

    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 401


# ── GET /me ─────────────────────────────────────────────────────────


async def test_get_me_returns_current_user(client, test_employee, auth_headers):
    """Authenticated /me returns user profile + permissions."""
    resp = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["email"] == test_employee["email"]
    assert data["display_name"] == f"{test_employee['first_name']} {test_employee['last_name']}"
    assert data["role"] == UserRole.employee.value
    assert set(data["permissions"]) == set(PERMISSIONS[UserRole.employee])
    assert data["direct_reports_count"] == 0


async def test_get_me_counts_direct_reports(client, make_user):
    manager = await make_user(UserRole.manager)
    await make_user(reporting_manager_id=manager["id"])
    await make_user(reporting_manager_id=manager["id"])

    resp = await client.get("/api/v1/auth/me", headers=manager["headers"])
    data = resp.json()
    assert data["role"] == "manager"
    assert data["direct_reports_count"] == 2
    assert "leave:approve" in data["permissions"]


# ── Change password ─────────────────────────────────────────────────


async def test_change_password(client, test_employee, auth_headers):
    resp = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "wrong", "new_password": "another-long-secret"},
        headers=auth_headers,
    )
    assert resp.status_code == 403

    resp = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "another-long-secret"},
        headers=auth_headers,
    )
    assert resp.status_code == 200

    assert (await _login(client, test_employee["email"])).status_code == 401
    assert (await _login(client, test_employee["email"], "another-long-secret")).status_code == 200


# ── RBAC / Roles ────────────────────────────────────────────────────


def test_role_hierarchy_expansion():
    assert expand_roles({UserRole.it_admin}) >= {UserRole.it_employee, UserRole.employee}
    assert UserRole.manager in expand_roles({UserRole.hr})
    assert expand_roles({UserRole.super_admin}) == set(UserRole)


def test_highest_role():
    assert highest_role(set()) == UserRole.employee
    assert highest_role({UserRole.manager, UserRole.hr}) == UserRole.hr
    assert highest_role({UserRole.it_admin, UserRole.super_admin}) == UserRole.super_admin


async def test_multiple_roles_highest_used(client, db, test_employee):
    """User with employee + hr roles → gets hr as primary role on login."""
    db.add(
        RoleAssignment(
            id=uuid.uuid4(),
            employee_id=test_employee["id"],
            role=UserRole.hr,
            is_active=True,
            assigned_at=datetime.now(timezone.utc),
        )
    )
    await db.commit()

    resp = await _login(client, test_employee["email"])
    assert resp.json()["user"]["role"] == UserRole.hr.value
    assert resp.json()["user"]["roles"] == ["employee", "hr"]


async def test_employee_role_covers_everyone(db, make_user):
    first = await make_user()
    admin = await make_user(UserRole.it_admin)
    ids = await get_employee_ids_with_role(db, UserRole.employee)
    assert set(ids) == {first["id"], admin["id"]}
    assert await get_employee_ids_with_role(db, UserRole.it_admin) == [admin["id"]]


async def test_super_admin_grants_and_revokes_roles(client, make_user):
    root = await make_user(UserRole.super_admin)
    target = await make_user()

    resp = await client.post(
        "/api/v1/auth/roles",
        json={"employee_id": str(target["id"]), "role": "l1_approver"},
        headers=root["headers"],
    )
    assert resp.status_code == 201
    assert resp.json()["is_active"] is True

    resp = await client.post(
        "/api/v1/auth/roles",
        json={"employee_id": str(target["id"]), "role": "l1_approver"},
        headers=root["headers"],
    )
    assert resp.status_code == 409

    resp = await client.delete(
        f"/api/v1/auth/roles/{target['id']}/l1_approver", headers=root["headers"],
    )
    assert resp.status_code == 204
    resp = await client.delete(
        f"/api/v1/auth/roles/{target['id']}/l1_approver", headers=root["headers"],
    )
    assert resp.status_code == 404


async def test_role_grant_blocks_low_role(client, make_user):
    hr = await make_user(UserRole.hr)
    resp = await client.post(
        "/api/v1/auth/roles",
        json={"employee_id": str(hr["id"]), "role": "super_admin"},
        headers=hr["headers"],
    )
    assert resp.status_code == 403


# ── Session management ──────────────────────────────────────────────


async def test_session_ip_recorded(client, session_factory, test_employee):
    """Login creates a UserSession with the client IP stored."""
    resp = await _login(client, test_employee["email"])
    assert resp.status_code == 200

    async with session_factory() as session:
        result = await session.execute(
            select(UserSession).where(UserSession.employee_id == test_employee["id"]),
        )
        user_session = result.scalars().first()
    assert user_session is not None
    assert user_session.refresh_token_hash is not None


async def test_concurrent_sessions_allowed(client, test_employee):
    """Same user can have multiple active sessions simultaneously."""
    tokens = []
    for _ in range(2):
        resp = await _login(client, test_employee["email"])
        tokens.append(resp.json()["access_token"])

    for token in tokens:
        resp = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == test_employee["email"]
