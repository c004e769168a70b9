"""Employee directory test suite — create, retrieve, list, update and
deactivate, plus the access rules around each."""

from __future__ import annotations

import uuid

import pytest

from backend.common.constants import UserRole
from backend.common.exceptions import ConflictError, NotFoundException
from backend.core_hr.schemas import EmployeeCreate, EmployeeUpdate
from backend.core_hr.service import EmployeeService

BASE = "/api/v1/employees"


def _create_body(**overrides) -> dict:
    body = {
        "employee_code": "OP-9001",
        "first_name": "Neha",
        "last_name": "Kapoor",
        "email": "Neha.Kapoor@Example.com",
        "department": "Finance",
        "designation": "Analyst",
        "date_of_joining": "2025-06-02",
        "password": "initial-password",
        "roles": ["employee", "manager"],
    }
    body.update(overrides)
    return body


# ═════════════════════════════════════════════════════════════════════
# 1. CREATE
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeCreate:
    async def test_hr_creates_employee_with_roles(self, client, make_user):
        hr = await make_user(UserRole.hr)
        resp = await client.post(BASE, json=_create_body(), headers=hr["headers"])
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["email"] == "neha.kapoor@example.com"
        assert data["display_name"] == "Neha Kapoor"
        assert data["roles"] == ["employee", "manager"]

        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": "neha.kapoor@example.com", "password": "initial-password"},
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "manager"

    async def test_duplicate_code_or_email(self, client, make_user):
        hr = await make_user(UserRole.hr)
        await client.post(BASE, json=_create_body(), headers=hr["headers"])

        resp = await client.post(
            BASE, json=_create_body(email="someone.else@example.com"), headers=hr["headers"],
        )
        assert resp.status_code == 409

        resp = await client.post(
            BASE, json=_create_body(employee_code="OP-9002"), headers=hr["headers"],
        )
        assert resp.status_code == 409

    async def test_employee_cannot_create(self, client, make_user):
        employee = await make_user()
        resp = await client.post(BASE, json=_create_body(), headers=employee["headers"])
        assert resp.status_code == 403

    async def test_unknown_manager_is_404(self, client, make_user):
        hr = await make_user(UserRole.hr)
        resp = await client.post(
            BASE, json=_create_body(reporting_manager_id=str(uuid.uuid4())), headers=hr["headers"],
        )
        assert resp.status_code == 404

    async def test_invalid_email_is_422(self, client, make_user):
        hr = await make_user(UserRole.hr)
        resp = await client.post(BASE, json=_create_body(email="not-an-email"), headers=hr["headers"])
        assert resp.status_code == 422
        assert "email" in resp.json()["errors"]


# ═════════════════════════════════════════════════════════════════════
# 2. RETRIEVE + LIST
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeRetrieval:
    async def test_own_profile(self, client, make_user):
        employee = await make_user(UserRole.it_admin)
        resp = await client.get(f"{BASE}/{employee['id']}", headers=employee["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["id"] == str(employee["id"])
        assert data["roles"] == ["it_admin"]

    async def test_manager_sees_direct_report(self, client, make_user):
        manager = await make_user(UserRole.manager)
        report = await make_user(reporting_manager_id=manager["id"])
        resp = await client.get(f"{BASE}/{report['id']}", headers=manager["headers"])
        assert resp.status_code == 200

        resp = await client.get(f"{BASE}/{manager['id']}", headers=manager["headers"])
        assert resp.json()["data"]["direct_reports_count"] == 1

    async def test_peer_profile_forbidden(self, client, make_user):
        first = await make_user()
        second = await make_user()
        resp = await client.get(f"{BASE}/{second['id']}", headers=first["headers"])
        assert resp.status_code == 403

    async def test_missing_employee(self, client, make_user):
        hr = await make_user(UserRole.hr)
        resp = await client.get(f"{BASE}/{uuid.uuid4()}", headers=hr["headers"])
        assert resp.status_code == 404


class TestEmployeeList:
    async def test_directory_is_compact_for_employees(self, client, make_user):
        employee = await make_user()
        resp = await client.get(BASE, headers=employee["headers"])
        entry = resp.json()["data"][0]
        assert "email" in entry
        assert "date_of_joining" not in entry

    async def test_hr_gets_detail_and_search(self, client, make_user):
        hr = await make_user(UserRole.hr)
        await make_user(first_name="Omkar", department="Sales")
        await make_user(first_name="Pooja", department="Finance")

        resp = await client.get(BASE, params={"search": "omkar"}, headers=hr["headers"])
        body = resp.json()
        assert [e["first_name"] for e in body["data"]] == ["Omkar"]
        assert body["meta"]["total"] == 1

        resp = await client.get(BASE, params={"department": "fin"}, headers=hr["headers"])
        assert [e["first_name"] for e in resp.json()["data"]] == ["Pooja"]

    async def test_pagination_meta(self, client, make_user):
        hr = await make_user(UserRole.hr)
        for _ in range(4):
            await make_user()
        resp = await client.get(BASE, params={"page": 2, "page_size": 2}, headers=hr["headers"])
        meta = resp.json()["meta"]
        assert meta["total"] == 5
        assert meta["total_pages"] == 3
        assert meta["has_next"] is True
        assert meta["has_prev"] is True

    async def test_page_size_is_capped(self, client, make_user):
        hr = await make_user(UserRole.hr)
        resp = await client.get(BASE, params={"page_size": 10_000}, headers=hr["headers"])
        assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# 3. UPDATE + DEACTIVATE
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeUpdate:
    async def test_partial_update(self, client, make_user):
        hr = await make_user(UserRole.hr)
        employee = await make_user()
        resp = await client.patch(
            f"{BASE}/{employee['id']}", json={"designation": "Senior Engineer"},
            headers=hr["headers"],
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["designation"] == "Senior Engineer"
        assert data["department"] == "Engineering"

    async def test_deactivated_employee_loses_access(self, client, make_user):
        hr = await make_user(UserRole.hr)
        employee = await make_user()
        resp = await client.post(f"{BASE}/{employee['id']}/deactivate", headers=hr["headers"])
        assert resp.status_code == 200

        resp = await client.get("/api/v1/auth/me", headers=employee["headers"])
        assert resp.status_code == 401

        resp = await client.get(BASE, headers=hr["headers"])
        assert str(employee["id"]) not in [e["id"] for e in resp.json()["data"]]


class TestEmployeeServiceLayer:
    async def test_email_clash_on_update(self, db, make_user):
        first = await make_user()
        second = await make_user()
        with pytest.raises(ConflictError):
            await EmployeeService.update_employee(
                db, second["id"], EmployeeUpdate(email=first["email"]),
            )

    async def test_cannot_report_to_self(self, db, make_user):
        employee = await make_user()
        with pytest.raises(ConflictError):
            await EmployeeService.update_employee(
                db, employee["id"], EmployeeUpdate(reporting_manager_id=employee["id"]),
            )

    async def test_create_defaults_role_to_employee(self, db):
        employee = await EmployeeService.create_employee(
            db,
            EmployeeCreate(
                employee_code="OP-7000",
                first_name="Rekha",
                last_name="Nair",
                email="rekha@example.com",
                date_of_joining="2025-01-06",
            ),
        )
        detail = await EmployeeService.get_employee(db, employee.id)
        assert detail.roles == ["employee"]
        assert detail.display_name == "Rekha Nair"

    async def test_get_missing_raises(self, db):
        with pytest.raises(NotFoundException):
            await EmployeeService.get_employee_or_404(db, uuid.uuid4())
