"""Specialist roster tests — CRUD, load tracking and specialization lookup."""

from __future__ import annotations

from backend.common.constants import UserRole

BASE = "/api/v1/specialists"


async def _add(client, admin, employee, **overrides) -> dict:
    body = {
        "employee_id": str(employee["id"]),
        "team": "Hardware Team",
        "specializations": ["Hardware", "Network"],
        "max_capacity": 4,
    }
    body.update(overrides)
    resp = await client.post(BASE, json=body, headers=admin["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_create_defaults_from_employee(client, make_user):
    admin = await make_user(UserRole.it_admin)
    tech = await make_user(UserRole.it_employee, first_name="Kiran")
    data = await _add(client, admin, tech)
    assert data["name"] == "Kiran User"
    assert data["email"] == tech["email"].lower()
    assert data["active_ticket_count"] == 0
    assert data["utilization"] == 0.0
    assert data["status"] == "active"


async def test_one_entry_per_employee(client, make_user):
    admin = await make_user(UserRole.it_admin)
    tech = await make_user(UserRole.it_employee)
    await _add(client, admin, tech)
    resp = await client.post(
        BASE,
        json={"employee_id": str(tech["id"]), "team": "Another Team"},
        headers=admin["headers"],
    )
    assert resp.status_code == 409


async def test_employee_cannot_manage(client, make_user):
    employee = await make_user()
    resp = await client.post(
        BASE, json={"employee_id": str(employee["id"]), "team": "Team"},
        headers=employee["headers"],
    )
    assert resp.status_code == 403


async def test_load_never_goes_negative(client, make_user):
    admin = await make_user(UserRole.it_admin)
    tech = await make_user(UserRole.it_employee)
    specialist = await _add(client, admin, tech)
    url = f"{BASE}/{specialist['id']}"

    data = (await client.post(f"{url}/increment", headers=admin["headers"])).json()["data"]
    assert data["active_ticket_count"] == 1
    assert data["utilization"] == 25.0

    await client.post(f"{url}/decrement", headers=admin["headers"])
    data = (await client.post(f"{url}/decrement", headers=admin["headers"])).json()["data"]
    assert data["active_ticket_count"] == 0


async def test_by_specialization_prefers_least_loaded(client, make_user):
    admin = await make_user(UserRole.it_admin)
    busy = await _add(client, admin, await make_user(UserRole.it_employee, first_name="Busy"))
    idle = await _add(client, admin, await make_user(UserRole.it_employee, first_name="Idle"))
    await _add(
        client, admin, await make_user(UserRole.it_employee, first_name="Other"),
        specializations=["Software"],
    )
    await client.post(f"{BASE}/{busy['id']}/increment", headers=admin["headers"])

    resp = await client.get(f"{BASE}/specialization/network", headers=admin["headers"])
    assert [s["id"] for s in resp.json()["data"]] == [idle["id"], busy["id"]]


async def test_inactive_specialists_are_skipped(client, make_user):
    admin = await make_user(UserRole.it_admin)
    specialist = await _add(client, admin, await make_user(UserRole.it_employee))
    resp = await client.patch(
        f"{BASE}/{specialist['id']}", json={"status": "inactive"}, headers=admin["headers"],
    )
    assert resp.json()["data"]["status"] == "inactive"

    resp = await client.get(f"{BASE}/specialization/Hardware", headers=admin["headers"])
    assert resp.json()["data"] == []

    resp = await client.get(BASE, params={"status": "inactive"}, headers=admin["headers"])
    assert [s["id"] for s in resp.json()["data"]] == [specialist["id"]]


async def test_lookup_by_employee_and_delete(client, make_user):
    admin = await make_user(UserRole.it_admin)
    tech = await make_user(UserRole.it_employee)
    specialist = await _add(client, admin, tech)

    resp = await client.get(f"{BASE}/employee/{tech['id']}", headers=admin["headers"])
    assert resp.json()["data"]["id"] == specialist["id"]

    resp = await client.delete(f"{BASE}/{specialist['id']}", headers=admin["headers"])
    assert resp.status_code == 204

    resp = await client.get(f"{BASE}/{specialist['id']}", headers=admin["headers"])
    assert resp.status_code == 404
    resp = await client.get(f"{BASE}/employee/{tech['id']}", headers=admin["headers"])
    assert resp.status_code == 404


async def test_update_rejects_null_team(client, make_user):
    admin = await make_user(UserRole.it_admin)
    specialist = await _add(client, admin, await make_user(UserRole.it_employee), phone="9800000000")

    for field in ("team", "max_capacity", "status"):
        resp = await client.patch(
            f"{BASE}/{specialist['id']}", json={field: None}, headers=admin["headers"],
        )
        assert resp.status_code == 422, field

    resp = await client.patch(
        f"{BASE}/{specialist['id']}", json={"phone": None}, headers=admin["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["phone"] is None
    assert resp.json()["data"]["team"] == "Hardware Team"
