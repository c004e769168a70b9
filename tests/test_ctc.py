"""CTC master tests — access control, creation, revisions and annualisation."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from backend.common.constants import CtcUom, UserRole
from backend.ctc.schemas import CTCHistoryEntry
from backend.ctc.service import annualise

BASE = "/api/v1/ctc"


def test_annualise_monthly_entry():
    entry = CTCHistoryEntry(
        actual_ctc=Decimal("100000"),
        from_date=date(2025, 4, 1),
        to_date=date(2026, 3, 31),
        uom=CtcUom.monthly,
    )
    assert annualise(entry) == Decimal("1200000")


def test_annualise_annual_entry_unchanged():
    entry = CTCHistoryEntry(
        actual_ctc=Decimal("900000"), from_date=date(2025, 4, 1), to_date=date(2026, 3, 31),
    )
    assert annualise(entry) == Decimal("900000")


async def _create(client, finance, employee_id, **overrides):
    body = {
        "employee_id": str(employee_id),
        "latest_annual_ctc": "1000000",
        "latest_planned_ctc": "1100000",
        "history": [
            {"actual_ctc": "1000000", "from_date": "2025-04-01", "to_date": "2026-03-31"},
        ],
    }
    body.update(overrides)
    return await client.post(BASE, json=body, headers=finance["headers"])


async def test_plain_employee_cannot_read(client, make_user):
    employee = await make_user()
    resp = await client.get(BASE, headers=employee["headers"])
    assert resp.status_code == 403


async def test_create_copies_employee_identity(client, make_user):
    finance = await make_user(UserRole.finance_admin)
    employee = await make_user(first_name="Meera", last_name="Iyer")

    resp = await _create(client, finance, employee["id"])
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["employee_name"] == "Meera Iyer"
    assert data["employee_code"] == employee["employee_code"]
    assert Decimal(data["latest_annual_ctc"]) == Decimal("1000000")
    assert len(data["history"]) == 1


async def test_one_record_per_employee(client, make_user):
    finance = await make_user(UserRole.finance_admin)
    employee = await make_user()
    await _create(client, finance, employee["id"])
    resp = await _create(client, finance, employee["id"])
    assert resp.status_code == 409


async def test_history_range_is_validated(client, make_user):
    finance = await make_user(UserRole.finance_admin)
    employee = await make_user()
    resp = await _create(
        client, finance, employee["id"],
        history=[{"actual_ctc": "1", "from_date": "2026-04-01", "to_date": "2025-04-01"}],
    )
    assert resp.status_code == 422


async def test_revision_moves_latest_actual(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    record = (await _create(client, hr, employee["id"])).json()["data"]

    resp = await client.put(
        f"{BASE}/{record['id']}",
        json={
            "latest_planned_ctc": "1300000",
            "new_history": {
                "actual_ctc": "100000",
                "from_date": "2026-04-01",
                "to_date": "2027-03-31",
                "uom": "Monthly",
            },
        },
        headers=hr["headers"],
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert Decimal(data["latest_annual_ctc"]) == Decimal("1200000")
    assert Decimal(data["latest_planned_ctc"]) == Decimal("1300000")
    assert data["latest_actual_uom"] == "Monthly"
    assert [h["from_date"] for h in data["history"]] == ["2025-04-01", "2026-04-01"]


async def test_search_and_delete(client, make_user):
    finance = await make_user(UserRole.finance_admin)
    meera = await make_user(first_name="Meera")
    arjun = await make_user(first_name="Arjun")
    record = (await _create(client, finance, meera["id"])).json()["data"]
    await _create(client, finance, arjun["id"])

    resp = await client.get(BASE, params={"search": "meera"}, headers=finance["headers"])
    assert [r["employee_id"] for r in resp.json()["data"]] == [str(meera["id"])]

    resp = await client.delete(f"{BASE}/{record['id']}", headers=finance["headers"])
    assert resp.status_code == 204
    resp = await client.get(f"{BASE}/{record['id']}", headers=finance["headers"])
    assert resp.status_code == 404


async def test_update_rejects_null_amounts(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    record = (await _create(client, hr, employee["id"])).json()["data"]

    for field in ("latest_planned_ctc", "currency"):
        resp = await client.put(f"{BASE}/{record['id']}", json={field: None}, headers=hr["headers"])
        assert resp.status_code == 422, field

    resp = await client.get(f"{BASE}/{record['id']}", headers=hr["headers"])
    assert Decimal(str(resp.json()["data"]["latest_planned_ctc"])) == Decimal("1100000")
