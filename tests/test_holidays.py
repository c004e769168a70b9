"""Holiday calendar tests."""

from __future__ import annotations

from datetime import date

from backend.common.constants import HolidayType, UserRole
from backend.holidays.models import Holiday
from backend.holidays.service import HolidayService

BASE = "/api/v1/holidays"


async def test_hr_creates_and_lists_by_year(client, make_user):
    hr = await make_user(UserRole.hr)
    for name, day in [("Diwali", "2027-10-29"), ("Republic Day", "2027-01-26"), ("Holi", "2028-03-11")]:
        resp = await client.post(BASE, json={"name": name, "date": day}, headers=hr["headers"])
        assert resp.status_code == 201, resp.text

    resp = await client.get(BASE, params={"year": 2027}, headers=hr["headers"])
    assert [h["name"] for h in resp.json()["data"]] == ["Republic Day", "Diwali"]


async def test_filter_by_type(client, make_user):
    hr = await make_user(UserRole.hr)
    await client.post(BASE, json={"name": "Onam", "date": "2027-09-15", "type": "Regional"},
                      headers=hr["headers"])
    await client.post(BASE, json={"name": "Founders Day", "date": "2027-06-01", "type": "Company"},
                      headers=hr["headers"])
    resp = await client.get(BASE, params={"type": "Company"}, headers=hr["headers"])
    assert [h["name"] for h in resp.json()["data"]] == ["Founders Day"]


async def test_duplicate_is_a_conflict(client, make_user):
    hr = await make_user(UserRole.hr)
    body = {"name": "Diwali", "date": "2027-10-29"}
    await client.post(BASE, json=body, headers=hr["headers"])
    resp = await client.post(BASE, json=body, headers=hr["headers"])
    assert resp.status_code == 409


async def test_employee_cannot_manage(client, make_user):
    employee = await make_user()
    resp = await client.post(
        BASE, json={"name": "Party", "date": "2027-12-31"}, headers=employee["headers"],
    )
    assert resp.status_code == 403


async def test_update_and_delete(client, make_user):
    hr = await make_user(UserRole.hr)
    holiday = (await client.post(
        BASE, json={"name": "Diwali", "date": "2027-10-29"}, headers=hr["headers"],
    )).json()["data"]

    resp = await client.patch(
        f"{BASE}/{holiday['id']}", json={"type": "Optional"}, headers=hr["headers"],
    )
    assert resp.json()["data"]["type"] == "Optional"

    resp = await client.delete(f"{BASE}/{holiday['id']}", headers=hr["headers"])
    assert resp.status_code == 204
    resp = await client.get(f"{BASE}/{holiday['id']}", headers=hr["headers"])
    assert resp.status_code == 404


async def test_upcoming_and_blocking_dates(db):
    db.add_all([
        Holiday(name="Past", date=date(2027, 1, 1), type=HolidayType.national),
        Holiday(name="Holi", date=date(2027, 3, 22), type=HolidayType.national),
        Holiday(name="Fair", date=date(2027, 3, 23), type=HolidayType.optional),
    ])
    await db.commit()

    upcoming = await HolidayService.upcoming(db, today=date(2027, 2, 1))
    assert [h.name for h in upcoming] == ["Holi", "Fair"]

    blocked = await HolidayService.blocking_dates(db, date(2027, 3, 1), date(2027, 3, 31))
    assert blocked == {date(2027, 3, 22)}


async def test_update_rejects_null_date(client, make_user):
    hr = await make_user(UserRole.hr)
    holiday = (await client.post(
        BASE,
        json={"name": "Onam", "date": "2027-09-05", "description": "Harvest festival"},
        headers=hr["headers"],
    )).json()["data"]

    resp = await client.patch(f"{BASE}/{holiday['id']}", json={"date": None}, headers=hr["headers"])
    assert resp.status_code == 422
    assert "date" in resp.json()["errors"]

    resp = await client.patch(
        f"{BASE}/{holiday['id']}", json={"description": None}, headers=hr["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["description"] is None
