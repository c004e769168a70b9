"""Timesheet tests — hours parsing, weekly submission, recall and the
approval flow (project manager, reporting manager and RMG)."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from backend.common.constants import (
    BillingType,
    NotificationType,
    ProjectRegion,
    ProjectStatus,
    UserRole,
)
from backend.notifications.models import Notification
from backend.projects.models import Project
from backend.timesheets.service import parse_hours

BASE = "/api/v1/timesheets"

# 2027-03-01 is a Monday
MON = date(2027, 3, 1)
NEXT_MON = date(2027, 3, 8)
WORKWEEK = ["8:00"] * 5 + ["", ""]


async def _project(db, manager_id=None, status=ProjectStatus.active) -> Project:
    project = Project(
        project_code=f"PRJ-{uuid.uuid4().hex[:6]}",
        name="Payments Gateway",
        billing_type=BillingType.time_and_material,
        region=ProjectRegion.india,
        project_manager_id=manager_id,
        start_date=date(2027, 1, 1),
        status=status,
    )
    db.add(project)
    await db.commit()
    return project


def _row(activity: str = "Development", hours=None, project_id=None, **extra) -> dict:
    row = {"activity": activity, "hours": list(hours or WORKWEEK)}
    if project_id is not None:
        row["project_id"] = str(project_id)
    row.update(extra)
    return row


async def _submit(client, user, rows, week: date = MON, **extra):
    body = {"week_start": week.isoformat(), "rows": rows, **extra}
    return await client.post(f"{BASE}/submit", json=body, headers=user["headers"])


async def _notifications(db, recipient_id, type_: NotificationType) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(
            Notification.recipient_id == recipient_id,
            Notification.type == type_,
        )
    )
    return list(result.scalars().all())


@pytest.fixture
async def team(db, make_user):
    """Employee with a reporting manager, a project manager and an active project."""
    manager = await make_user(UserRole.manager)
    pm = await make_user()
    employee = await make_user(reporting_manager_id=manager["id"])
    stranger = await make_user()
    project = await _project(db, manager_id=pm["id"])
    return {
        "manager": manager, "pm": pm, "employee": employee,
        "stranger": stranger, "project": project,
    }


def _standard_rows(project_id) -> list[dict]:
    return [
        _row("Development", project_id=project_id, billable=True),
        _row("Internal Meeting", ["1:30", "", "", "", "", "", ""]),
    ]


async def _meta(client, user, activity: str, day: int, week: date = MON) -> dict:
    resp = await client.get(f"{BASE}/week/{week.isoformat()}", headers=user["headers"])
    row = next(r for r in resp.json()["data"]["rows"] if r["activity"] == activity)
    return row["entry_meta"][day]


# ═════════════════════════════════════════════════════════════════════
# 1. HOURS PARSING
# ═════════════════════════════════════════════════════════════════════


class TestParseHours:
    def test_clock_and_decimal_forms(self):
        assert parse_hours("8:30") == 510
        assert parse_hours("7.5") == 450
        assert parse_hours("0:45") == 45

    def test_blank_is_zero(self):
        assert parse_hours("") == 0
        assert parse_hours("  ") == 0
        assert parse_hours(None) == 0

    @pytest.mark.parametrize("value", ["abc", "8:75", "25:00", "-1", "1:2:3", "nan"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_hours(value)


# ═════════════════════════════════════════════════════════════════════
# 2. SUBMISSION
# ═════════════════════════════════════════════════════════════════════


async def test_submit_builds_week_and_notifies_approvers(client, db, team):
    resp = await _submit(client, team["employee"], _standard_rows(team["project"].id))
    assert resp.status_code == 201
    week = resp.json()["data"]
    assert week["status"] == "submitted"
    assert week["total_hours"] == 41.5
    assert week["week_end"] == "2027-03-07"

    dev = next(r for r in week["rows"] if r["activity"] == "Development")
    assert dev["hours"] == ["08:00"] * 5 + ["", ""]
    assert dev["project_name"] == "Payments Gateway"
    assert dev["billable"] is True
    assert dev["entry_meta"][5] is None

    assert len(await _notifications(db, team["pm"]["id"], NotificationType.approval)) == 1
    assert len(await _notifications(db, team["manager"]["id"], NotificationType.approval)) == 1


async def test_submit_requires_some_hours(client, team):
    resp = await _submit(client, team["employee"], [_row(hours=[""] * 7)])
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == ["NO_HOURS"]


async def test_week_must_start_on_monday(client, team):
    resp = await _submit(client, team["employee"], [_row()], week=date(2027, 3, 2))
    assert resp.status_code == 422
    assert "week_start" in resp.json()["errors"]

    resp = await client.get(f"{BASE}/week/2027-03-02", headers=team["employee"]["headers"])
    assert resp.status_code == 422


async def test_invalid_cell_and_overfull_day_rejected(client, team):
    resp = await _submit(client, team["employee"], [_row(hours=["8:99"] + [""] * 6)])
    assert resp.status_code == 422
    assert "hours" in resp.json()["errors"]

    resp = await _submit(
        client, team["employee"],
        [_row("Development", ["16:00"] + [""] * 6), _row("Support", ["9:00"] + [""] * 6)],
    )
    assert resp.status_code == 422
    assert "2027-03-01" in resp.json()["errors"]["hours"][0]


async def test_duplicate_rows_rejected(client, team):
    resp = await _submit(client, team["employee"], [_row(), _row()])
    assert resp.status_code == 422


async def test_cannot_book_on_inactive_project(client, db, team):
    on_hold = await _project(db, manager_id=team["pm"]["id"], status=ProjectStatus.on_hold)
    resp = await _submit(client, team["employee"], [_row(project_id=on_hold.id)])
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == ["PROJECT_NOT_ACTIVE"]


async def test_resubmit_replaces_cells(client, team):
    await _submit(client, team["employee"], [_row()])
    resp = await _submit(
        client, team["employee"], [_row(hours=["8:00", "", "8:00", "", "", "", ""])],
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["total_hours"] == 16.0


async def test_draft_is_not_sent_for_approval(client, db, team):
    resp = await _submit(client, team["employee"], _standard_rows(team["project"].id), draft=True)
    assert resp.status_code == 201
    assert resp.json()["data"]["status"] == "draft"

    resp = await client.get(f"{BASE}/approvals/pending", headers=team["pm"]["headers"])
    assert resp.json()["meta"]["total"] == 0
    assert await _notifications(db, team["pm"]["id"], NotificationType.approval) == []


# ═════════════════════════════════════════════════════════════════════
# 3. VIEWS
# ═════════════════════════════════════════════════════════════════════


async def test_week_visible_to_managers_only(client, team):
    await _submit(client, team["employee"], _standard_rows(team["project"].id))
    url = f"{BASE}/week/{MON.isoformat()}?employee_id={team['employee']['id']}"

    assert (await client.get(url, headers=team["manager"]["headers"])).status_code == 200
    assert (await client.get(url, headers=team["pm"]["headers"])).status_code == 200
    assert (await client.get(url, headers=team["stranger"]["headers"])).status_code == 403


async def test_weeks_list_and_date_range(client, team):
    await _submit(client, team["employee"], _standard_rows(team["project"].id))
    await _submit(client, team["employee"], [_row()], week=NEXT_MON)

    resp = await client.get(f"{BASE}/weeks", headers=team["employee"]["headers"])
    weeks = resp.json()["data"]
    assert [w["week_start"] for w in weeks] == ["2027-03-08", "2027-03-01"]
    assert weeks[1]["entries"] == 6

    resp = await client.get(
        f"{BASE}/range?start=2027-03-01&end=2027-03-03", headers=team["employee"]["headers"],
    )
    assert resp.json()["meta"]["total"] == 4

    resp = await client.get(
        f"{BASE}/range?start=2027-03-03&end=2027-03-01", headers=team["employee"]["headers"],
    )
    assert resp.status_code == 422


# ═════════════════════════════════════════════════════════════════════
# 4. APPROVAL FLOW
# ═════════════════════════════════════════════════════════════════════


async def test_pending_split_between_project_and_reporting_manager(client, team):
    await _submit(client, team["employee"], _standard_rows(team["project"].id))

    resp = await client.get(f"{BASE}/approvals/pending", headers=team["pm"]["headers"])
    assert resp.json()["meta"]["total"] == 5
    assert {e["activity"] for e in resp.json()["data"]} == {"Development"}

    resp = await client.get(f"{BASE}/approvals/pending", headers=team["manager"]["headers"])
    assert [e["activity"] for e in resp.json()["data"]] == ["Internal Meeting"]


async def test_approve_week_then_approved_cells_are_frozen(client, team):
    employee, project = team["employee"], team["project"]
    await _submit(client, employee, _standard_rows(project.id))
    body = {"employee_id": str(employee["id"]), "week_start": MON.isoformat()}

    resp = await client.put(
        f"{BASE}/approvals/approve-week", json=body, headers=team["stranger"]["headers"],
    )
    assert resp.status_code == 403
    resp = await client.put(f"{BASE}/approvals/approve-week", json=body, headers=employee["headers"])
    assert resp.status_code == 403

    resp = await client.put(
        f"{BASE}/approvals/approve-week",
        json={**body, "project_id": str(project.id)},
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 5

    meeting = await _meta(client, employee, "Internal Meeting", 0)
    assert meeting["approval_status"] == "pending"
    resp = await client.put(
        f"{BASE}/entries/{meeting['id']}/approve", headers=team["manager"]["headers"],
    )
    assert resp.status_code == 200

    resp = await client.get(f"{BASE}/week/{MON.isoformat()}", headers=employee["headers"])
    assert resp.json()["data"]["status"] == "approved"

    # Resending unchanged approved cells is fine; changing them is not.
    resp = await _submit(client, employee, _standard_rows(project.id))
    assert resp.status_code == 201
    rows = _standard_rows(project.id)
    rows[0]["hours"][0] = "9:00"
    resp = await _submit(client, employee, rows)
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == ["ENTRY_APPROVED"]


async def test_reject_entry_notifies_employee(client, db, team):
    employee = team["employee"]
    await _submit(client, employee, _standard_rows(team["project"].id))
    entry = await _meta(client, employee, "Development", 0)

    resp = await client.put(
        f"{BASE}/entries/{entry['id']}/reject",
        json={"reason": "Wrong project code"},
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["review_comment"] == "Wrong project code"

    resp = await client.get(f"{BASE}/week/{MON.isoformat()}", headers=employee["headers"])
    assert resp.json()["data"]["status"] == "rejected"
    assert len(await _notifications(db, employee["id"], NotificationType.rejection)) == 1

    resp = await client.put(
        f"{BASE}/entries/{entry['id']}/reject",
        json={"reason": "Again"},
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == ["NOTHING_TO_REVIEW"]


async def test_revision_request_and_resubmission(client, team):
    employee, project = team["employee"], team["project"]
    await _submit(client, employee, _standard_rows(project.id))

    resp = await client.put(
        f"{BASE}/approvals/revision-request",
        json={
            "employee_id": str(employee["id"]),
            "week_start": MON.isoformat(),
            "project_id": str(project.id),
            "reverts": [{"day_index": 1, "activity": "Development", "reason": "Split by ticket"}],
        },
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 200
    entry = resp.json()["data"][0]
    assert entry["approval_status"] == "revision_requested"
    assert entry["review_comment"] == "Split by ticket"

    resp = await client.get(f"{BASE}/week/{MON.isoformat()}", headers=employee["headers"])
    assert resp.json()["data"]["status"] == "revision_requested"

    rows = _standard_rows(project.id)
    rows[0]["hours"][1] = "7:00"
    await _submit(client, employee, rows)
    tuesday = await _meta(client, employee, "Development", 1)
    assert tuesday["approval_status"] == "pending"
    assert tuesday["review_comment"] is None


async def test_revision_request_for_missing_cell_is_404(client, team):
    employee = team["employee"]
    await _submit(client, employee, _standard_rows(team["project"].id))
    resp = await client.put(
        f"{BASE}/approvals/revision-request",
        json={
            "employee_id": str(employee["id"]),
            "week_start": MON.isoformat(),
            "reverts": [{"day_index": 6, "activity": "Development", "reason": "?"}],
        },
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 404


async def test_approve_selected_days(client, team):
    employee, project = team["employee"], team["project"]
    await _submit(client, employee, _standard_rows(project.id))

    resp = await client.put(
        f"{BASE}/approvals/approve-days",
        json={
            "employee_id": str(employee["id"]),
            "week_start": MON.isoformat(),
            "project_id": str(project.id),
            "day_indexes": [0, 1],
        },
        headers=team["pm"]["headers"],
    )
    assert resp.status_code == 200
    assert sorted(e["work_date"] for e in resp.json()["data"]) == ["2027-03-01", "2027-03-02"]

    resp = await client.get(f"{BASE}/approvals/pending", headers=team["pm"]["headers"])
    assert resp.json()["meta"]["total"] == 3


async def test_rmg_reviews_anyone_but_themselves(client, make_user, team):
    rmg = await make_user(UserRole.rmg)
    await _submit(client, team["employee"], _standard_rows(team["project"].id))

    resp = await client.put(
        f"{BASE}/approvals/approve-week",
        json={"employee_id": str(team["employee"]["id"]), "week_start": MON.isoformat()},
        headers=rmg["headers"],
    )
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 6

    await _submit(client, rmg, [_row()])
    resp = await client.put(
        f"{BASE}/approvals/approve-week",
        json={"employee_id": str(rmg["id"]), "week_start": MON.isoformat()},
        headers=rmg["headers"],
    )
    assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# 5. RECALL / ROW DELETE / REMINDERS
# ═════════════════════════════════════════════════════════════════════


async def test_recall_keeps_approved_entries(client, team):
    employee, project = team["employee"], team["project"]
    await _submit(client, employee, _standard_rows(project.id))
    await client.put(
        f"{BASE}/approvals/approve-days",
        json={
            "employee_id": str(employee["id"]),
            "week_start": MON.isoformat(),
            "project_id": str(project.id),
            "day_indexes": [0],
        },
        headers=team["pm"]["headers"],
    )

    resp = await client.delete(f"{BASE}/week/{MON.isoformat()}", headers=employee["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"] == {"deleted": 5, "kept": 1}

    resp = await client.delete(f"{BASE}/week/{MON.isoformat()}", headers=employee["headers"])
    assert resp.status_code == 400
    assert resp.json()["errors"]["code"] == ["NOTHING_TO_RECALL"]


async def test_delete_row(client, team):
    employee = team["employee"]
    await _submit(client, employee, _standard_rows(team["project"].id))
    url = f"{BASE}/week/{MON.isoformat()}/rows?activity=Internal%20Meeting"

    resp = await client.delete(url, headers=employee["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"]["deleted"] == 1

    resp = await client.delete(url, headers=employee["headers"])
    assert resp.status_code == 404


async def test_reminder_from_project_manager(client, db, team):
    body = {
        "employee_id": str(team["employee"]["id"]),
        "week_start": MON.isoformat(),
        "project_id": str(team["project"].id),
    }
    resp = await client.post(f"{BASE}/reminders", json=body, headers=team["pm"]["headers"])
    assert resp.status_code == 201
    reminders = await _notifications(db, team["employee"]["id"], NotificationType.reminder)
    assert len(reminders) == 1
    assert "Payments Gateway" in reminders[0].message

    resp = await client.post(f"{BASE}/reminders", json=body, headers=team["stranger"]["headers"])
    assert resp.status_code == 403
