"""Helpdesk module test suite — ticket creation, visibility, the full
assign → work → confirm → close → reopen lifecycle, guards and sweeps.

Tests exercise both the service layer (direct DB) and the HTTP API (via router).
Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from sqlalchemy import select

from backend.common.clock import utcnow
from backend.common.constants import SpecialistStatus, TicketStatus, UserRole
from backend.helpdesk.models import HelpdeskTicket
from backend.helpdesk.service import HelpdeskService
from backend.specialists.models import ITSpecialist

BASE = "/api/v1/helpdesk"


# ── Helpers ─────────────────────────────────────────────────────────


def _payload(**overrides) -> dict:
    body = {
        "module": "IT",
        "sub_category": "Hardware",
        "subject": "Laptop will not boot",
        "description": "The laptop shows a black screen after the logo.",
        "urgency": "high",
    }
    body.update(overrides)
    return body


async def _create(client, headers, **overrides) -> dict:
    resp = await client.post(BASE, json=_payload(**overrides), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _error_code(resp) -> str:
    return resp.json()["errors"]["code"][0]


async def _assigned_ticket(client, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    specialist = await make_user(UserRole.it_employee)
    ticket = await _create(client, owner["headers"])
    resp = await client.post(
        f"{BASE}/{ticket['id']}/assign",
        json={"assignee_id": str(specialist["id"]), "notes": "Please check the battery"},
        headers=admin["headers"],
    )
    assert resp.status_code == 200, resp.text
    return owner, admin, specialist, resp.json()["data"]


# ═════════════════════════════════════════════════════════════════════
# 1. CREATION
# ═════════════════════════════════════════════════════════════════════


async def test_create_ticket_without_approval_is_routed(client, make_user, it_subcategory):
    owner = await make_user()
    ticket = await _create(client, owner["headers"])

    assert ticket["ticket_number"] == "TKT0001"
    assert ticket["status"] == TicketStatus.routed.value
    assert ticket["approval_status"] == "Not Required"
    assert ticket["approval_completed"] is True
    assert ticket["routed_to"] == "IT"
    assert ticket["processing_queue"] == "IT Support"
    assert ticket["owner_id"] == str(owner["id"])
    assert ticket["history"][0]["action"] == "created"
    assert ticket["sla_status"] == "On Track"


async def test_ticket_numbers_are_sequential(client, make_user, it_subcategory):
    owner = await make_user()
    first = await _create(client, owner["headers"])
    second = await _create(client, owner["headers"], subject="Monitor flickers badly")
    assert (first["ticket_number"], second["ticket_number"]) == ("TKT0001", "TKT0002")


async def test_create_ticket_with_approval_starts_at_first_level(
    client, make_user, approval_subcategory,
):
    owner = await make_user()
    ticket = await _create(client, owner["headers"], sub_category="Software Licence")

    assert ticket["status"] == TicketStatus.pending_l1.value
    assert ticket["current_approval_level"] == "L1"
    assert ticket["approval_status"] == "Pending"
    assert ticket["approval_deadline"] is not None
    assert ticket["routed_to"] is None


async def test_create_ticket_validates_payload(client, make_user):
    owner = await make_user()
    resp = await client.post(BASE, json=_payload(subject="Hi"), headers=owner["headers"])
    assert resp.status_code == 422


async def test_create_ticket_requires_auth(client):
    resp = await client.post(BASE, json=_payload())
    assert resp.status_code == 401


async def test_create_ticket_caps_attachments(client, make_user, it_subcategory):
    owner = await make_user()
    files = [{"name": f"photo-{i}.png", "url": f"https://files.example.com/{i}"} for i in range(11)]

    resp = await client.post(BASE, json=_payload(attachments=files), headers=owner["headers"])
    assert resp.status_code == 422
    assert "attachments" in resp.json()["errors"]

    ticket = await _create(client, owner["headers"], attachments=files[:10])
    assert len(ticket["attachments"]) == 10


async def test_create_ticket_leaves_assignment_to_admins(client, db, make_user, it_subcategory):
    owner = await make_user()
    specialist = await make_user(UserRole.it_employee)
    db.add(
        ITSpecialist(
            employee_id=specialist["id"],
            name=specialist["display_name"],
            email=specialist["email"],
            specializations=["Hardware"],
            team="Hardware Team",
            status=SpecialistStatus.active,
            active_ticket_count=0,
            max_capacity=5,
        )
    )
    await db.commit()

    ticket = await _create(client, owner["headers"])
    assert ticket["status"] == TicketStatus.routed.value
    assert ticket["assignee_id"] is None


# ═════════════════════════════════════════════════════════════════════
# 2. VISIBILITY
# ═════════════════════════════════════════════════════════════════════


async def test_employee_lists_only_own_tickets(client, make_user, it_subcategory):
    alice = await make_user(first_name="Alice")
    bob = await make_user(first_name="Bob")
    await _create(client, alice["headers"])
    await _create(client, bob["headers"], subject="Keyboard keys stuck")

    resp = await client.get(BASE, headers=alice["headers"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["owner_id"] == str(alice["id"])


async def test_admin_lists_and_filters_all_tickets(client, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    await _create(client, owner["headers"], urgency="low")
    await _create(client, owner["headers"], urgency="critical", subject="Server room is flooding")

    resp = await client.get(BASE, params={"urgency": "critical"}, headers=admin["headers"])
    body = resp.json()
    assert body["meta"]["total"] == 1
    assert body["data"][0]["urgency"] == "critical"

    resp = await client.get(BASE, params={"search": "flooding"}, headers=admin["headers"])
    assert resp.json()["meta"]["total"] == 1


async def test_other_employee_cannot_view_ticket(client, make_user, it_subcategory):
    owner = await make_user()
    stranger = await make_user()
    ticket = await _create(client, owner["headers"])

    resp = await client.get(f"{BASE}/{ticket['id']}", headers=stranger["headers"])
    assert resp.status_code == 403


async def test_get_unknown_ticket_returns_404(client, make_user):
    admin = await make_user(UserRole.it_admin)
    resp = await client.get(f"{BASE}/{uuid.uuid4()}", headers=admin["headers"])
    assert resp.status_code == 404


# ═════════════════════════════════════════════════════════════════════
# 3. LIFECYCLE
# ═════════════════════════════════════════════════════════════════════


async def test_full_lifecycle_through_reopen(client, make_user, it_subcategory):
    owner, admin, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    tid = ticket["id"]
    assert ticket["status"] == "Assigned"
    assert ticket["assignee_id"] == str(specialist["id"])
    assert ticket["first_response_at"] is not None

    resp = await client.post(
        f"{BASE}/{tid}/progress",
        json={"progress_status": "In Progress", "notes": "Replacing the battery"},
        headers=specialist["headers"],
    )
    assert resp.json()["data"]["status"] == "In Progress"
    assert resp.json()["data"]["messages"][-1]["message_type"] == "status_update"

    resp = await client.post(
        f"{BASE}/{tid}/complete",
        json={"resolution_notes": "Battery replaced"},
        headers=specialist["headers"],
    )
    data = resp.json()["data"]
    assert data["status"] == "Work Completed"
    assert data["progress_status"] == "Completed"
    assert data["resolved_by"] == specialist["display_name"]

    resp = await client.post(
        f"{BASE}/{tid}/confirm", json={"feedback": "Works now"}, headers=owner["headers"],
    )
    assert resp.json()["data"]["status"] == TicketStatus.awaiting_closure.value

    resp = await client.post(
        f"{BASE}/{tid}/close", json={"closing_note": "Done"}, headers=admin["headers"],
    )
    data = resp.json()["data"]
    assert data["status"] == "Closed"
    assert data["closing_reason"] == "Resolved"

    resp = await client.post(
        f"{BASE}/{tid}/reopen", json={"reason": "It died again"}, headers=owner["headers"],
    )
    data = resp.json()["data"]
    assert data["status"] == "Reopened"
    assert data["reopen_count"] == 1
    assert data["assignee_id"] is None
    assert data["closed_at"] is None
    assert data["progress_status"] == "Not Started"
    actions = [h["action"] for h in data["history"]]
    assert actions[0] == "created"
    assert actions[-1] == "reopened"


async def test_complete_requires_resolution_notes(client, make_user, it_subcategory):
    _, _, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    resp = await client.post(
        f"{BASE}/{ticket['id']}/complete",
        json={"resolution_notes": "   "},
        headers=specialist["headers"],
    )
    assert resp.status_code == 400
    assert _error_code(resp) == "MISSING_RESOLUTION_NOTES"


async def test_only_owner_can_confirm(client, make_user, it_subcategory):
    _, admin, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    await client.post(
        f"{BASE}/{ticket['id']}/complete",
        json={"resolution_notes": "Fixed"},
        headers=specialist["headers"],
    )
    resp = await client.post(f"{BASE}/{ticket['id']}/confirm", json={}, headers=admin["headers"])
    assert resp.status_code == 403


async def test_close_requires_confirmation_first(client, make_user, it_subcategory):
    _, admin, _, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    resp = await client.post(f"{BASE}/{ticket['id']}/close", json={}, headers=admin["headers"])
    assert resp.status_code == 400
    assert _error_code(resp) == "INVALID_STATUS"


async def test_reopen_requires_reason(client, make_user, it_subcategory):
    owner = await make_user()
    ticket = await _create(client, owner["headers"])
    resp = await client.post(
        f"{BASE}/{ticket['id']}/reopen", json={"reason": ""}, headers=owner["headers"],
    )
    assert resp.status_code == 400
    assert _error_code(resp) == "MISSING_REOPEN_REASON"


async def test_pause_and_resume(client, make_user, it_subcategory):
    _, _, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    resp = await client.post(
        f"{BASE}/{ticket['id']}/pause",
        json={"reason": "Waiting for parts"},
        headers=specialist["headers"],
    )
    assert resp.json()["data"]["status"] == "Paused"

    resp = await client.post(f"{BASE}/{ticket['id']}/resume", headers=specialist["headers"])
    assert resp.json()["data"]["status"] == "In Progress"


# ═════════════════════════════════════════════════════════════════════
# 4. ASSIGNMENT AND CANCELLATION GUARDS
# ═════════════════════════════════════════════════════════════════════


async def test_non_admin_cannot_assign(client, make_user, it_subcategory):
    owner = await make_user()
    ticket = await _create(client, owner["headers"])
    resp = await client.post(
        f"{BASE}/{ticket['id']}/assign",
        json={"assignee_id": str(owner["id"])},
        headers=owner["headers"],
    )
    assert resp.status_code == 403


async def test_reassign_rules(client, make_user, it_subcategory):
    _, admin, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    url = f"{BASE}/{ticket['id']}/reassign"

    resp = await client.post(
        url, json={"assignee_id": str(specialist["id"]), "reason": ""}, headers=admin["headers"],
    )
    assert _error_code(resp) == "MISSING_REASSIGN_REASON"

    resp = await client.post(
        url,
        json={"assignee_id": str(specialist["id"]), "reason": "Load balancing"},
        headers=admin["headers"],
    )
    assert _error_code(resp) == "SAME_ASSIGNEE"

    other = await make_user(UserRole.it_employee, first_name="Other")
    resp = await client.post(
        url,
        json={"assignee_id": str(other["id"]), "reason": "Load balancing"},
        headers=admin["headers"],
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["assignee_id"] == str(other["id"])
    assert resp.json()["data"]["history"][-1]["action"] == "reassigned"


async def test_reassign_unassigned_ticket_fails(client, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    ticket = await _create(client, owner["headers"])
    resp = await client.post(
        f"{BASE}/{ticket['id']}/reassign",
        json={"assignee_id": str(admin["id"]), "reason": "x"},
        headers=admin["headers"],
    )
    assert _error_code(resp) == "NOT_ASSIGNED"


async def test_cancel_then_cancel_again(client, make_user, it_subcategory):
    owner = await make_user()
    ticket = await _create(client, owner["headers"])

    resp = await client.post(
        f"{BASE}/{ticket['id']}/cancel", json={"reason": "Fixed it myself"}, headers=owner["headers"],
    )
    data = resp.json()["data"]
    assert data["status"] == "Cancelled"
    assert data["closing_reason"] == "User Cancellation"

    resp = await client.post(f"{BASE}/{ticket['id']}/cancel", json={}, headers=owner["headers"])
    assert resp.status_code == 400
    assert _error_code(resp) == "CANNOT_CANCEL"


async def test_cancel_blocked_once_work_is_confirmed_or_closed(client, make_user, it_subcategory):
    owner, admin, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    tid = ticket["id"]
    await client.post(
        f"{BASE}/{tid}/complete", json={"resolution_notes": "Cable swapped"},
        headers=specialist["headers"],
    )
    resp = await client.post(f"{BASE}/{tid}/confirm", json={}, headers=owner["headers"])
    assert resp.json()["data"]["status"] == TicketStatus.awaiting_closure.value

    resp = await client.post(f"{BASE}/{tid}/cancel", json={}, headers=owner["headers"])
    assert resp.status_code == 400
    assert _error_code(resp) == "CANNOT_CANCEL"

    await client.post(f"{BASE}/{tid}/close", json={}, headers=admin["headers"])
    resp = await client.post(f"{BASE}/{tid}/cancel", json={}, headers=admin["headers"])
    assert _error_code(resp) == "CANNOT_CANCEL"

    resp = await client.get(f"{BASE}/{tid}", headers=owner["headers"])
    assert resp.json()["data"]["status"] == "Closed"


async def test_specialist_load_follows_assignment(client, db, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    specialist = await make_user(UserRole.it_employee)
    db.add(
        ITSpecialist(
            employee_id=specialist["id"],
            name=specialist["display_name"],
            email=specialist["email"],
            team="Hardware Team",
            specializations=["Hardware"],
            status=SpecialistStatus.active,
            active_ticket_count=0,
            max_capacity=5,
        )
    )
    await db.commit()

    ticket = await _create(client, owner["headers"])
    await client.post(
        f"{BASE}/{ticket['id']}/assign",
        json={"assignee_id": str(specialist["id"])},
        headers=admin["headers"],
    )

    async def _load() -> int:
        row = await db.execute(
            select(ITSpecialist.active_ticket_count).where(
                ITSpecialist.employee_id == specialist["id"],
            )
        )
        return row.scalar_one()

    assert await _load() == 1
    await client.post(f"{BASE}/{ticket['id']}/cancel", json={}, headers=owner["headers"])
    assert await _load() == 0


# ═════════════════════════════════════════════════════════════════════
# 5. CONVERSATION, DELETE, SWEEPS
# ═════════════════════════════════════════════════════════════════════


async def test_messages_record_sender_role(client, make_user, it_subcategory):
    owner, admin, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    url = f"{BASE}/{ticket['id']}/messages"

    resp = await client.post(url, json={"message": "Any update?"}, headers=owner["headers"])
    assert resp.status_code == 201
    assert resp.json()["data"]["messages"][-1]["sender"] == "employee"

    resp = await client.post(url, json={"message": "On it"}, headers=specialist["headers"])
    assert resp.json()["data"]["messages"][-1]["sender"] == "specialist"

    stranger = await make_user()
    resp = await client.post(url, json={"message": "Hello"}, headers=stranger["headers"])
    assert resp.status_code == 403


async def test_delete_requires_helpdesk_admin(client, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    ticket = await _create(client, owner["headers"])

    resp = await client.delete(f"{BASE}/{ticket['id']}", headers=owner["headers"])
    assert resp.status_code == 403

    resp = await client.delete(f"{BASE}/{ticket['id']}", headers=admin["headers"])
    assert resp.status_code == 204
    resp = await client.get(f"{BASE}/{ticket['id']}", headers=admin["headers"])
    assert resp.status_code == 404


async def test_auto_close_stale_work_completed(client, db, make_user, it_subcategory):
    _, _, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    await client.post(
        f"{BASE}/{ticket['id']}/complete",
        json={"resolution_notes": "Fixed"},
        headers=specialist["headers"],
    )
    row = await db.get(HelpdeskTicket, uuid.UUID(ticket["id"]))
    row.resolved_at = utcnow() - timedelta(hours=73)
    await db.commit()

    preview = await HelpdeskService.auto_close_stale(db, dry_run=True)
    assert [t.ticket_number for t in preview] == [ticket["ticket_number"]]

    closed = await HelpdeskService.auto_close_stale(db)
    await db.commit()
    assert len(closed) == 1
    refreshed = await HelpdeskService.get_ticket(db, uuid.UUID(ticket["id"]))
    assert refreshed.status == TicketStatus.auto_closed
    assert refreshed.closed_by_name == "System"
    assert refreshed.history[-1].action == "auto_closed"


async def test_auto_close_skips_recent_completion(client, db, make_user, it_subcategory):
    _, _, specialist, ticket = await _assigned_ticket(client, make_user, it_subcategory)
    await client.post(
        f"{BASE}/{ticket['id']}/complete",
        json={"resolution_notes": "Fixed"},
        headers=specialist["headers"],
    )
    assert await HelpdeskService.auto_close_stale(db) == []
