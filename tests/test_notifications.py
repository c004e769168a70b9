"""Notification tests — service CRUD, ownership checks, fan-out helpers
and the API endpoints."""

from __future__ import annotations

import uuid

import pytest

from backend.common.constants import NotificationType, UserRole
from backend.common.exceptions import ForbiddenException, NotFoundException
from backend.common.pagination import PaginationParams
from backend.notifications.service import NotificationService

BASE = "/api/v1/notifications"


async def _notify(db, recipient_id, title="Hello", **fields):
    notification = await NotificationService.create_notification(
        db, recipient_id=recipient_id, title=title, message="Body text", **fields,
    )
    await db.commit()
    return notification


# ═════════════════════════════════════════════════════════════════════
# 1. SERVICE
# ═════════════════════════════════════════════════════════════════════


class TestNotificationService:
    async def test_list_is_newest_first_with_unread_meta(self, db, make_user):
        user = await make_user()
        await _notify(db, user["id"], title="First")
        second = await _notify(db, user["id"], title="Second")
        await NotificationService.mark_read(db, second.id, user["id"])

        result = await NotificationService.get_notifications(
            db, user["id"], PaginationParams(page=1, page_size=10, sort=None),
        )
        assert [n.title for n in result.data] == ["Second", "First"]
        assert result.meta.total == 2
        assert result.meta.unread == 1

    async def test_filter_by_type(self, db, make_user):
        user = await make_user()
        await _notify(db, user["id"], type=NotificationType.leave)
        await _notify(db, user["id"], type=NotificationType.ticket)
        result = await NotificationService.get_notifications(
            db, user["id"], PaginationParams(page=1, page_size=10, sort=None),
            notification_type=NotificationType.leave,
        )
        assert [n.type for n in result.data] == [NotificationType.leave]

    async def test_cannot_touch_someone_elses(self, db, make_user):
        owner = await make_user()
        other = await make_user()
        notification = await _notify(db, owner["id"])
        with pytest.raises(ForbiddenException):
            await NotificationService.mark_read(db, notification.id, other["id"])
        with pytest.raises(NotFoundException):
            await NotificationService.delete_notification(db, uuid.uuid4(), owner["id"])

    async def test_notify_role_reaches_active_holders(self, db, make_user):
        first = await make_user(UserRole.it_admin)
        second = await make_user(UserRole.it_admin)
        await make_user()

        created = await NotificationService.notify_role(
            db, UserRole.it_admin, exclude=second["id"], title="Heads up", message="Body",
        )
        assert [n.recipient_id for n in created] == [first["id"]]
        assert created[0].recipient_role == UserRole.it_admin

    async def test_notify_users_deduplicates(self, db, make_user):
        user = await make_user()
        created = await NotificationService.notify_users(
            db, [user["id"], user["id"]], title="Once", message="Body",
        )
        assert len(created) == 1


# ═════════════════════════════════════════════════════════════════════
# 2. API
# ═════════════════════════════════════════════════════════════════════


async def test_ticket_events_notify_owner_and_admins(client, make_user, it_subcategory):
    owner = await make_user()
    admin = await make_user(UserRole.it_admin)
    await client.post(
        "/api/v1/helpdesk",
        json={
            "module": "IT",
            "sub_category": "Hardware",
            "subject": "VPN keeps dropping",
            "description": "VPN disconnects every ten minutes.",
        },
        headers=owner["headers"],
    )

    resp = await client.get(BASE, headers=owner["headers"])
    body = resp.json()
    assert body["meta"]["unread"] == 1
    assert body["data"][0]["title"] == "Ticket created"
    assert body["data"][0]["meta"]["ticket_number"] == "TKT0001"

    resp = await client.get(BASE, headers=admin["headers"])
    assert resp.json()["data"][0]["title"] == "New ticket routed"


async def test_read_flow(client, db, make_user):
    user = await make_user()
    first = await _notify(db, user["id"])
    await _notify(db, user["id"])

    resp = await client.get(f"{BASE}/unread-count", headers=user["headers"])
    assert resp.json()["data"]["count"] == 2

    resp = await client.put(f"{BASE}/{first.id}/read", headers=user["headers"])
    assert resp.json()["data"]["is_read"] is True

    resp = await client.put(f"{BASE}/read-all", headers=user["headers"])
    assert resp.json()["data"]["count"] == 1

    resp = await client.get(BASE, params={"is_read": False}, headers=user["headers"])
    assert resp.json()["meta"]["total"] == 0


async def test_delete_and_clear(client, db, make_user):
    user = await make_user()
    first = await _notify(db, user["id"])
    await _notify(db, user["id"])
    await _notify(db, user["id"])

    resp = await client.delete(f"{BASE}/{first.id}", headers=user["headers"])
    assert resp.status_code == 204

    resp = await client.delete(f"{BASE}/clear-all", headers=user["headers"])
    assert resp.json()["data"]["count"] == 2


async def test_send_requires_permission(client, make_user):
    user = await make_user()
    resp = await client.post(
        BASE,
        json={"recipient_id": str(user["id"]), "title": "Hi", "message": "There"},
        headers=user["headers"],
    )
    assert resp.status_code == 403


async def test_hr_sends_to_role(client, make_user):
    hr = await make_user(UserRole.hr)
    await make_user(UserRole.manager)
    await make_user(UserRole.manager)

    resp = await client.post(
        BASE,
        json={"recipient_role": "manager", "title": "Review cycle", "message": "Starts Monday"},
        headers=hr["headers"],
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["count"] == 2


async def test_send_needs_exactly_one_target(client, make_user):
    hr = await make_user(UserRole.hr)
    resp = await client.post(
        BASE, json={"title": "Nobody", "message": "Lost"}, headers=hr["headers"],
    )
    assert resp.status_code == 422
