"""Security test suite — rate limiting and refresh token rotation.

Covers:
1. Rate limiting on login, ticket creation and ticket messages
2. Refresh token rotation with reuse detection
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from backend.auth.models import UserSession
from tests.conftest import create_access_token, create_refresh_token


# ═════════════════════════════════════════════════════════════════════
# 1. RATE LIMITING
# ═════════════════════════════════════════════════════════════════════


class TestRateLimiting:
    """Verify per-endpoint limits."""

    @pytest.fixture(autouse=True)
    def _enable_limiter(self):
        from backend.common.rate_limit import limiter

        original = limiter.enabled
        limiter.enabled = True
        limiter.reset()
        yield
        limiter.enabled = original

    async def test_login_rate_limited_at_10_per_minute(self, client, test_employee):
        """Failed logins still count; the 11th request gets 429."""
        for i in range(10):
            resp = await client.post(
                "/api/v1/auth/login",
                json={"email": test_employee["email"], "password": f"wrong-{i}"},
            )
            assert resp.status_code == 401, f"Request {i+1} should not be rate-limited"

        resp = await client.post(
            "/api/v1/auth/login",
            json={"email": test_employee["email"], "password": "correct-horse-battery"},
        )
        assert resp.status_code == 429

    async def test_ticket_creation_rate_limited_per_hour(self, client, make_user):
        owner = await make_user()
        body = {
            "module": "IT",
            "sub_category": "Hardware",
            "subject": "Monitor flickers",
            "description": "Second monitor flickers when the laptop is docked.",
        }
        for i in range(10):
            resp = await client.post("/api/v1/helpdesk", json=body, headers=owner["headers"])
            assert resp.status_code == 201, f"Ticket {i+1} should be accepted"

        resp = await client.post("/api/v1/helpdesk", json=body, headers=owner["headers"])
        assert resp.status_code == 429

    async def test_ticket_messages_rate_limited_at_30_per_10_minutes(self, client, make_user):
        owner = await make_user()
        resp = await client.post(
            "/api/v1/helpdesk",
            json={
                "module": "IT",
                "sub_category": "Network",
                "subject": "VPN drops hourly",
                "description": "The VPN disconnects roughly once an hour.",
            },
            headers=owner["headers"],
        )
        url = f"/api/v1/helpdesk/{resp.json()['data']['id']}/messages"

        for i in range(30):
            resp = await client.post(url, json={"message": f"Update {i}"}, headers=owner["headers"])
            assert resp.status_code == 201, f"Message {i+1} should be accepted"

        resp = await client.post(url, json={"message": "One more"}, headers=owner["headers"])
        assert resp.status_code == 429


# ═════════════════════════════════════════════════════════════════════
# 2. REFRESH TOKEN ROTATION
# ═════════════════════════════════════════════════════════════════════


async def _stored_refresh(db, employee_id) -> tuple[str, uuid.UUID]:
    refresh = create_refresh_token(employee_id)
    session = UserSession(
        id=uuid.uuid4(),
        employee_id=employee_id,
        token_hash=f"access-{uuid.uuid4().hex}",
        refresh_token_hash=hashlib.sha256(refresh.encode()).hexdigest(),
        expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        is_revoked=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(session)
    await db.commit()
    return refresh, session.id


class TestRefreshTokenRotation:
    """Verify refresh token rotation and reuse detection."""

    async def test_refresh_returns_new_tokens(self, client, db, test_employee):
        old_refresh, _ = await _stored_refresh(db, test_employee["id"])

        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
        assert resp.status_code == 200
        data = resp.json()
        assert data["refresh_token"] != old_refresh

        resp = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"},
        )
        assert resp.status_code == 200

    async def test_old_refresh_token_invalidated_after_use(
        self, client, db, session_factory, test_employee,
    ):
        old_refresh, session_id = await _stored_refresh(db, test_employee["id"])

        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": old_refresh})
        assert resp.status_code == 200

        async with session_factory() as check_db:
            old_session = await check_db.get(UserSession, session_id)
            assert old_session.is_revoked is True

    async def test_chained_refresh(self, client, db, test_employee):
        refresh, _ = await _stored_refresh(db, test_employee["id"])

        resp1 = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        new_refresh = resp1.json()["refresh_token"]

        resp2 = await client.post("/api/v1/auth/refresh", json={"refresh_token": new_refresh})
        assert resp2.status_code == 200
        assert resp2.json()["refresh_token"] != new_refresh

    async def test_reuse_revokes_every_session(self, client, db, session_factory, test_employee):
        refresh, _ = await _stored_refresh(db, test_employee["id"])

        resp1 = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert resp1.status_code == 200

        resp2 = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert resp2.status_code == 403
        assert "reuse" in resp2.json()["detail"].lower()

        async with session_factory() as check_db:
            result = await check_db.execute(
                select(UserSession).where(
                    UserSession.employee_id == test_employee["id"],
                    UserSession.is_revoked.is_(False),
                ),
            )
            assert result.scalars().all() == []

    async def test_unknown_refresh_token_rejected(self, client, test_employee):
        refresh = create_refresh_token(test_employee["id"])
        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert resp.status_code == 403

    async def test_expired_refresh_token_rejected(self, client, test_employee):
        expired = create_refresh_token(test_employee["id"], expired=True)
        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": expired})
        assert resp.status_code == 403

    async def test_access_token_cannot_refresh(self, client, test_employee):
        resp = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": create_access_token(test_employee["id"])},
        )
        assert resp.status_code == 403
