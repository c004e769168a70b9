"""Announcement tests — publishing, feed ordering, likes, reactions,
comments and polls."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from backend.common.constants import UserRole

BASE = "/api/v1/announcements"


async def _post(client, hr, **overrides) -> dict:
    body = {"title": "Office closed Friday", "content": "Maintenance work in the building."}
    body.update(overrides)
    resp = await client.post(BASE, json=body, headers=hr["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


# ── Management ──────────────────────────────────────────────────────


async def test_create_requires_manage_permission(client, make_user):
    employee = await make_user()
    resp = await client.post(
        BASE, json={"title": "Hi", "content": "Hello"}, headers=employee["headers"],
    )
    assert resp.status_code == 403


async def test_draft_hidden_until_published(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    draft = await _post(client, hr, publish=False)
    assert draft["is_published"] is False
    assert draft["published_at"] is None

    resp = await client.get(BASE, headers=employee["headers"])
    assert resp.json()["meta"]["total"] == 0

    resp = await client.get(BASE, params={"include_drafts": True}, headers=hr["headers"])
    assert resp.json()["meta"]["total"] == 1

    resp = await client.post(f"{BASE}/{draft['id']}/publish", headers=hr["headers"])
    assert resp.json()["data"]["is_published"] is True

    resp = await client.post(f"{BASE}/{draft['id']}/publish", headers=hr["headers"])
    assert resp.json()["errors"]["code"] == ["ALREADY_PUBLISHED"]

    resp = await client.get(BASE, headers=employee["headers"])
    assert resp.json()["meta"]["total"] == 1


async def test_feed_pins_first_and_hides_expired(client, make_user):
    hr = await make_user(UserRole.hr)
    await _post(client, hr, title="Regular")
    await _post(client, hr, title="Pinned", is_pinned=True)
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    await _post(client, hr, title="Old news", expires_at=past)

    resp = await client.get(BASE, headers=hr["headers"])
    titles = [a["title"] for a in resp.json()["data"]]
    assert titles == ["Pinned", "Regular"]

    resp = await client.get(BASE, params={"include_expired": True}, headers=hr["headers"])
    assert resp.json()["meta"]["total"] == 3


async def test_view_counts(client, make_user):
    hr = await make_user(UserRole.hr)
    post = await _post(client, hr)
    await client.get(f"{BASE}/{post['id']}", headers=hr["headers"])
    resp = await client.get(f"{BASE}/{post['id']}", headers=hr["headers"])
    assert resp.json()["data"]["views"] == 2


async def test_update_and_delete(client, make_user):
    hr = await make_user(UserRole.hr)
    post = await _post(client, hr)
    resp = await client.put(
        f"{BASE}/{post['id']}", json={"title": "Office closed Monday"}, headers=hr["headers"],
    )
    assert resp.json()["data"]["title"] == "Office closed Monday"

    resp = await client.delete(f"{BASE}/{post['id']}", headers=hr["headers"])
    assert resp.status_code == 204
    resp = await client.get(f"{BASE}/{post['id']}", headers=hr["headers"])
    assert resp.status_code == 404


# ── Engagement ──────────────────────────────────────────────────────


async def test_like_toggles(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    post = await _post(client, hr)
    url = f"{BASE}/{post['id']}/like"

    data = (await client.post(url, headers=employee["headers"])).json()["data"]
    assert data["likes"] == 1
    assert data["liked_by"] == [str(employee["id"])]

    data = (await client.post(url, headers=employee["headers"])).json()["data"]
    assert data["likes"] == 0
    assert data["liked_by"] == []


async def test_reactions_replace_and_remove(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    post = await _post(client, hr)
    url = f"{BASE}/{post['id']}/reaction"

    data = (await client.post(
        url, json={"emoji": "👍", "label": "Like"}, headers=employee["headers"],
    )).json()["data"]
    assert data["likes"] == 1
    assert data["reactions"][0]["emoji"] == "👍"

    data = (await client.post(
        url, json={"emoji": "🎉", "label": "Celebrate"}, headers=employee["headers"],
    )).json()["data"]
    assert data["likes"] == 1
    assert [r["emoji"] for r in data["reactions"]] == ["🎉"]

    data = (await client.post(
        url, json={"emoji": "🎉", "label": "Celebrate"}, headers=employee["headers"],
    )).json()["data"]
    assert data["likes"] == 0
    assert data["reactions"] == []


async def test_comments(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user(first_name="Ravi")
    post = await _post(client, hr)

    resp = await client.post(
        f"{BASE}/{post['id']}/comments", json={"text": "Thanks!"}, headers=employee["headers"],
    )
    assert resp.status_code == 201
    comment = resp.json()["data"]["comments"][0]
    assert comment["text"] == "Thanks!"
    assert comment["author_name"] == "Ravi User"


# ── Polls ───────────────────────────────────────────────────────────


async def test_poll_needs_two_options(client, make_user):
    hr = await make_user(UserRole.hr)
    resp = await client.post(
        BASE,
        json={"title": "Lunch?", "content": "Pick one", "is_poll": True, "poll_options": ["Pizza"]},
        headers=hr["headers"],
    )
    assert resp.status_code == 422


async def test_single_choice_poll_voting(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    poll = await _post(
        client, hr, title="Lunch?", content="Pick one",
        is_poll=True, poll_options=["Pizza", "Biryani", " "],
    )
    assert [o["id"] for o in poll["poll_options"]] == ["opt-1", "opt-2"]
    url = f"{BASE}/{poll['id']}/vote"

    resp = await client.post(url, json={"option_ids": ["opt-1", "opt-2"]}, headers=employee["headers"])
    assert resp.status_code == 422

    resp = await client.post(url, json={"option_ids": ["opt-9"]}, headers=employee["headers"])
    assert resp.status_code == 422

    resp = await client.post(url, json={"option_ids": ["opt-2"]}, headers=employee["headers"])
    data = resp.json()["data"]
    assert data["total_votes"] == 1
    assert data["poll_options"][1]["votes"] == 1
    assert data["poll_options"][1]["voted_by"] == [str(employee["id"])]

    resp = await client.post(url, json={"option_ids": ["opt-1"]}, headers=employee["headers"])
    assert resp.json()["errors"]["code"] == ["ALREADY_VOTED"]


async def test_anonymous_poll_hides_voters(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    poll = await _post(
        client, hr, title="Survey", content="Be honest",
        is_poll=True, is_anonymous=True, allow_multiple=True, poll_options=["Yes", "No"],
    )
    resp = await client.post(
        f"{BASE}/{poll['id']}/vote", json={"option_ids": ["opt-1", "opt-2"]},
        headers=employee["headers"],
    )
    data = resp.json()["data"]
    assert data["total_votes"] == 1
    assert [o["votes"] for o in data["poll_options"]] == [1, 1]
    assert all(o["voted_by"] == [] for o in data["poll_options"])


async def test_expired_poll_is_closed(client, make_user):
    hr = await make_user(UserRole.hr)
    employee = await make_user()
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    poll = await _post(
        client, hr, title="Old poll", content="Too late",
        is_poll=True, poll_options=["A", "B"], poll_expires_at=past,
    )
    resp = await client.post(
        f"{BASE}/{poll['id']}/vote", json={"option_ids": ["opt-1"]}, headers=employee["headers"],
    )
    assert resp.json()["errors"]["code"] == ["POLL_CLOSED"]


async def test_vote_on_plain_post(client, make_user):
    hr = await make_user(UserRole.hr)
    post = await _post(client, hr)
    resp = await client.post(
        f"{BASE}/{post['id']}/vote", json={"option_ids": ["opt-1"]}, headers=hr["headers"],
    )
    assert resp.json()["errors"]["code"] == ["NOT_A_POLL"]


async def test_update_rejects_null_title_but_clears_expiry(client, make_user):
    hr = await make_user(UserRole.hr)
    expires = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
    post = await _post(client, hr, expires_at=expires)

    resp = await client.put(f"{BASE}/{post['id']}", json={"title": None}, headers=hr["headers"])
    assert resp.status_code == 422
    assert "title" in resp.json()["errors"]

    resp = await client.put(
        f"{BASE}/{post['id']}", json={"expires_at": None}, headers=hr["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["expires_at"] is None
    assert data["title"] == "Office closed Friday"
