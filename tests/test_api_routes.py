"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the HTTP surface with the FastAPI TestClient against the in-memory
database and the fixed clock from conftest.

These tests verify:
- Auth guards (missing / invalid Bearer tokens)
- Service errors mapped to HTTP status codes
- Response shapes of the main challenge, log and notification endpoints
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import TODAY


def _challenge_body(**overrides) -> dict:
    body = {
        "name": "Morning run",
        "description": "Run 3km every morning",
        "category": "HEALTH",
        "difficulty": "MEDIUM",
        "duration": 21,
        "start_date": (TODAY + timedelta(days=1)).isoformat(),
        "end_date": (TODAY + timedelta(days=21)).isoformat(),
        "max_members": 10,
    }
    body.update(overrides)
    return body


@pytest.fixture
def leader(make_user):
    return make_user("junwoo")


@pytest.fixture
def member(make_user):
    return make_user("hwi")


@pytest.fixture
def public_id(client, auth, leader):
    resp = client.post("/api/challenges", json=_challenge_body(), headers=auth(leader))
    assert resp.status_code == 201
    return resp.json()["id"]


# ===========================================================================
# Health & auth
# ===========================================================================
class TestHealthAndAuth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/me"),
            ("get", "/api/notifications"),
            ("get", "/api/me/applications"),
            ("get", "/api/users/me/challenges"),
            ("put", "/api/challenges/1/join"),
            ("put", "/api/challenges/1/leave"),
        ],
    )
    def test_requires_token(self, client, method, path):
        assert getattr(client, method)(path).status_code == 401

    def test_rejects_invalid_token(self, client):
        resp = client.get("/api/me", headers={"Authorization": "Bearer invalid"})
        assert resp.status_code == 401

    def test_rejects_non_bearer_scheme(self, client):
        resp = client.get("/api/challenges", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    def test_me(self, client, auth, member):
        resp = client.get("/api/me", headers=auth(member))
        assert resp.status_code == 200
        assert resp.json()["login_id"] == "hwi"

    def test_token_for_unknown_user(self, client, auth):
        assert client.get("/api/me", headers=auth(9999)).status_code == 404


# ===========================================================================
# Challenges & membership
# ===========================================================================
class TestChallenges:
    def test_create_and_read(self, client, auth, leader, public_id):
        resp = client.get(f"/api/challenges/{public_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "RECRUITING"
        assert data["leader_id"] == leader
        assert data["current_members"] == 1
        assert data["invite_code"] is None

    def test_past_start_is_422(self, client, auth, leader):
        body = _challenge_body(start_date=(TODAY - timedelta(days=1)).isoformat())
        resp = client.post("/api/challenges", json=body, headers=auth(leader))
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    def test_join_then_duplicate_is_409(self, client, auth, member, public_id):
        resp = client.put(f"/api/challenges/{public_id}/join", headers=auth(member))
        assert resp.status_code == 200
        assert resp.json()["current_members"] == 2

        again = client.put(f"/api/challenges/{public_id}/join", headers=auth(member))
        assert again.status_code == 409
        assert again.json()["error"] == "ConflictError"

    def test_full_challenge_is_409(self, client, auth, leader, member, make_user):
        created = client.post(
            "/api/challenges", json=_challenge_body(max_members=2), headers=auth(leader)
        ).json()
        client.put(f"/api/challenges/{created['id']}/join", headers=auth(member))

        outsider = make_user("mason")
        resp = client.put(f"/api/challenges/{created['id']}/join", headers=auth(outsider))
        assert resp.status_code == 409
        assert resp.json()["error"] == "CapacityExceededError"

    def test_leader_cannot_leave(self, client, auth, leader, public_id):
        resp = client.put(f"/api/challenges/{public_id}/leave", headers=auth(leader))
        assert resp.status_code == 403

    def test_update_by_non_leader_is_403(self, client, auth, member, public_id):
        resp = client.put(
            f"/api/challenges/{public_id}", json={"name": "Mine now"}, headers=auth(member)
        )
        assert resp.status_code == 403

    def test_list_and_members(self, client, auth, member, public_id):
        client.put(f"/api/challenges/{public_id}/join", headers=auth(member))

        listing = client.get("/api/challenges", params={"search": "run"}).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == public_id

        members = client.get(f"/api/challenges/{public_id}/members").json()
        assert [m["nickname"] for m in members] == ["Junwoo", "Hwi"]

    def test_unknown_challenge_is_404(self, client):
        resp = client.get("/api/challenges/404")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFoundError"


class TestPrivateChallenges:
    @pytest.fixture
    def private(self, client, auth, leader):
        resp = client.post(
            "/api/challenges", json=_challenge_body(is_private=True), headers=auth(leader)
        )
        return resp.json()

    def test_only_leader_sees_code(self, private):
        assert private["invite_code"]

    def test_hidden_until_joined_by_code(self, client, auth, member, private):
        path = f"/api/challenges/{private['id']}"
        assert client.get(path, headers=auth(member)).status_code == 404
        assert client.get(path).status_code == 404

        preview = client.get(f"/api/challenges/invite/{private['invite_code']}")
        assert preview.status_code == 200
        assert preview.json()["invite_code"] is None

        joined = client.post(
            "/api/challenges/join-by-code",
            json={"invite_code": private["invite_code"]},
            headers=auth(member),
        )
        assert joined.status_code == 200
        assert client.get(path, headers=auth(member)).status_code == 200

    def test_hidden_from_listing(self, client, private):
        assert client.get("/api/challenges").json()["total"] == 0

    def test_members_hidden_from_outsiders(self, client, auth, leader, private):
        path = f"/api/challenges/{private['id']}/members"
        assert client.get(path).status_code == 404
        assert client.get(path, headers=auth(leader)).status_code == 200

    def test_logs_hidden_from_log_listing(self, client, auth, member, private, make_user):
        client.post(
            "/api/challenges/join-by-code",
            json={"invite_code": private["invite_code"]},
            headers=auth(member),
        )
        created = client.post(
            "/api/challenge-logs",
            json={"challenge_id": private["id"], "content": "Secret run"},
            headers=auth(member),
        )
        assert created.status_code == 201

        assert client.get("/api/challenge-logs").json()["total"] == 0
        by_author = client.get("/api/challenge-logs", params={"user_id": member})
        assert by_author.json()["total"] == 0
        outsider = auth(make_user("mason"))
        assert client.get("/api/challenge-logs", headers=outsider).json()["total"] == 0

        mine = client.get("/api/challenge-logs", headers=auth(member)).json()
        assert [log["id"] for log in mine["items"]] == [created.json()["id"]]


class TestApplications:
    def test_apply_and_approve(self, client, auth, leader, member, public_id):
        applied = client.post(
            f"/api/challenges/{public_id}/apply",
            json={"reason": "I run daily"},
            headers=auth(member),
        )
        assert applied.status_code == 201
        application_id = applied.json()["id"]

        pending = client.get(
            f"/api/challenges/{public_id}/applications", headers=auth(leader)
        ).json()
        assert [a["id"] for a in pending] == [application_id]

        decided = client.put(
            f"/api/challenges/{public_id}/applications/{application_id}/status",
            json={"status": "APPROVED"},
            headers=auth(leader),
        )
        assert decided.status_code == 200
        assert decided.json()["status"] == "APPROVED"

        mine = client.get("/api/me/applications", headers=auth(member)).json()
        assert mine[0]["status"] == "APPROVED"
        assert client.get(f"/api/challenges/{public_id}").json()["current_members"] == 2

    def test_members_cannot_list_applications(self, client, auth, member, public_id):
        resp = client.get(f"/api/challenges/{public_id}/applications", headers=auth(member))
        assert resp.status_code == 403


# ===========================================================================
# Logs & statistics
# ===========================================================================
class TestLogs:
    @pytest.fixture
    def log_id(self, client, auth, member, public_id):
        client.put(f"/api/challenges/{public_id}/join", headers=auth(member))
        resp = client.post(
            "/api/challenge-logs",
            json={"challenge_id": public_id, "content": "Ran 3km"},
            headers=auth(member),
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "PENDING"
        return resp.json()["id"]

    def test_approve(self, client, auth, leader, log_id):
        resp = client.put(f"/api/challenge-logs/{log_id}/approve", headers=auth(leader))
        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"
        assert resp.json()["updated_at"] == "2024-01-10T12:00:00"

        again = client.put(f"/api/challenge-logs/{log_id}/approve", headers=auth(leader))
        assert again.status_code == 409

    def test_reject_without_comment_is_422(self, client, auth, leader, log_id):
        resp = client.put(
            f"/api/challenge-logs/{log_id}/reject", json={}, headers=auth(leader)
        )
        assert resp.status_code == 422

    def test_member_cannot_review(self, client, auth, member, log_id):
        resp = client.put(f"/api/challenge-logs/{log_id}/approve", headers=auth(member))
        assert resp.status_code == 403

    def test_outsider_cannot_submit(self, client, auth, public_id, make_user):
        resp = client.post(
            "/api/challenge-logs",
            json={"challenge_id": public_id, "content": "sneaky"},
            headers=auth(make_user("mason")),
        )
        assert resp.status_code == 403

    def test_list(self, client, public_id, log_id):
        data = client.get("/api/challenge-logs", params={"challenge_id": public_id}).json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == log_id

    def test_member_stats(self, client, auth, leader, member, public_id, log_id):
        client.put(f"/api/challenge-logs/{log_id}/approve", headers=auth(leader))
        stats = client.get(
            f"/api/challenges/{public_id}/members/stats", headers=auth(leader)
        ).json()
        by_member = {s["member_id"]: s for s in stats}
        assert by_member[member]["approved_submissions"] == 1
        assert by_member[member]["achievement_rate"] == 100.0

    def test_participation_reversed_range_is_422(self, client, auth, leader, public_id):
        resp = client.get(
            f"/api/challenges/{public_id}/participation",
            params={
                "start_date": (TODAY + timedelta(days=5)).isoformat(),
                "end_date": (TODAY + timedelta(days=2)).isoformat(),
            },
            headers=auth(leader),
        )
        assert resp.status_code == 422


# ===========================================================================
# Notifications
# ===========================================================================
class TestNotifications:
    def test_feed_flow(self, client, auth, member, public_id):
        client.put(f"/api/challenges/{public_id}/join", headers=auth(member))

        assert client.get("/api/notifications/unread-count", headers=auth(member)).json() == {
            "count": 1
        }
        feed = client.get("/api/notifications", headers=auth(member)).json()
        assert feed["total"] == 1
        note = feed["items"][0]
        assert note["type"] == "GROUP_JOINED"

        read = client.put(f"/api/notifications/{note['id']}/read", headers=auth(member))
        assert read.json()["is_read"] is True
        assert client.put("/api/notifications/mark-all-read", headers=auth(member)).json() == {
            "updated": 0
        }

        deleted = client.delete(f"/api/notifications/{note['id']}", headers=auth(member))
        assert deleted.status_code == 204
        assert client.get("/api/notifications", headers=auth(member)).json()["total"] == 0

    def test_someone_elses_notification_is_403(self, client, auth, leader, member, public_id):
        client.put(f"/api/challenges/{public_id}/join", headers=auth(member))
        note_id = client.get("/api/notifications", headers=auth(member)).json()["items"][0]["id"]
        assert client.put(f"/api/notifications/{note_id}/read", headers=auth(leader)).status_code == 403


# ===========================================================================
# Users
# ===========================================================================
class TestUsers:
    def test_list_and_get(self, client, leader, member):
        page = client.get("/api/users", params={"page_size": 1}).json()
        assert page["total"] == 2
        assert [u["id"] for u in page["items"]] == [leader]

        resp = client.get(f"/api/users/{member}")
        assert resp.status_code == 200
        assert resp.json()["nickname"] == "Hwi"
        assert client.get("/api/users/404").status_code == 404

    def test_update_own_profile(self, client, auth, member):
        resp = client.put(
            f"/api/users/{member}", json={"nickname": "Runner"}, headers=auth(member)
        )
        assert resp.status_code == 200
        assert resp.json()["nickname"] == "Runner"
        assert client.get("/api/users/me", headers=auth(member)).json()["nickname"] == "Runner"

    def test_update_someone_else_is_403(self, client, auth, leader, member):
        resp = client.put(
            f"/api/users/{member}", json={"nickname": "Hijacked"}, headers=auth(leader)
        )
        assert resp.status_code == 403

    def test_taken_nickname_is_409(self, client, auth, leader, member):
        resp = client.put(
            f"/api/users/{member}", json={"nickname": "Junwoo"}, headers=auth(member)
        )
        assert resp.status_code == 409

    def test_my_challenges_include_private(self, client, auth, leader, member, public_id):
        private = client.post(
            "/api/challenges", json=_challenge_body(is_private=True), headers=auth(leader)
        ).json()

        mine = client.get("/api/users/me/challenges", headers=auth(leader)).json()
        assert {c["id"] for c in mine["items"]} == {public_id, private["id"]}

        seen_by_member = client.get(
            f"/api/users/{leader}/challenges", headers=auth(member)
        ).json()
        assert [c["id"] for c in seen_by_member["items"]] == [public_id]
