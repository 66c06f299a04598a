"""Integration tests for session token endpoints."""

from rollcall_engine.common.security import AuthenticatedActor, Role


class TestAuthRouter:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "rollcall-engine"

    async def test_issue_token(self, client, api_key):
        resp = await client.post(
            "/auth/token",
            json={"user_id": "moderator-1", "role": "Moderator"},
            headers={"X-Rollcall-Api-Key": api_key},
        )
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json() == {"id": "moderator-1", "role": "Moderator", "is_staff": True}

    async def test_wrong_api_key(self, client):
        resp = await client.post(
            "/auth/token",
            json={"user_id": "student-1"},
            headers={"X-Rollcall-Api-Key": "wrong"},
        )
        assert resp.status_code == 403

    async def test_unknown_role(self, client, api_key):
        resp = await client.post(
            "/auth/token",
            json={"user_id": "student-1", "role": "Janitor"},
            headers={"X-Rollcall-Api-Key": api_key},
        )
        assert resp.status_code == 422

    async def test_rate_limited_after_five_attempts(self, client, api_key):
        headers = {"X-Rollcall-Api-Key": api_key}
        for _ in range(5):
            resp = await client.post("/auth/token", json={"user_id": "student-1"}, headers=headers)
            assert resp.status_code == 200
        resp = await client.post("/auth/token", json={"user_id": "student-1"}, headers=headers)
        assert resp.status_code == 429
        assert resp.json()["detail"]["code"] == "RATE_LIMITED"
        assert int(resp.headers["Retry-After"]) > 0

        other = await client.post("/auth/token", json={"user_id": "student-2"}, headers=headers)
        assert other.status_code == 200

    async def test_me_requires_token(self, client):
        assert (await client.get("/auth/me")).status_code == 401
        bad = await client.get("/auth/me", headers={"Authorization": "Bearer nope"})
        assert bad.status_code == 401

    async def test_me_with_helper(self, client, headers_for):
        actor = AuthenticatedActor(id="student-9", role=Role.STUDENT)
        resp = await client.get("/auth/me", headers=headers_for(actor))
        assert resp.json()["is_staff"] is False
