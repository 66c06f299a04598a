"""Integration tests for the security log endpoints."""

from rollcall_engine.common.security import AuthenticatedActor, Role

STUDENT = AuthenticatedActor(id="student-1", role=Role.STUDENT)
MODERATOR = AuthenticatedActor(id="moderator-1", role=Role.MODERATOR)
ADMIN = AuthenticatedActor(id="admin-1", role=Role.ADMINISTRATOR)


class TestAuditRouter:
    async def _setup(self, client, headers_for, event_payload, capture_payload):
        event = (await client.post(
            "/events", json=event_payload, headers=headers_for(MODERATOR),
        )).json()
        submitted = (await client.post(
            "/attendance", json={"event_id": event["id"], **capture_payload},
            headers={**headers_for(STUDENT), "User-Agent": "rollcall-test", "X-Forwarded-For": "10.1.2.3"},
        )).json()
        return event, submitted["attendance"]

    async def test_entries_recorded(self, client, headers_for, event_payload, capture_payload):
        event, attendance = await self._setup(client, headers_for, event_payload, capture_payload)
        resp = await client.get("/audit", headers=headers_for(ADMIN))
        assert resp.status_code == 200
        entries = resp.json()
        assert [e["action"] for e in entries] == ["attendance.submitted", "event.created"]
        submitted = entries[0]
        assert submitted["entity_id"] == attendance["id"]
        assert submitted["actor_id"] == STUDENT.id
        assert submitted["metadata"]["event_id"] == event["id"]
        assert submitted["ip_address"] == "10.1.2.3"
        assert submitted["user_agent"] == "rollcall-test"
        assert submitted["prev_hash"] == entries[1]["event_hash"]

    async def test_filter_by_action(self, client, headers_for, event_payload, capture_payload):
        await self._setup(client, headers_for, event_payload, capture_payload)
        resp = await client.get("/audit?action=event.created", headers=headers_for(ADMIN))
        assert len(resp.json()) == 1

    async def test_verify_chain(self, client, headers_for, event_payload, capture_payload):
        await self._setup(client, headers_for, event_payload, capture_payload)
        resp = await client.get("/audit/verify", headers=headers_for(ADMIN))
        assert resp.status_code == 200
        assert resp.json() == {"valid": True, "entries_checked": 2, "break_at": None}

    async def test_admin_only(self, client, headers_for):
        assert (await client.get("/audit", headers=headers_for(MODERATOR))).status_code == 403
        assert (await client.get("/audit/verify", headers=headers_for(STUDENT))).status_code == 403
        assert (await client.get("/audit")).status_code == 401
