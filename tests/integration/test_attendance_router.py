"""Integration tests for attendance endpoints."""

from datetime import datetime, timedelta, timezone

from rollcall_engine.common.security import AuthenticatedActor, Role

FAR_LAT = 14.5995 + 0.0018

STUDENT = AuthenticatedActor(id="student-1", role=Role.STUDENT)
OTHER_STUDENT = AuthenticatedActor(id="student-2", role=Role.STUDENT)
MODERATOR = AuthenticatedActor(id="moderator-1", role=Role.MODERATOR)
OTHER_MODERATOR = AuthenticatedActor(id="moderator-2", role=Role.MODERATOR)
ADMIN = AuthenticatedActor(id="admin-1", role=Role.ADMINISTRATOR)

REJECT_NOTE = "Photo does not show the venue"


class TestAttendanceRouter:
    async def _event(self, client, headers_for, event_payload, actor=MODERATOR):
        resp = await client.post("/events", json=event_payload, headers=headers_for(actor))
        assert resp.status_code == 201
        return resp.json()

    async def _submit(self, client, headers_for, event, capture_payload, actor=STUDENT, **extra):
        body = {"event_id": event["id"], **capture_payload, **extra}
        return await client.post("/attendance", json=body, headers=headers_for(actor))

    async def test_validate_qr(self, client, headers_for, event_payload):
        event = await self._event(client, headers_for, event_payload)
        resp = await client.post(
            "/attendance/qr/validate", json={"qr_payload": event["qr_payload"]},
            headers=headers_for(STUDENT),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["details"]["valid"] is True
        assert data["details"]["event_id"] == event["id"]
        assert data["details"]["check_in_window"]["is_open"] is True

    async def test_validate_malformed_qr(self, client, headers_for):
        resp = await client.post(
            "/attendance/qr/validate", json={"qr_payload": "hello"}, headers=headers_for(STUDENT),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_QR"

    async def test_submit(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        resp = await self._submit(
            client, headers_for, event, capture_payload, qr_payload=event["qr_payload"],
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert data["code"] == "SUBMITTED"
        assert data["attendance"]["verification_status"] == "Pending"
        assert data["attendance"]["user_id"] == STUDENT.id

    async def test_submit_duplicate(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        await self._submit(client, headers_for, event, capture_payload)
        resp = await self._submit(client, headers_for, event, capture_payload)
        assert resp.status_code == 409
        data = resp.json()
        assert data["success"] is False
        assert data["code"] == "DUPLICATE"
        assert data["details"]["previous_check_in"] is not None

    async def test_submit_outside_geofence(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        capture_payload["latitude"] = FAR_LAT
        resp = await self._submit(client, headers_for, event, capture_payload)
        assert resp.status_code == 422
        assert resp.json()["code"] == "GEOFENCE"

    async def test_submit_outside_window(self, client, headers_for, event_payload, capture_payload):
        start = datetime.now(timezone.utc) + timedelta(hours=3)
        event_payload["start_at"] = start.isoformat()
        event_payload["end_at"] = (start + timedelta(hours=1)).isoformat()
        event = await self._event(client, headers_for, event_payload)
        resp = await self._submit(client, headers_for, event, capture_payload)
        assert resp.status_code == 422
        assert resp.json()["code"] == "TIME_WINDOW"

    async def test_submit_invalid_coordinates(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        capture_payload["longitude"] = 181
        resp = await self._submit(client, headers_for, event, capture_payload)
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"

    async def test_check_and_mine(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        before = await client.get(
            f"/attendance/check?event_id={event['id']}", headers=headers_for(STUDENT),
        )
        assert before.json() == {"has_checked_in": False, "attendance": None}

        await self._submit(client, headers_for, event, capture_payload)
        after = await client.get(
            f"/attendance/check?event_id={event['id']}", headers=headers_for(STUDENT),
        )
        assert after.json()["has_checked_in"] is True

        mine = await client.get("/attendance/mine", headers=headers_for(STUDENT))
        data = mine.json()
        assert data["total"] == 1
        assert data["counts"]["Pending"] == 1

    async def test_check_out(self, client, headers_for, event_payload, capture_payload):
        now = datetime.now(timezone.utc)
        event_payload["start_at"] = (now - timedelta(minutes=10)).isoformat()
        event_payload["end_at"] = (now + timedelta(minutes=10)).isoformat()
        event = await self._event(client, headers_for, event_payload)
        submitted = (await self._submit(client, headers_for, event, capture_payload)).json()

        resp = await client.post(
            f"/attendance/{submitted['attendance']['id']}/check-out",
            json=capture_payload, headers=headers_for(STUDENT),
        )
        assert resp.status_code == 200
        assert resp.json()["attendance"]["check_out_submitted_at"] is not None

        again = await client.post(
            f"/attendance/{submitted['attendance']['id']}/check-out",
            json=capture_payload, headers=headers_for(STUDENT),
        )
        assert again.status_code == 409

    async def test_verify_reject_requires_note(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        submitted = (await self._submit(client, headers_for, event, capture_payload)).json()
        resp = await client.post(
            f"/attendance/{submitted['attendance']['id']}/verify",
            json={"verification_status": "Rejected"}, headers=headers_for(MODERATOR),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "MISSING_DISPUTE_NOTE"

    async def test_student_cannot_verify(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        submitted = (await self._submit(client, headers_for, event, capture_payload)).json()
        resp = await client.post(
            f"/attendance/{submitted['attendance']['id']}/verify",
            json={"verification_status": "Approved"}, headers=headers_for(STUDENT),
        )
        assert resp.status_code == 403

    async def test_full_review_cycle(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        submitted = (await self._submit(client, headers_for, event, capture_payload)).json()
        attendance_id = submitted["attendance"]["id"]

        rejected = await client.post(
            f"/attendance/{attendance_id}/verify",
            json={"verification_status": "Rejected", "dispute_note": REJECT_NOTE},
            headers=headers_for(MODERATOR),
        )
        assert rejected.status_code == 200
        assert rejected.json()["attendance"]["verification_status"] == "Rejected"

        again = await client.post(
            f"/attendance/{attendance_id}/verify",
            json={"verification_status": "Approved"}, headers=headers_for(MODERATOR),
        )
        assert again.status_code == 409
        assert again.json()["code"] == "ALREADY_VERIFIED"
        assert again.json()["details"]["verified_by_id"] == MODERATOR.id

        appealed = await client.post(
            f"/attendance/{attendance_id}/appeal",
            json={"appeal_message": "I was at the venue, please check again"},
            headers=headers_for(STUDENT),
        )
        assert appealed.status_code == 200
        assert appealed.json()["attendance"]["verification_status"] == "Disputed"

        approved = await client.post(
            f"/attendance/{attendance_id}/verify",
            json={"verification_status": "Approved"}, headers=headers_for(ADMIN),
        )
        assert approved.status_code == 200
        assert approved.json()["attendance"]["verification_status"] == "Approved"
        assert approved.json()["attendance"]["verified_by_id"] == ADMIN.id

    async def test_appeal_pending(self, client, headers_for, event_payload, capture_payload):
        event = await self._event(client, headers_for, event_payload)
        submitted = (await self._submit(client, headers_for, event, capture_payload)).json()
        resp = await client.post(
            f"/attendance/{submitted['attendance']['id']}/appeal",
            json={"appeal_message": "Please review this again"},
            headers=headers_for(STUDENT),
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "WRONG_STATUS"

    async def test_review_scoped_to_moderator(self, client, headers_for, event_payload, capture_payload):
        mine = await self._event(client, headers_for, event_payload)
        theirs = await self._event(client, headers_for, event_payload, actor=OTHER_MODERATOR)
        await self._submit(client, headers_for, mine, capture_payload)
        other = (await self._submit(client, headers_for, theirs, capture_payload)).json()

        listing = await client.get("/attendance?status=Pending", headers=headers_for(MODERATOR))
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["event_id"] == mine["id"]

        forbidden = await client.get(
            f"/attendance/{other['attendance']['id']}", headers=headers_for(MODERATOR),
        )
        assert forbidden.status_code == 403

        student = await client.get("/attendance", headers=headers_for(STUDENT))
        assert student.status_code == 403

        admin = await client.get("/attendance", headers=headers_for(ADMIN))
        assert admin.json()["total"] == 2

    async def test_get_missing(self, client, headers_for):
        resp = await client.get("/attendance/missing", headers=headers_for(STUDENT))
        assert resp.status_code == 404
