"""Attendance service: check-in/out submission and the verification state machine.

Lifecycle of a record:

    Pending ──verify──▶ Approved | Rejected
    Rejected ──appeal (owner)──▶ Disputed
    Disputed ──verify──▶ Approved | Rejected

State-changing calls return an ``AttendanceResult`` instead of raising for
expected outcomes; only infrastructure errors propagate.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall_engine.common.config import RollcallSettings
from rollcall_engine.common.exceptions import (
    AlreadyVerifiedError,
    DuplicateError,
    EventUnavailableError,
    GeofenceError,
    InvalidQRError,
    MissingDisputeNoteError,
    NotFoundError,
    OwnershipError,
    PermissionDeniedError,
    RollcallError,
    TimeWindowError,
    ValidationError,
    WrongStatusError,
)
from rollcall_engine.common.security import AuthenticatedActor
from rollcall_engine.attendance.models import (
    DECISIONS,
    STATUS_DISPUTED,
    STATUS_PENDING,
    STATUS_REJECTED,
    VERIFIABLE_STATUSES,
    VERIFICATION_STATUSES,
    AttendanceModel,
)
from rollcall_engine.attendance.results import AttendanceResult
from rollcall_engine.events.models import EVENT_ACTIVE, EVENT_CANCELLED, EventModel
from rollcall_engine.events.service import EventService
from rollcall_engine.geofence.validator import GeofenceVerdict, ensure_utc, evaluate_attempt
from rollcall_engine.qr.codec import decode_payload

logger = logging.getLogger(__name__)

NOTE_MIN_LENGTH = 10
NOTE_MAX_LENGTH = 1000
APPEAL_LOG_PREVIEW = 100


def _iso(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value else None


def _validate_capture(
    latitude: float,
    longitude: float,
    front_photo_ref: str,
    back_photo_ref: str,
    signature_ref: str,
) -> None:
    errors: dict[str, str] = {}
    if latitude is None or not -90 <= latitude <= 90:
        errors["latitude"] = "Latitude must be between -90 and 90"
    if longitude is None or not -180 <= longitude <= 180:
        errors["longitude"] = "Longitude must be between -180 and 180"
    for field, value in (
        ("front_photo_ref", front_photo_ref),
        ("back_photo_ref", back_photo_ref),
        ("signature_ref", signature_ref),
    ):
        if not value or not str(value).strip():
            errors[field] = "Reference is required"
    if errors:
        raise ValidationError(details=errors)


def _verification_details(record: AttendanceModel) -> dict[str, Any]:
    return {
        "current_status": record.verification_status,
        "verified_by_id": record.verified_by_id,
        "verified_at": _iso(record.verified_at),
    }


class AttendanceService:
    """Attendance submission, verification and appeal."""

    def __init__(self, settings: RollcallSettings, events: EventService, audit_service=None):
        self.settings = settings
        self.events = events
        self.audit_service = audit_service

    # ── QR pre-check ──

    async def validate_qr(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        qr_payload: str,
        now: datetime | None = None,
    ) -> AttendanceResult:
        """Report whether a scanned code can be used for check-in right now.

        Nothing is written. ``details["valid"]`` is False when any entry in
        ``details["validation_errors"]`` applies.
        """
        decoded = decode_payload(qr_payload)
        if decoded is None:
            return AttendanceResult.failure(InvalidQRError(
                "Invalid QR code format",
                details={"expected": "attendance:{eventId}:{timestamp}"},
            ))

        event = await self.events.get_event(session, decoded.event_id)
        if event is None:
            return AttendanceResult.failure(NotFoundError("Event not found for QR code"))

        now = ensure_utc(now or datetime.now(timezone.utc))
        verdict = self._evaluate(event, event.venue_latitude, event.venue_longitude, now, True)
        existing = await self.find_existing(session, event.id, actor.id)

        errors: list[str] = []
        if event.status != EVENT_ACTIVE:
            errors.append(f"Event has been {event.status.lower()}")
        if not verdict.within_time_window:
            if now < verdict.opens_at:
                errors.append(f"Check-in opens at {verdict.opens_at.isoformat()}")
            else:
                errors.append(f"Check-in window closed at {verdict.closes_at.isoformat()}")
        if existing is not None:
            errors.append("You have already checked in to this event")
        if event.qr_payload != qr_payload:
            errors.append("This QR code has been regenerated. Please scan the latest QR code.")

        return AttendanceResult(
            True,
            "QR_CHECKED",
            "QR code is valid" if not errors else "QR code cannot be used for check-in",
            existing,
            {
                "valid": not errors,
                "event_id": event.id,
                "event": {
                    "id": event.id,
                    "name": event.name,
                    "venue_name": event.venue_name,
                    "start_at": _iso(event.start_at),
                    "end_at": _iso(event.end_at),
                    "status": event.status,
                },
                "check_in_window": {
                    "opens_at": verdict.opens_at.isoformat(),
                    "closes_at": verdict.closes_at.isoformat(),
                    "is_open": verdict.within_time_window,
                },
                "has_checked_in": existing is not None,
                "validation_errors": errors,
            },
        )

    # ── Submit (check-in) ──

    async def submit(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        latitude: float,
        longitude: float,
        front_photo_ref: str,
        back_photo_ref: str,
        signature_ref: str,
        submitted_at: datetime | None = None,
        qr_payload: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AttendanceResult:
        """Create the actor's attendance record for an event in Pending."""
        try:
            record, event = await self._submit(
                session, actor, event_id, latitude, longitude,
                front_photo_ref, back_photo_ref, signature_ref,
                submitted_at, qr_payload,
            )
        except RollcallError as e:
            logger.info("Check-in refused for user %s on event %s: %s", actor.id, event_id, e.code)
            return AttendanceResult.failure(e)

        await self._audit(
            session, "attendance.submitted", actor, record.id,
            {
                "event_id": event.id,
                "event_name": event.name,
                "distance_from_venue": round(record.distance_from_venue, 1),
            },
            ip_address, user_agent,
        )
        logger.info("Attendance %s submitted for event %s", record.id, event.id)
        return AttendanceResult.success(
            record, "SUBMITTED", "Attendance submitted for verification",
            distance_meters=round(record.distance_from_venue, 1),
        )

    async def _submit(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        latitude: float,
        longitude: float,
        front_photo_ref: str,
        back_photo_ref: str,
        signature_ref: str,
        submitted_at: datetime | None,
        qr_payload: str | None,
    ) -> tuple[AttendanceModel, EventModel]:
        _validate_capture(latitude, longitude, front_photo_ref, back_photo_ref, signature_ref)
        submitted_at = ensure_utc(submitted_at or datetime.now(timezone.utc))

        event = await self.events.get_event(session, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.status != EVENT_ACTIVE:
            raise EventUnavailableError(f"Event is {event.status}")
        if qr_payload is not None or self.settings.require_qr_on_submit:
            self._check_qr(event, qr_payload)

        existing = await self.find_existing(session, event.id, actor.id)
        if existing is not None:
            raise DuplicateError(
                "You have already checked in to this event",
                details={
                    "attendance_id": existing.id,
                    "previous_check_in": _iso(existing.submitted_at),
                },
            )

        verdict = self._evaluate(event, latitude, longitude, submitted_at, True)
        self._raise_for_verdict(verdict, "Check-in")

        record = AttendanceModel(
            event_id=event.id,
            user_id=actor.id,
            submitted_at=submitted_at,
            latitude=latitude,
            longitude=longitude,
            distance_from_venue=verdict.distance_meters,
            front_photo_url=front_photo_ref,
            back_photo_url=back_photo_ref,
            signature_url=signature_ref,
            verification_status=STATUS_PENDING,
        )
        try:
            async with session.begin_nested():
                session.add(record)
        except IntegrityError:
            # A concurrent submit won the unique (event, user) constraint.
            raise DuplicateError("You have already checked in to this event")
        return record, event

    # ── Check-out ──

    async def check_out(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        latitude: float,
        longitude: float,
        front_photo_ref: str,
        back_photo_ref: str,
        signature_ref: str,
        submitted_at: datetime | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AttendanceResult:
        """Attach the check-out capture to the actor's record. Status is unchanged."""
        try:
            record = await self._check_out(
                session, actor, attendance_id, latitude, longitude,
                front_photo_ref, back_photo_ref, signature_ref, submitted_at,
            )
        except RollcallError as e:
            logger.info("Check-out refused for user %s on %s: %s", actor.id, attendance_id, e.code)
            return AttendanceResult.failure(e)

        await self._audit(
            session, "attendance.checked_out", actor, record.id,
            {"event_id": record.event_id, "distance_from_venue": round(record.check_out_distance, 1)},
            ip_address, user_agent,
        )
        return AttendanceResult.success(
            record, "CHECKED_OUT", "Check-out recorded",
            distance_meters=round(record.check_out_distance, 1),
        )

    async def _check_out(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        latitude: float,
        longitude: float,
        front_photo_ref: str,
        back_photo_ref: str,
        signature_ref: str,
        submitted_at: datetime | None,
    ) -> AttendanceModel:
        _validate_capture(latitude, longitude, front_photo_ref, back_photo_ref, signature_ref)
        submitted_at = ensure_utc(submitted_at or datetime.now(timezone.utc))

        record = await self._get_record(session, attendance_id)
        if record.user_id != actor.id:
            raise OwnershipError("You can only check out of your own attendance")
        if record.check_out_submitted_at is not None:
            raise DuplicateError(
                "You have already checked out of this event",
                details={"previous_check_out": _iso(record.check_out_submitted_at)},
            )

        event = await self.events.get_event(session, record.event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.status == EVENT_CANCELLED:
            raise EventUnavailableError(f"Event is {event.status}")

        verdict = self._evaluate(event, latitude, longitude, submitted_at, False)
        self._raise_for_verdict(verdict, "Check-out")

        result = await session.execute(
            update(AttendanceModel)
            .where(
                AttendanceModel.id == record.id,
                AttendanceModel.check_out_submitted_at.is_(None),
            )
            .values(
                check_out_submitted_at=submitted_at,
                check_out_latitude=latitude,
                check_out_longitude=longitude,
                check_out_distance=verdict.distance_meters,
                check_out_front_photo_url=front_photo_ref,
                check_out_back_photo_url=back_photo_ref,
                check_out_signature_url=signature_ref,
            )
            .execution_options(synchronize_session=False)
        )
        await session.refresh(record)
        if result.rowcount != 1:
            raise DuplicateError(
                "You have already checked out of this event",
                details={"previous_check_out": _iso(record.check_out_submitted_at)},
            )
        return record

    # ── Verify ──

    async def verify(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        decision: str,
        dispute_note: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AttendanceResult:
        """Approve or reject a Pending or Disputed record."""
        try:
            record, previous = await self._verify(
                session, actor, attendance_id, decision, dispute_note,
            )
        except RollcallError as e:
            logger.info("Verification refused for %s by %s: %s", attendance_id, actor.id, e.code)
            return AttendanceResult.failure(e)

        await self._audit(
            session, "attendance.verified", actor, record.id,
            {
                "previous_status": previous,
                "new_status": record.verification_status,
                "student_id": record.user_id,
                "event_id": record.event_id,
                "dispute_note": record.dispute_note,
            },
            ip_address, user_agent,
        )
        logger.info(
            "Attendance %s moved %s -> %s by %s",
            record.id, previous, record.verification_status, actor.id,
        )
        return AttendanceResult.success(
            record, "VERIFIED", f"Attendance {record.verification_status.lower()}",
            previous_status=previous,
        )

    async def _verify(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        decision: str,
        dispute_note: str | None,
    ) -> tuple[AttendanceModel, str]:
        if not actor.is_staff:
            raise PermissionDeniedError("Only moderators and administrators can verify attendance")
        if decision not in DECISIONS:
            raise ValidationError(
                details={"decision": "Verification status must be either 'Approved' or 'Rejected'"}
            )
        note = dispute_note if dispute_note and dispute_note.strip() else None
        if decision == STATUS_REJECTED:
            if note is None:
                raise MissingDisputeNoteError()
            if len(note) < NOTE_MIN_LENGTH:
                raise ValidationError(details={
                    "dispute_note": f"Dispute note must be at least {NOTE_MIN_LENGTH} characters",
                })
        if note is not None and len(note) > NOTE_MAX_LENGTH:
            raise ValidationError(details={
                "dispute_note": f"Dispute note must not exceed {NOTE_MAX_LENGTH} characters",
            })

        record = await self._get_record(session, attendance_id)
        if not actor.is_admin:
            event = await self.events.get_event(session, record.event_id, include_deleted=True)
            if event is None or event.created_by_id != actor.id:
                raise PermissionDeniedError(
                    "You can only verify attendance for events you created"
                )
        previous = record.verification_status
        if previous not in VERIFIABLE_STATUSES:
            raise AlreadyVerifiedError(details=_verification_details(record))

        result = await session.execute(
            update(AttendanceModel)
            .where(
                AttendanceModel.id == record.id,
                AttendanceModel.verification_status == previous,
            )
            .values(
                verification_status=decision,
                verified_by_id=actor.id,
                verified_at=datetime.now(timezone.utc),
                dispute_note=note,
            )
            .execution_options(synchronize_session=False)
        )
        await session.refresh(record)
        if result.rowcount != 1:
            # Another verifier changed the status between our read and write.
            raise AlreadyVerifiedError(details=_verification_details(record))
        return record, previous

    # ── Appeal ──

    async def appeal(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        appeal_message: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AttendanceResult:
        """Move the owner's Rejected record to Disputed for another review."""
        try:
            record = await self._appeal(session, actor, attendance_id, appeal_message)
        except RollcallError as e:
            logger.info("Appeal refused for %s by %s: %s", attendance_id, actor.id, e.code)
            return AttendanceResult.failure(e)

        await self._audit(
            session, "attendance.appealed", actor, record.id,
            {
                "event_id": record.event_id,
                "appeal_message": appeal_message[:APPEAL_LOG_PREVIEW],
            },
            ip_address, user_agent,
        )
        return AttendanceResult.success(
            record, "APPEALED",
            "Appeal submitted successfully. An administrator will review your request.",
        )

    async def _appeal(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        attendance_id: str,
        appeal_message: str,
    ) -> AttendanceModel:
        message = appeal_message or ""
        if len(message) < NOTE_MIN_LENGTH:
            raise ValidationError(details={
                "appeal_message": f"Appeal message must be at least {NOTE_MIN_LENGTH} characters",
            })
        if len(message) > NOTE_MAX_LENGTH:
            raise ValidationError(details={
                "appeal_message": f"Appeal message must not exceed {NOTE_MAX_LENGTH} characters",
            })

        record = await self._get_record(session, attendance_id)
        if record.user_id != actor.id:
            raise OwnershipError("You can only appeal your own attendance records")
        if record.verification_status != STATUS_REJECTED:
            raise WrongStatusError(details={"current_status": record.verification_status})

        result = await session.execute(
            update(AttendanceModel)
            .where(
                AttendanceModel.id == record.id,
                AttendanceModel.verification_status == STATUS_REJECTED,
            )
            .values(verification_status=STATUS_DISPUTED, dispute_note=message)
            .execution_options(synchronize_session=False)
        )
        await session.refresh(record)
        if result.rowcount != 1:
            raise WrongStatusError(details={"current_status": record.verification_status})
        return record

    # ── Queries ──

    async def find_existing(
        self, session: AsyncSession, event_id: str, user_id: str,
    ) -> AttendanceModel | None:
        """Return the (event, user) record if one exists."""
        result = await session.execute(
            select(AttendanceModel).where(
                AttendanceModel.event_id == event_id,
                AttendanceModel.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_attendance(
        self, session: AsyncSession, actor: AuthenticatedActor, attendance_id: str,
    ) -> AttendanceModel:
        """Fetch a record the actor may see (owner, event moderator, or administrator)."""
        record = await self._get_record(session, attendance_id)
        if record.user_id == actor.id or actor.is_admin:
            return record
        if actor.is_staff:
            event = await self.events.get_event(session, record.event_id, include_deleted=True)
            if event is not None and event.created_by_id == actor.id:
                return record
            raise PermissionDeniedError("Moderators can only review attendance for their own events")
        raise OwnershipError("You can only view your own attendance records")

    async def list_mine(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        status: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[AttendanceModel], int, dict[str, int]]:
        """Return (records, total, counts_by_status) for the actor's own records."""
        if status is not None and status not in VERIFICATION_STATUSES:
            raise ValidationError(details={"status": "Unknown verification status"})

        base_filter = [AttendanceModel.user_id == actor.id]
        if search and search.strip():
            base_filter.append(EventModel.name.ilike(f"%{search.strip()}%"))

        counts_result = await session.execute(
            select(AttendanceModel.verification_status, func.count(AttendanceModel.id))
            .join(EventModel, EventModel.id == AttendanceModel.event_id)
            .where(*base_filter)
            .group_by(AttendanceModel.verification_status)
        )
        counts = {s: 0 for s in VERIFICATION_STATUSES}
        counts.update({row[0]: row[1] for row in counts_result.all()})

        list_filter = list(base_filter)
        if status:
            list_filter.append(AttendanceModel.verification_status == status)
        total = counts[status] if status else sum(counts.values())

        result = await session.execute(
            select(AttendanceModel)
            .join(EventModel, EventModel.id == AttendanceModel.event_id)
            .where(*list_filter)
            .order_by(AttendanceModel.submitted_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total, counts

    async def list_for_review(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[AttendanceModel], int]:
        """Records awaiting or past review. Moderators only see their own events."""
        if not actor.is_staff:
            raise PermissionDeniedError("Only moderators and administrators can review attendance")
        if status is not None and status not in VERIFICATION_STATUSES:
            raise ValidationError(details={"status": "Unknown verification status"})

        base_filter = []
        if not actor.is_admin:
            base_filter.append(EventModel.created_by_id == actor.id)
        if event_id:
            base_filter.append(AttendanceModel.event_id == event_id)
        if status:
            base_filter.append(AttendanceModel.verification_status == status)

        total = (await session.execute(
            select(func.count(AttendanceModel.id))
            .join(EventModel, EventModel.id == AttendanceModel.event_id)
            .where(*base_filter)
        )).scalar_one()
        result = await session.execute(
            select(AttendanceModel)
            .join(EventModel, EventModel.id == AttendanceModel.event_id)
            .where(*base_filter)
            .order_by(AttendanceModel.submitted_at.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ── Internal helpers ──

    async def _get_record(self, session: AsyncSession, attendance_id: str) -> AttendanceModel:
        record = await session.get(AttendanceModel, attendance_id)
        if record is None:
            raise NotFoundError("Attendance record not found")
        return record

    def _evaluate(
        self,
        event: EventModel,
        latitude: float,
        longitude: float,
        submitted_at: datetime,
        is_check_in: bool,
    ) -> GeofenceVerdict:
        return evaluate_attempt(
            venue_latitude=event.venue_latitude,
            venue_longitude=event.venue_longitude,
            start_at=event.start_at,
            end_at=event.end_at,
            check_in_buffer_mins=event.check_in_buffer_mins,
            check_out_buffer_mins=event.check_out_buffer_mins,
            latitude=latitude,
            longitude=longitude,
            submitted_at=submitted_at,
            is_check_in=is_check_in,
            max_radius_m=self.settings.geofence_radius_m,
        )

    def _raise_for_verdict(self, verdict: GeofenceVerdict, label: str) -> None:
        if not verdict.within_time_window:
            raise TimeWindowError(
                f"{label} is only allowed between {verdict.opens_at.isoformat()} "
                f"and {verdict.closes_at.isoformat()}",
                details={
                    "opens_at": verdict.opens_at.isoformat(),
                    "closes_at": verdict.closes_at.isoformat(),
                },
            )
        if not verdict.within_geofence:
            radius = self.settings.geofence_radius_m
            raise GeofenceError(
                f"Location verification failed: Not within {radius:.0f}m of venue "
                f"(distance: {verdict.distance_meters:.1f}m)",
                details={
                    "distance_meters": round(verdict.distance_meters, 1),
                    "max_radius_m": radius,
                },
            )

    @staticmethod
    def _check_qr(event: EventModel, qr_payload: str | None) -> None:
        decoded = decode_payload(qr_payload or "")
        if decoded is None:
            raise InvalidQRError(
                "Invalid QR code format",
                details={"expected": "attendance:{eventId}:{timestamp}"},
            )
        if decoded.event_id != event.id:
            raise InvalidQRError("QR code belongs to a different event")
        if qr_payload != event.qr_payload:
            raise InvalidQRError("This QR code has been regenerated. Please scan the latest QR code.")

    async def _audit(self, session, action, actor, attendance_id, metadata, ip_address, user_agent):
        if self.audit_service:
            await self.audit_service.record(
                session, action, actor.id, "Attendance", attendance_id, metadata,
                ip_address, user_agent,
            )
