"""Event service: create, update, lifecycle and QR issuance."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall_engine.common.config import RollcallSettings
from rollcall_engine.common.exceptions import (
    EventUnavailableError,
    NotFoundError,
    OwnershipError,
    PermissionDeniedError,
    ValidationError,
)
from rollcall_engine.common.models import generate_id
from rollcall_engine.common.security import AuthenticatedActor
from rollcall_engine.events.models import EVENT_COMPLETED, EVENT_STATUSES, EventModel
from rollcall_engine.geofence.validator import ensure_utc
from rollcall_engine.qr.codec import decode_payload, encode_payload

_EDITABLE_FIELDS = frozenset({
    "name", "description", "venue_name", "venue_address",
    "venue_latitude", "venue_longitude", "start_at", "end_at",
    "check_in_buffer_mins", "check_out_buffer_mins",
})


def _validate_event_fields(fields: dict[str, Any]) -> None:
    errors: dict[str, str] = {}
    lat = fields.get("venue_latitude")
    lon = fields.get("venue_longitude")
    if lat is not None and not -90 <= lat <= 90:
        errors["venue_latitude"] = "Latitude must be between -90 and 90"
    if lon is not None and not -180 <= lon <= 180:
        errors["venue_longitude"] = "Longitude must be between -180 and 180"
    for key in ("check_in_buffer_mins", "check_out_buffer_mins"):
        value = fields.get(key)
        if value is not None and value < 0:
            errors[key] = "Buffer minutes must not be negative"
    start_at, end_at = fields.get("start_at"), fields.get("end_at")
    if start_at is not None and end_at is not None and ensure_utc(end_at) <= ensure_utc(start_at):
        errors["end_at"] = "End time must be after start time"
    if "name" in fields and not (fields["name"] or "").strip():
        errors["name"] = "Event name is required"
    if errors:
        raise ValidationError(details=errors)


class EventService:
    """Event store used by moderators and administrators."""

    def __init__(self, settings: RollcallSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    async def _audit(self, session, action, actor, event_id, metadata=None, ip_address=None, user_agent=None):
        if self.audit_service:
            await self.audit_service.record(
                session, action, actor.id, "Event", event_id, metadata or {},
                ip_address, user_agent,
            )

    # ── Create ──

    async def create_event(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        name: str,
        venue_latitude: float,
        venue_longitude: float,
        start_at: datetime,
        end_at: datetime,
        description: str = "",
        venue_name: str = "",
        venue_address: str = "",
        check_in_buffer_mins: int | None = None,
        check_out_buffer_mins: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EventModel:
        """Create an Active event and issue its QR payload."""
        if not actor.is_staff:
            raise PermissionDeniedError("Only moderators and administrators can create events")

        if check_in_buffer_mins is None:
            check_in_buffer_mins = self.settings.default_check_in_buffer_mins
        if check_out_buffer_mins is None:
            check_out_buffer_mins = self.settings.default_check_out_buffer_mins

        fields = {
            "name": name,
            "venue_latitude": venue_latitude,
            "venue_longitude": venue_longitude,
            "start_at": start_at,
            "end_at": end_at,
            "check_in_buffer_mins": check_in_buffer_mins,
            "check_out_buffer_mins": check_out_buffer_mins,
        }
        _validate_event_fields(fields)

        event_id = generate_id()
        event = EventModel(
            id=event_id,
            description=description,
            venue_name=venue_name,
            venue_address=venue_address,
            created_by_id=actor.id,
            qr_payload=encode_payload(event_id),
            **fields,
        )
        session.add(event)
        await session.flush()

        await self._audit(
            session, "event.created", actor, event.id,
            {"name": event.name, "start_at": ensure_utc(event.start_at).isoformat()},
            ip_address, user_agent,
        )
        return event

    # ── Read ──

    async def get_event(
        self, session: AsyncSession, event_id: str, include_deleted: bool = False,
    ) -> EventModel | None:
        query = select(EventModel).where(EventModel.id == event_id)
        if not include_deleted:
            query = query.where(EventModel.is_deleted == False)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def list_events(
        self,
        session: AsyncSession,
        status: str | None = None,
        created_by_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[EventModel], int]:
        """Return (events, total) ordered by start time, newest first."""
        base_filter = [EventModel.is_deleted == False]
        if status:
            base_filter.append(EventModel.status == status)
        if created_by_id:
            base_filter.append(EventModel.created_by_id == created_by_id)

        total = (await session.execute(
            select(func.count(EventModel.id)).where(*base_filter)
        )).scalar_one()
        result = await session.execute(
            select(EventModel)
            .where(*base_filter)
            .order_by(EventModel.start_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ── Update ──

    async def _load_for_edit(
        self, session: AsyncSession, actor: AuthenticatedActor, event_id: str,
    ) -> EventModel:
        if not actor.is_staff:
            raise PermissionDeniedError("Only moderators and administrators can manage events")
        event = await self.get_event(session, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event.created_by_id != actor.id and not actor.is_admin:
            raise OwnershipError("You can only manage events you created")
        if event.status == EVENT_COMPLETED and not actor.is_admin:
            raise EventUnavailableError(
                "Completed events can only be corrected by an administrator"
            )
        return event

    async def update_event(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        changes: dict[str, Any],
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EventModel:
        event = await self._load_for_edit(session, actor, event_id)

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                details={field: "Field cannot be updated" for field in sorted(unknown)}
            )
        merged = {
            "start_at": event.start_at,
            "end_at": event.end_at,
            **changes,
        }
        _validate_event_fields(merged)

        for field, value in changes.items():
            setattr(event, field, value)
        await session.flush()

        await self._audit(
            session, "event.updated", actor, event.id,
            {"fields": sorted(changes)}, ip_address, user_agent,
        )
        return event

    async def regenerate_qr(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EventModel:
        """Issue a fresh payload; previously printed codes stop validating."""
        event = await self._load_for_edit(session, actor, event_id)
        issued_at = int(datetime.now(timezone.utc).timestamp() * 1000)
        previous = decode_payload(event.qr_payload)
        if previous is not None and issued_at <= previous.issued_at:
            issued_at = previous.issued_at + 1
        event.qr_payload = encode_payload(event.id, issued_at)
        await session.flush()

        await self._audit(
            session, "event.qr_regenerated", actor, event.id, {}, ip_address, user_agent,
        )
        return event

    async def set_status(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        status: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> EventModel:
        if status not in EVENT_STATUSES:
            raise ValidationError(details={"status": f"Status must be one of {', '.join(EVENT_STATUSES)}"})
        event = await self._load_for_edit(session, actor, event_id)
        previous = event.status
        event.status = status
        await session.flush()

        await self._audit(
            session, "event.status_changed", actor, event.id,
            {"previous_status": previous, "new_status": status},
            ip_address, user_agent,
        )
        return event

    async def soft_delete_event(
        self,
        session: AsyncSession,
        actor: AuthenticatedActor,
        event_id: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        event = await self._load_for_edit(session, actor, event_id)
        event.is_deleted = True
        event.deleted_at = datetime.now(timezone.utc)
        await session.flush()

        await self._audit(session, "event.deleted", actor, event.id, {}, ip_address, user_agent)
        return True
