"""
Attendance QR payload codec.

Format: attendance:{eventId}:{unixMillis}
- eventId: lowercase alphanumeric event identifier
- unixMillis: issuance time in milliseconds since the epoch

The payload carries no signature; it is bound to its event by comparing it
with the payload currently stored on the event record.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

PREFIX = "attendance"
EVENT_ID_PATTERN = re.compile(r"^[a-z0-9]+$")
PAYLOAD_PATTERN = re.compile(r"^attendance:([a-z0-9]+):([0-9]+)$")


@dataclass(frozen=True)
class QRPayload:
    """Decoded check-in token."""

    event_id: str
    issued_at: int  # unix millis

    @property
    def issued_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.issued_at / 1000, tz=timezone.utc)


def _to_millis(issued_at: datetime | int) -> int:
    if isinstance(issued_at, datetime):
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        return int(issued_at.timestamp() * 1000)
    return int(issued_at)


def encode_payload(event_id: str, issued_at: datetime | int | None = None) -> str:
    """
    Build the QR payload for an event.

    Args:
        event_id: Lowercase alphanumeric event id
        issued_at: Issuance time as datetime or unix millis (defaults to now)

    Returns:
        Payload string ``attendance:<eventId>:<unixMillis>``
    """
    if not isinstance(event_id, str) or not EVENT_ID_PATTERN.match(event_id):
        raise ValueError(f"Event id must be lowercase alphanumeric, got {event_id!r}")
    if issued_at is None:
        issued_at = datetime.now(timezone.utc)
    millis = _to_millis(issued_at)
    if millis < 0:
        raise ValueError("Issuance time must not precede the epoch")
    return f"{PREFIX}:{event_id}:{millis}"


def decode_payload(token: str) -> QRPayload | None:
    """Parse a scanned payload. Returns None when it does not match the format."""
    if not token or not isinstance(token, str):
        return None
    match = PAYLOAD_PATTERN.fullmatch(token)
    if match is None:
        return None
    return QRPayload(event_id=match.group(1), issued_at=int(match.group(2)))


def is_valid_payload(token: str) -> bool:
    return decode_payload(token) is not None
