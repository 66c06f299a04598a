"""
Geofence and time-window checks for check-in/check-out attempts.

Distance is the great-circle (haversine) distance between the venue and the
submitted position. The check-in window is symmetric around the event start,
the check-out window symmetric around the event end; both bounds inclusive.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class GeofenceVerdict:
    """Outcome of evaluating one attempt."""

    within_geofence: bool
    distance_meters: float
    within_time_window: bool
    opens_at: datetime
    closes_at: datetime

    @property
    def ok(self) -> bool:
        return self.within_geofence and self.within_time_window


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = (math.sin(dphi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2)
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def attempt_window(
    start_at: datetime,
    end_at: datetime,
    check_in_buffer_mins: int,
    check_out_buffer_mins: int,
    is_check_in: bool = True,
) -> tuple[datetime, datetime]:
    """Return the inclusive (opens_at, closes_at) window for an attempt."""
    if is_check_in:
        anchor, buffer = ensure_utc(start_at), timedelta(minutes=check_in_buffer_mins)
    else:
        anchor, buffer = ensure_utc(end_at), timedelta(minutes=check_out_buffer_mins)
    return anchor - buffer, anchor + buffer


def evaluate_attempt(
    venue_latitude: float,
    venue_longitude: float,
    start_at: datetime,
    end_at: datetime,
    check_in_buffer_mins: int,
    check_out_buffer_mins: int,
    latitude: float,
    longitude: float,
    submitted_at: datetime,
    is_check_in: bool = True,
    max_radius_m: float = 100.0,
) -> GeofenceVerdict:
    """Check a submitted position and timestamp against an event's venue and window."""
    if max_radius_m <= 0:
        raise ValueError("max_radius_m must be positive")

    distance = haversine_distance(venue_latitude, venue_longitude, latitude, longitude)
    opens_at, closes_at = attempt_window(
        start_at, end_at, check_in_buffer_mins, check_out_buffer_mins, is_check_in,
    )
    submitted_at = ensure_utc(submitted_at)

    return GeofenceVerdict(
        within_geofence=distance <= max_radius_m,
        distance_meters=distance,
        within_time_window=opens_at <= submitted_at <= closes_at,
        opens_at=opens_at,
        closes_at=closes_at,
    )
