"""Dependency injection singletons for Rollcall-Engine."""

from rollcall_engine.common.config import get_settings
from rollcall_engine.common.database import DatabaseManager
from rollcall_engine.common.ratelimit import SlidingWindowRateLimiter
from rollcall_engine.audit.service import AuditService
from rollcall_engine.events.service import EventService
from rollcall_engine.attendance.service import AttendanceService

_db: DatabaseManager | None = None
_audit: AuditService | None = None
_events: EventService | None = None
_attendance: AttendanceService | None = None
_auth_limiter: SlidingWindowRateLimiter | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_audit_service() -> AuditService:
    global _audit
    if _audit is None:
        _audit = AuditService(get_settings())
    return _audit


def get_event_service() -> EventService:
    global _events
    if _events is None:
        _events = EventService(get_settings(), audit_service=get_audit_service())
    return _events


def get_attendance_service() -> AttendanceService:
    global _attendance
    if _attendance is None:
        _attendance = AttendanceService(
            get_settings(), get_event_service(),
            audit_service=get_audit_service(),
        )
    return _attendance


def get_auth_rate_limiter() -> SlidingWindowRateLimiter:
    global _auth_limiter
    if _auth_limiter is None:
        settings = get_settings()
        _auth_limiter = SlidingWindowRateLimiter(
            limit=settings.auth_rate_limit_attempts,
            window_seconds=settings.auth_rate_limit_window,
        )
    return _auth_limiter


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _audit, _events, _attendance, _auth_limiter
    _db = None
    _audit = None
    _events = None
    _attendance = None
    _auth_limiter = None
