"""Rollcall-Engine exception hierarchy."""

from typing import Any


class RollcallError(Exception):
    """Base exception for all Rollcall errors."""

    def __init__(
        self,
        message: str = "",
        code: str = "ROLLCALL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(RollcallError):
    """Raised when input is malformed; details maps field name to message."""

    def __init__(self, message: str = "Validation failed", details: dict[str, Any] | None = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class NotFoundError(RollcallError):
    """Raised when a referenced event or attendance record does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class OwnershipError(RollcallError):
    """Raised when the actor does not own the target resource."""

    def __init__(self, message: str = "You do not own this resource"):
        super().__init__(message, code="OWNERSHIP")


class PermissionDeniedError(RollcallError):
    """Raised when the actor's role may not perform the action."""

    def __init__(self, message: str = "Insufficient role for this action"):
        super().__init__(message, code="FORBIDDEN")


class DuplicateError(RollcallError):
    """Raised on a uniqueness violation (one attendance per event and user)."""

    def __init__(self, message: str = "Duplicate record", details: dict[str, Any] | None = None):
        super().__init__(message, code="DUPLICATE", details=details)


class GeofenceError(RollcallError):
    """Raised when a submission is outside the venue radius."""

    def __init__(self, message: str = "Outside the venue geofence", details: dict[str, Any] | None = None):
        super().__init__(message, code="GEOFENCE", details=details)


class TimeWindowError(RollcallError):
    """Raised when a submission is outside the allowed time window."""

    def __init__(self, message: str = "Outside the allowed time window", details: dict[str, Any] | None = None):
        super().__init__(message, code="TIME_WINDOW", details=details)


class IllegalTransitionError(RollcallError):
    """Raised when the verification state machine rejects a transition."""

    def __init__(
        self,
        message: str = "Illegal status transition",
        code: str = "ILLEGAL_TRANSITION",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, details=details)


class AlreadyVerifiedError(IllegalTransitionError):
    """Raised when verifying a record that is neither Pending nor Disputed."""

    def __init__(self, message: str = "Attendance already verified", details: dict[str, Any] | None = None):
        super().__init__(message, code="ALREADY_VERIFIED", details=details)


class WrongStatusError(IllegalTransitionError):
    """Raised when appealing a record that is not Rejected."""

    def __init__(self, message: str = "Only rejected attendance can be appealed", details: dict[str, Any] | None = None):
        super().__init__(message, code="WRONG_STATUS", details=details)


class MissingDisputeNoteError(RollcallError):
    """Raised when rejecting without a dispute note."""

    def __init__(self, message: str = "Dispute note is required when rejecting attendance"):
        super().__init__(message, code="MISSING_DISPUTE_NOTE")


class EventUnavailableError(RollcallError):
    """Raised when an event is cancelled, completed, or otherwise closed to check-ins."""

    def __init__(self, message: str = "Event is not accepting attendance"):
        super().__init__(message, code="EVENT_UNAVAILABLE")


class InvalidQRError(RollcallError):
    """Raised when a QR payload is malformed, stale, or names another event."""

    def __init__(self, message: str = "Invalid QR code", details: dict[str, Any] | None = None):
        super().__init__(message, code="INVALID_QR", details=details)


class RateLimitError(RollcallError):
    """Raised when an identifier exceeds its authentication attempt budget."""

    def __init__(self, message: str = "Too many attempts", details: dict[str, Any] | None = None):
        super().__init__(message, code="RATE_LIMITED", details=details)


HTTP_STATUS_BY_CODE = {
    "VALIDATION_ERROR": 422,
    "NOT_FOUND": 404,
    "OWNERSHIP": 403,
    "FORBIDDEN": 403,
    "DUPLICATE": 409,
    "GEOFENCE": 422,
    "TIME_WINDOW": 422,
    "ILLEGAL_TRANSITION": 409,
    "ALREADY_VERIFIED": 409,
    "WRONG_STATUS": 409,
    "MISSING_DISPUTE_NOTE": 422,
    "EVENT_UNAVAILABLE": 409,
    "INVALID_QR": 400,
    "RATE_LIMITED": 429,
}


def http_status_for(code: str) -> int:
    """Map an error code to the HTTP status the routers respond with."""
    return HTTP_STATUS_BY_CODE.get(code, 400)
