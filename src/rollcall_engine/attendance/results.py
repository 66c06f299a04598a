"""Tagged outcome of an attendance operation."""

from typing import Any

from rollcall_engine.common.exceptions import RollcallError
from rollcall_engine.attendance.models import AttendanceModel


class AttendanceResult:
    """Result of a state-machine call.

    ``ok`` is False for every expected failure; ``code`` then names the error
    kind (DUPLICATE, GEOFENCE, ALREADY_VERIFIED, ...) and ``details`` carries
    structured context such as field errors or the existing verification.
    """

    __slots__ = ("ok", "code", "message", "record", "details")

    def __init__(
        self,
        ok: bool,
        code: str = "",
        message: str = "",
        record: AttendanceModel | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.ok = ok
        self.code = code
        self.message = message
        self.record = record
        self.details = details or {}

    @classmethod
    def success(cls, record: AttendanceModel, code: str, message: str, **details: Any) -> "AttendanceResult":
        return cls(True, code, message, record, details)

    @classmethod
    def failure(cls, error: RollcallError) -> "AttendanceResult":
        return cls(False, error.code, error.message, None, error.details)

    def __repr__(self) -> str:
        return f"AttendanceResult(ok={self.ok!r}, code={self.code!r}, message={self.message!r})"
