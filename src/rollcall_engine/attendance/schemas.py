"""Pydantic schemas for attendance endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class QRValidateRequest(BaseModel):
    qr_payload: str = Field(..., min_length=1, max_length=512)


class CaptureRequest(BaseModel):
    latitude: float
    longitude: float
    front_photo_ref: str = Field(..., min_length=1, max_length=2048)
    back_photo_ref: str = Field(..., min_length=1, max_length=2048)
    signature_ref: str = Field(..., min_length=1, max_length=2048)


class AttendanceSubmit(CaptureRequest):
    event_id: str = Field(..., min_length=1, max_length=36)
    qr_payload: Optional[str] = Field(default=None, max_length=512)


class CheckOutRequest(CaptureRequest):
    pass


class VerifyRequest(BaseModel):
    verification_status: str
    dispute_note: Optional[str] = None


class AppealRequest(BaseModel):
    appeal_message: str


class AttendanceResponse(BaseModel):
    id: str
    event_id: str
    user_id: str
    submitted_at: datetime
    latitude: float
    longitude: float
    distance_from_venue: float
    front_photo_url: str
    back_photo_url: str
    signature_url: str
    check_out_submitted_at: Optional[datetime] = None
    check_out_latitude: Optional[float] = None
    check_out_longitude: Optional[float] = None
    check_out_distance: Optional[float] = None
    check_out_front_photo_url: Optional[str] = None
    check_out_back_photo_url: Optional[str] = None
    check_out_signature_url: Optional[str] = None
    verification_status: str
    dispute_note: Optional[str] = None
    verified_by_id: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AttendanceOutcome(BaseModel):
    """Envelope for state-changing calls; mirrors ``AttendanceResult``."""
    success: bool
    code: str
    message: str
    attendance: Optional[AttendanceResponse] = None
    details: dict[str, Any] = {}


class AttendanceListResponse(BaseModel):
    items: list[AttendanceResponse]
    total: int
    limit: int
    offset: int
    counts: Optional[dict[str, int]] = None


class ExistingAttendanceResponse(BaseModel):
    has_checked_in: bool
    attendance: Optional[AttendanceResponse] = None
