"""SQLAlchemy models for attendance records."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rollcall_engine.common.models import Base, TimestampMixin, generate_id

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUS_DISPUTED = "Disputed"
VERIFICATION_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED, STATUS_DISPUTED)

# Statuses a moderator or administrator may still decide on.
VERIFIABLE_STATUSES = (STATUS_PENDING, STATUS_DISPUTED)
DECISIONS = (STATUS_APPROVED, STATUS_REJECTED)


class AttendanceModel(Base, TimestampMixin):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_attendance_event_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Check-in
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    distance_from_venue: Mapped[float] = mapped_column(Float, nullable=False)
    front_photo_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    back_photo_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    signature_url: Mapped[str] = mapped_column(String(2048), nullable=False)

    # Check-out
    check_out_submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    check_out_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_out_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_out_distance: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_out_front_photo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    check_out_back_photo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    check_out_signature_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Verification
    verification_status: Mapped[str] = mapped_column(
        String(20), default=STATUS_PENDING, nullable=False, index=True
    )
    dispute_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
