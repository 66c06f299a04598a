"""SQLAlchemy models for events."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rollcall_engine.common.models import Base, SoftDeleteMixin, TimestampMixin, generate_id

EVENT_ACTIVE = "Active"
EVENT_COMPLETED = "Completed"
EVENT_CANCELLED = "Cancelled"
EVENT_STATUSES = (EVENT_ACTIVE, EVENT_COMPLETED, EVENT_CANCELLED)


class EventModel(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    venue_name: Mapped[str] = mapped_column(String(255), default="")
    venue_address: Mapped[str] = mapped_column(String(512), default="")
    venue_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    venue_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_in_buffer_mins: Mapped[int] = mapped_column(Integer, default=30)
    check_out_buffer_mins: Mapped[int] = mapped_column(Integer, default=30)
    status: Mapped[str] = mapped_column(String(20), default=EVENT_ACTIVE, index=True)
    qr_payload: Mapped[str] = mapped_column(String(128), default="")
    created_by_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
