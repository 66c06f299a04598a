"""Pydantic schemas for event endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    venue_name: str = Field(default="", max_length=255)
    venue_address: str = Field(default="", max_length=512)
    venue_latitude: float = Field(..., ge=-90, le=90)
    venue_longitude: float = Field(..., ge=-180, le=180)
    start_at: datetime
    end_at: datetime
    check_in_buffer_mins: Optional[int] = Field(default=None, ge=0, le=1440)
    check_out_buffer_mins: Optional[int] = Field(default=None, ge=0, le=1440)


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    venue_name: Optional[str] = Field(default=None, max_length=255)
    venue_address: Optional[str] = Field(default=None, max_length=512)
    venue_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    venue_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    check_in_buffer_mins: Optional[int] = Field(default=None, ge=0, le=1440)
    check_out_buffer_mins: Optional[int] = Field(default=None, ge=0, le=1440)


class EventStatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(Active|Completed|Cancelled)$")


class EventResponse(BaseModel):
    id: str
    name: str
    description: str
    venue_name: str
    venue_address: str
    venue_latitude: float
    venue_longitude: float
    start_at: datetime
    end_at: datetime
    check_in_buffer_mins: int
    check_out_buffer_mins: int
    status: str
    qr_payload: str
    created_by_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    items: list[EventResponse]
    total: int
    limit: int
    offset: int
