"""Pydantic schemas for security log API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class SecurityLogResponse(BaseModel):
    id: str
    sequence: int
    actor_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    metadata: dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    prev_hash: Optional[str] = None
    event_hash: str
    signature: str
    created_at: datetime


class AuditChainVerification(BaseModel):
    valid: bool
    entries_checked: int
    break_at: Optional[str] = None
