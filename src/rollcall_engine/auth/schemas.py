"""Pydantic schemas for session token endpoints."""

from pydantic import BaseModel, Field

from rollcall_engine.common.security import Role


class TokenRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=64)
    role: Role = Role.STUDENT


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ActorResponse(BaseModel):
    id: str
    role: Role
    is_staff: bool
