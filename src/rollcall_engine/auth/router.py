"""Session token API router.

Tokens are issued to a trusted front end holding the service API key; the
identity provider itself lives outside this service.
"""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException

from rollcall_engine.common.exceptions import RateLimitError, http_status_for
from rollcall_engine.common.security import (
    AuthenticatedActor,
    create_session_token,
    require_actor,
    require_api_key,
)
from rollcall_engine.auth.schemas import ActorResponse, TokenRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_limiter():
    from rollcall_engine.deps import get_auth_rate_limiter
    return get_auth_rate_limiter()


@router.post("/auth/token", response_model=TokenResponse)
async def issue_token(body: TokenRequest, _=Depends(require_api_key)):
    from rollcall_engine.common.config import get_settings

    limit = _get_limiter().hit(body.user_id)
    if not limit.allowed:
        logger.warning("Token issuance rate limited for user %s", body.user_id)
        retry_after = max(math.ceil(limit.reset_after), 1)
        e = RateLimitError(
            "Too many authentication attempts. Please try again later.",
            details={"retry_after": retry_after},
        )
        raise HTTPException(
            status_code=http_status_for(e.code),
            detail={"code": e.code, "message": e.message, "details": e.details},
            headers={"Retry-After": str(retry_after)},
        )

    actor = AuthenticatedActor(id=body.user_id, role=body.role)
    return TokenResponse(
        access_token=create_session_token(actor),
        expires_in=get_settings().session_ttl,
    )


@router.get("/auth/me", response_model=ActorResponse)
async def whoami(actor: AuthenticatedActor = Depends(require_actor)):
    return ActorResponse(id=actor.id, role=actor.role, is_staff=actor.is_staff)
