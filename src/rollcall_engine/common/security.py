"""Session tokens and request authentication dependencies."""

from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, Header, HTTPException, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer


class Role(str, Enum):
    STUDENT = "Student"
    MODERATOR = "Moderator"
    ADMINISTRATOR = "Administrator"


STAFF_ROLES = frozenset({Role.MODERATOR, Role.ADMINISTRATOR})


@dataclass(frozen=True)
class AuthenticatedActor:
    """Identity resolved from a session token and passed into every service call."""
    id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMINISTRATOR


def _get_serializer() -> URLSafeTimedSerializer:
    from rollcall_engine.common.config import get_settings
    return URLSafeTimedSerializer(get_settings().secret_key, salt="rollcall-session")


def create_session_token(actor: AuthenticatedActor) -> str:
    """Sign an actor payload and return the bearer token."""
    s = _get_serializer()
    return s.dumps({"sub": actor.id, "role": actor.role.value})


def verify_session_token(token: str, max_age: int | None = None) -> AuthenticatedActor | None:
    """Verify and decode a session token. Returns the actor or None."""
    from rollcall_engine.common.config import get_settings

    s = _get_serializer()
    try:
        payload = s.loads(token, max_age=max_age or get_settings().session_ttl)
    except (BadSignature, SignatureExpired):
        return None
    try:
        return AuthenticatedActor(id=str(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, TypeError, ValueError):
        return None


async def require_api_key(
    x_rollcall_api_key: str = Header(..., alias="X-Rollcall-Api-Key"),
) -> str:
    """FastAPI dependency that validates the service API key from header."""
    from rollcall_engine.common.config import get_settings

    settings = get_settings()
    if x_rollcall_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_rollcall_api_key


async def require_actor(
    authorization: str = Header(None, alias="Authorization"),
) -> AuthenticatedActor:
    """FastAPI dependency that resolves the bearer token into an actor."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    actor = verify_session_token(authorization[7:].strip())
    if actor is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return actor


def require_roles(*roles: Role):
    """Build a dependency that only admits actors holding one of ``roles``."""
    allowed = frozenset(roles)

    async def _dependency(actor: AuthenticatedActor = Depends(require_actor)) -> AuthenticatedActor:
        if actor.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient role for this action")
        return actor

    return _dependency


def client_info(request: Request) -> tuple[str | None, str | None]:
    """Return (ip_address, user_agent) for the security log."""
    ip = request.headers.get("x-forwarded-for") or request.headers.get("x-real-ip")
    if not ip and request.client:
        ip = request.client.host
    return ip, request.headers.get("user-agent")
