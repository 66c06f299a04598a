"""Shared test fixtures for Rollcall-Engine."""

import os
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from rollcall_engine.common.security import AuthenticatedActor


SECRET_KEY = "test-secret-key-for-unit-tests"
HMAC_KEY = "test-hmac-key-for-unit-tests"
API_KEY = "test-service-api-key"

VENUE_LAT = 14.5995
VENUE_LON = 120.9842
# ~50 m north of the venue
NEAR_LAT = VENUE_LAT + 0.00045


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["ROLLCALL_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["ROLLCALL_SECRET_KEY"] = SECRET_KEY
    os.environ["ROLLCALL_HMAC_KEY"] = HMAC_KEY
    os.environ["ROLLCALL_API_KEY"] = API_KEY

    # Clear caches and singletons so new env vars take effect
    from rollcall_engine.common.config import get_settings
    get_settings.cache_clear()

    from rollcall_engine.deps import reset_singletons
    reset_singletons()

    from rollcall_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from rollcall_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def headers_for(app):
    """Build bearer headers for an actor (settings are loaded by ``app``)."""
    from rollcall_engine.common.security import create_session_token

    def _headers(actor: AuthenticatedActor) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(actor)}"}

    return _headers


@pytest.fixture
def event_payload():
    """An event starting shortly so check-in is open at server time."""
    start = datetime.now(timezone.utc) + timedelta(minutes=5)
    return {
        "name": "Orientation Assembly",
        "venue_name": "Main Hall",
        "venue_latitude": VENUE_LAT,
        "venue_longitude": VENUE_LON,
        "start_at": start.isoformat(),
        "end_at": (start + timedelta(hours=2)).isoformat(),
    }


@pytest.fixture
def capture_payload():
    return {
        "latitude": NEAR_LAT,
        "longitude": VENUE_LON,
        "front_photo_ref": "uploads/front.jpg",
        "back_photo_ref": "uploads/back.jpg",
        "signature_ref": "uploads/signature.png",
    }
