#!/usr/bin/env python3
"""Seed the database with a demo event and print tokens for each role.

Usage:
    python scripts/seed_demo.py
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from rollcall_engine.common.config import get_settings
from rollcall_engine.common.database import DatabaseManager
from rollcall_engine.common.security import AuthenticatedActor, Role, create_session_token
from rollcall_engine.events.service import EventService

DEMO_ACTORS = [
    AuthenticatedActor(id="demo-admin", role=Role.ADMINISTRATOR),
    AuthenticatedActor(id="demo-moderator", role=Role.MODERATOR),
    AuthenticatedActor(id="demo-student", role=Role.STUDENT),
]


async def seed_demo() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = EventService(settings)
    moderator = DEMO_ACTORS[1]
    start = datetime.now(timezone.utc) + timedelta(minutes=10)

    async with db.get_session() as session:
        events, _ = await svc.list_events(session, created_by_id=moderator.id, limit=1)
        if events:
            event = events[0]
            print(f"  [skip] demo event {event.id} already exists")
        else:
            event = await svc.create_event(
                session, moderator,
                name="Orientation Assembly",
                venue_name="Main Hall",
                venue_latitude=14.5995,
                venue_longitude=120.9842,
                start_at=start,
                end_at=start + timedelta(hours=2),
            )
            print(f"  [created] {event.id} ({event.name})")
        print(f"  QR payload: {event.qr_payload}")

    await db.close()

    print("\nSession tokens:")
    for actor in DEMO_ACTORS:
        print(f"  {actor.role.value:<14} {create_session_token(actor)}")


if __name__ == "__main__":
    asyncio.run(seed_demo())
