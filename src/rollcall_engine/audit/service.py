"""Audit service: record, verify and query the security log chain."""

import hashlib
import hmac as hmac_mod
import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rollcall_engine.common.config import RollcallSettings
from rollcall_engine.audit.models import SecurityLogModel

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only, hash-chained log of sensitive actions.

    Writes are best effort: a failure to record is logged and swallowed so
    that it never blocks or rolls back the action being described.
    """

    def __init__(self, settings: RollcallSettings):
        self.settings = settings

    # ── Write ──

    async def record(
        self,
        session: AsyncSession,
        action: str,
        actor_id: str | None,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SecurityLogModel | None:
        """Append one entry to the chain. Returns None if the write failed.

        A sequence collision with a concurrent writer is retried once against
        the new chain head.
        """
        for attempt in range(2):
            try:
                async with session.begin_nested():
                    return await self._append(
                        session, action, actor_id, entity_type, entity_id,
                        metadata or {}, ip_address, user_agent,
                    )
            except IntegrityError:
                if attempt == 0:
                    logger.warning("Security log sequence collision on %s, retrying", action)
                    continue
                logger.exception(
                    "Failed to record security log %s for %s %s",
                    action, entity_type, entity_id,
                )
            except Exception:
                logger.exception(
                    "Failed to record security log %s for %s %s",
                    action, entity_type, entity_id,
                )
                return None
        return None

    async def _append(
        self,
        session: AsyncSession,
        action: str,
        actor_id: str | None,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any],
        ip_address: str | None,
        user_agent: str | None,
    ) -> SecurityLogModel:
        head = await self.get_chain_head(session)
        prev_hash = head.event_hash if head else None
        sequence = head.sequence + 1 if head else 1

        event_hash = self._compute_event_hash(
            sequence, action, actor_id, entity_type, entity_id, metadata, prev_hash,
        )
        entry = SecurityLogModel(
            sequence=sequence,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_=metadata,
            ip_address=ip_address,
            user_agent=user_agent,
            prev_hash=prev_hash,
            event_hash=event_hash,
            signature=self._sign(event_hash),
        )
        session.add(entry)
        await session.flush()
        return entry

    # ── Read ──

    async def get_chain_head(self, session: AsyncSession) -> SecurityLogModel | None:
        """Return the most recent entry."""
        result = await session.execute(
            select(SecurityLogModel)
            .order_by(SecurityLogModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_entries(
        self,
        session: AsyncSession,
        action: str | None = None,
        actor_id: str | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[SecurityLogModel]:
        """Paginated entry list, newest first."""
        query = select(SecurityLogModel)
        if action:
            query = query.where(SecurityLogModel.action == action)
        if actor_id:
            query = query.where(SecurityLogModel.actor_id == actor_id)
        if entity_type:
            query = query.where(SecurityLogModel.entity_type == entity_type)
        if entity_id:
            query = query.where(SecurityLogModel.entity_id == entity_id)
        query = (
            query.order_by(SecurityLogModel.sequence.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())

    # ── Verify ──

    async def verify_chain(self, session: AsyncSession) -> dict[str, Any]:
        """Walk the chain oldest→newest, verify linkage, hashes and signatures."""
        result = await session.execute(
            select(SecurityLogModel).order_by(SecurityLogModel.sequence.asc())
        )
        entries = list(result.scalars().all())

        prev_hash = None
        for checked, entry in enumerate(entries):
            expected_hash = self._compute_event_hash(
                entry.sequence, entry.action, entry.actor_id, entry.entity_type,
                entry.entity_id, entry.metadata_ or {}, entry.prev_hash,
            )
            if (
                entry.prev_hash != prev_hash
                or entry.event_hash != expected_hash
                or not self._verify_signature(entry.event_hash, entry.signature)
            ):
                return {"valid": False, "entries_checked": checked, "break_at": entry.id}
            prev_hash = entry.event_hash

        return {"valid": True, "entries_checked": len(entries), "break_at": None}

    # ── Internal helpers ──

    @staticmethod
    def _compute_event_hash(
        sequence: int,
        action: str,
        actor_id: str | None,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any],
        prev_hash: str | None,
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "sequence": sequence,
                "action": action,
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "metadata": metadata,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, event_hash: str) -> str:
        """HMAC-SHA256 of event_hash with the current HMAC key."""
        return hmac_mod.new(
            self.settings.current_hmac_key.encode(),
            event_hash.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _verify_signature(self, event_hash: str, signature: str) -> bool:
        """Verify signature against all keys in the keyring."""
        for _version, key in self.settings.hmac_keyring.items():
            expected = hmac_mod.new(
                key.encode(), event_hash.encode(), hashlib.sha256,
            ).hexdigest()
            if hmac_mod.compare_digest(expected, signature):
                return True
        return False
