"""Security log API router."""

from fastapi import APIRouter, Depends, Query

from rollcall_engine.common.security import Role, require_roles
from rollcall_engine.audit.schemas import AuditChainVerification, SecurityLogResponse

router = APIRouter()

require_admin = require_roles(Role.ADMINISTRATOR)


def _get_service():
    from rollcall_engine.deps import get_audit_service
    return get_audit_service()


def _get_db():
    from rollcall_engine.deps import get_db
    return get_db()


@router.get("/audit", response_model=list[SecurityLogResponse])
async def get_security_log(
    action: str | None = Query(None),
    actor_id: str | None = Query(None),
    entity_type: str | None = Query(None),
    entity_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_admin),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        entries = await svc.get_entries(
            session, action=action, actor_id=actor_id,
            entity_type=entity_type, entity_id=entity_id,
            limit=limit, offset=offset,
        )
        return [
            SecurityLogResponse(
                id=e.id,
                sequence=e.sequence,
                actor_id=e.actor_id,
                action=e.action,
                entity_type=e.entity_type,
                entity_id=e.entity_id,
                metadata=e.metadata_ or {},
                ip_address=e.ip_address,
                user_agent=e.user_agent,
                prev_hash=e.prev_hash,
                event_hash=e.event_hash,
                signature=e.signature,
                created_at=e.created_at,
            )
            for e in entries
        ]


@router.get("/audit/verify", response_model=AuditChainVerification)
async def verify_audit_chain(_=Depends(require_admin)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.verify_chain(session)
        return AuditChainVerification(**result)
