"""Event management API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rollcall_engine.common.exceptions import RollcallError, http_status_for
from rollcall_engine.common.security import AuthenticatedActor, client_info, require_actor
from rollcall_engine.events.schemas import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatusUpdate,
    EventUpdate,
)

router = APIRouter()


def _get_service():
    from rollcall_engine.deps import get_event_service
    return get_event_service()


def _get_db():
    from rollcall_engine.deps import get_db
    return get_db()


def _http_error(e: RollcallError) -> HTTPException:
    return HTTPException(
        status_code=http_status_for(e.code),
        detail={"code": e.code, "message": e.message, "details": e.details},
    )


@router.post("/events", response_model=EventResponse, status_code=201)
async def create_event(
    body: EventCreate,
    request: Request,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    try:
        async with db.get_session() as session:
            event = await svc.create_event(
                session, actor,
                name=body.name,
                venue_latitude=body.venue_latitude,
                venue_longitude=body.venue_longitude,
                start_at=body.start_at,
                end_at=body.end_at,
                description=body.description,
                venue_name=body.venue_name,
                venue_address=body.venue_address,
                check_in_buffer_mins=body.check_in_buffer_mins,
                check_out_buffer_mins=body.check_out_buffer_mins,
                ip_address=ip,
                user_agent=user_agent,
            )
            return EventResponse.model_validate(event)
    except RollcallError as e:
        raise _http_error(e)


@router.get("/events", response_model=EventListResponse)
async def list_events(
    status: str | None = Query(None, pattern=r"^(Active|Completed|Cancelled)$"),
    mine: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        events, total = await svc.list_events(
            session, status=status,
            created_by_id=actor.id if mine else None,
            limit=limit, offset=offset,
        )
        return EventListResponse(
            items=[EventResponse.model_validate(e) for e in events],
            total=total, limit=limit, offset=offset,
        )


@router.get("/events/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, actor: AuthenticatedActor = Depends(require_actor)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        event = await svc.get_event(session, event_id)
        if event is None:
            raise HTTPException(status_code=404, detail="Event not found")
        return EventResponse.model_validate(event)


@router.patch("/events/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    body: EventUpdate,
    request: Request,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    try:
        async with db.get_session() as session:
            event = await svc.update_event(
                session, actor, event_id,
                body.model_dump(exclude_unset=True, exclude_none=True),
                ip_address=ip, user_agent=user_agent,
            )
            return EventResponse.model_validate(event)
    except RollcallError as e:
        raise _http_error(e)


@router.post("/events/{event_id}/qr", response_model=EventResponse)
async def regenerate_qr(
    event_id: str,
    request: Request,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    try:
        async with db.get_session() as session:
            event = await svc.regenerate_qr(
                session, actor, event_id, ip_address=ip, user_agent=user_agent,
            )
            return EventResponse.model_validate(event)
    except RollcallError as e:
        raise _http_error(e)


@router.post("/events/{event_id}/status", response_model=EventResponse)
async def set_event_status(
    event_id: str,
    body: EventStatusUpdate,
    request: Request,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    try:
        async with db.get_session() as session:
            event = await svc.set_status(
                session, actor, event_id, body.status,
                ip_address=ip, user_agent=user_agent,
            )
            return EventResponse.model_validate(event)
    except RollcallError as e:
        raise _http_error(e)


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    request: Request,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    try:
        async with db.get_session() as session:
            await svc.soft_delete_event(
                session, actor, event_id, ip_address=ip, user_agent=user_agent,
            )
    except RollcallError as e:
        raise _http_error(e)
