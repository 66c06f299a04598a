"""Attendance API router."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from rollcall_engine.common.exceptions import RollcallError, http_status_for
from rollcall_engine.common.security import AuthenticatedActor, client_info, require_actor
from rollcall_engine.attendance.results import AttendanceResult
from rollcall_engine.attendance.schemas import (
    AppealRequest,
    AttendanceListResponse,
    AttendanceOutcome,
    AttendanceResponse,
    AttendanceSubmit,
    CheckOutRequest,
    ExistingAttendanceResponse,
    QRValidateRequest,
    VerifyRequest,
)

router = APIRouter()


def _get_service():
    from rollcall_engine.deps import get_attendance_service
    return get_attendance_service()


def _get_db():
    from rollcall_engine.deps import get_db
    return get_db()


def _http_error(e: RollcallError) -> HTTPException:
    return HTTPException(
        status_code=http_status_for(e.code),
        detail={"code": e.code, "message": e.message, "details": e.details},
    )


def _outcome(result: AttendanceResult, response: Response, created: bool = False) -> AttendanceOutcome:
    if not result.ok:
        response.status_code = http_status_for(result.code)
    elif created:
        response.status_code = 201
    return AttendanceOutcome(
        success=result.ok,
        code=result.code,
        message=result.message,
        attendance=AttendanceResponse.model_validate(result.record) if result.record else None,
        details=result.details,
    )


@router.post("/attendance/qr/validate", response_model=AttendanceOutcome)
async def validate_qr(
    body: QRValidateRequest,
    response: Response,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.validate_qr(session, actor, body.qr_payload)
        return _outcome(result, response)


@router.post("/attendance", response_model=AttendanceOutcome)
async def submit_attendance(
    body: AttendanceSubmit,
    request: Request,
    response: Response,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    async with db.get_session() as session:
        result = await svc.submit(
            session, actor,
            event_id=body.event_id,
            latitude=body.latitude,
            longitude=body.longitude,
            front_photo_ref=body.front_photo_ref,
            back_photo_ref=body.back_photo_ref,
            signature_ref=body.signature_ref,
            qr_payload=body.qr_payload,
            ip_address=ip,
            user_agent=user_agent,
        )
        return _outcome(result, response, created=True)


@router.get("/attendance/mine", response_model=AttendanceListResponse)
async def list_my_attendance(
    status: str | None = Query(None, pattern=r"^(Pending|Approved|Rejected|Disputed)$"),
    search: str | None = Query(None, max_length=255),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        records, total, counts = await svc.list_mine(
            session, actor, status=status, search=search, limit=limit, offset=offset,
        )
        return AttendanceListResponse(
            items=[AttendanceResponse.model_validate(r) for r in records],
            total=total, limit=limit, offset=offset, counts=counts,
        )


@router.get("/attendance/check", response_model=ExistingAttendanceResponse)
async def check_existing(
    event_id: str = Query(..., min_length=1),
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        record = await svc.find_existing(session, event_id, actor.id)
        return ExistingAttendanceResponse(
            has_checked_in=record is not None,
            attendance=AttendanceResponse.model_validate(record) if record else None,
        )


@router.get("/attendance", response_model=AttendanceListResponse)
async def list_for_review(
    event_id: str | None = Query(None),
    status: str | None = Query(None, pattern=r"^(Pending|Approved|Rejected|Disputed)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            records, total = await svc.list_for_review(
                session, actor, event_id=event_id, status=status, limit=limit, offset=offset,
            )
            return AttendanceListResponse(
                items=[AttendanceResponse.model_validate(r) for r in records],
                total=total, limit=limit, offset=offset,
            )
    except RollcallError as e:
        raise _http_error(e)


@router.get("/attendance/{attendance_id}", response_model=AttendanceResponse)
async def get_attendance(attendance_id: str, actor: AuthenticatedActor = Depends(require_actor)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            record = await svc.get_attendance(session, actor, attendance_id)
            return AttendanceResponse.model_validate(record)
    except RollcallError as e:
        raise _http_error(e)


@router.post("/attendance/{attendance_id}/check-out", response_model=AttendanceOutcome)
async def check_out(
    attendance_id: str,
    body: CheckOutRequest,
    request: Request,
    response: Response,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    async with db.get_session() as session:
        result = await svc.check_out(
            session, actor, attendance_id,
            latitude=body.latitude,
            longitude=body.longitude,
            front_photo_ref=body.front_photo_ref,
            back_photo_ref=body.back_photo_ref,
            signature_ref=body.signature_ref,
            ip_address=ip,
            user_agent=user_agent,
        )
        return _outcome(result, response)


@router.post("/attendance/{attendance_id}/verify", response_model=AttendanceOutcome)
async def verify_attendance(
    attendance_id: str,
    body: VerifyRequest,
    request: Request,
    response: Response,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    async with db.get_session() as session:
        result = await svc.verify(
            session, actor, attendance_id,
            decision=body.verification_status,
            dispute_note=body.dispute_note,
            ip_address=ip,
            user_agent=user_agent,
        )
        return _outcome(result, response)


@router.post("/attendance/{attendance_id}/appeal", response_model=AttendanceOutcome)
async def appeal_attendance(
    attendance_id: str,
    body: AppealRequest,
    request: Request,
    response: Response,
    actor: AuthenticatedActor = Depends(require_actor),
):
    svc = _get_service()
    db = _get_db()
    ip, user_agent = client_info(request)
    async with db.get_session() as session:
        result = await svc.appeal(
            session, actor, attendance_id,
            appeal_message=body.appeal_message,
            ip_address=ip,
            user_agent=user_agent,
        )
        return _outcome(result, response)
