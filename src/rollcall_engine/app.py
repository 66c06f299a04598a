"""FastAPI application factory for Rollcall-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from rollcall_engine.common.config import get_settings
from rollcall_engine.common.logging import get_logger, setup_logging
from rollcall_engine.common.schemas import ErrorResponse, HealthResponse

logger = get_logger("app")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from rollcall_engine.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        logger.info("Rollcall-Engine started (%s)", settings.environment)
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        body = ErrorResponse(
            error="Service temporarily unavailable",
            code="STORAGE_UNAVAILABLE",
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from rollcall_engine.auth.router import router as auth_router
    from rollcall_engine.events.router import router as events_router
    from rollcall_engine.attendance.router import router as attendance_router
    from rollcall_engine.audit.router import router as audit_router

    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=prefix, tags=["auth"])
    app.include_router(events_router, prefix=prefix, tags=["events"])
    app.include_router(attendance_router, prefix=prefix, tags=["attendance"])
    app.include_router(audit_router, prefix=prefix, tags=["audit"])

    return app
