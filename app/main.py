# app/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv agree everywhere
from dotenv import load_dotenv
load_dotenv()

import secrets

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import BookingError, ErrorSeverity, StorageFailure, log_error
from app.core.logging import LoggingMiddleware, get_logger, setup_logging
from app.db.session import get_session
from app.services.locks import SlotLockRegistry

# Routers
from app.api.routes.appointments import router as appointments_router
from app.api.routes.availability import router as availability_router
from app.api.routes.review import router as review_router
from app.api.routes.schedule import router as schedule_router

# Set up structured logging
setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="Booking Engine", description="Availability and appointment booking service")

# One registry per process; the booking service serializes check-and-insert on it
app.state.slot_locks = SlotLockRegistry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS or settings.is_development,
        log_responses=settings.LOG_RESPONSES or settings.is_development,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)


# -------- Error mapping --------
@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
        log_error(exc, {"endpoint": request.url.path})
    else:
        logger.info("request_rejected", endpoint=request.url.path, error=exc.code, detail=exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    try:
        await db.execute(sa.text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StorageFailure("database not reachable", operation="readyz") from exc
    return {"db": "ok"}


# -------- Global security gate (single place) --------
PUBLIC_EXACT = {
    "/healthz",
    "/readyz",
    "/favicon.ico",
}


def _is_public(path: str) -> bool:
    return path in PUBLIC_EXACT


@app.middleware("http")
async def lock_all(request: Request, call_next):
    # Without a configured key the gate is open (local development, tests)
    if not settings.API_KEY or _is_public(request.url.path) or request.method == "OPTIONS":
        return await call_next(request)

    api_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(api_key, settings.API_KEY):
        log_error(Exception("API key validation failed"),
                  {"endpoint": request.url.path, "has_key": bool(api_key)},
                  ErrorSeverity.MEDIUM)
        return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)

    return await call_next(request)


# -------- Include routers --------
app.include_router(availability_router)
app.include_router(appointments_router)
app.include_router(review_router)
app.include_router(schedule_router)


@app.on_event("startup")
async def startup_event():
    logger.info("application_startup", env=settings.APP_ENV, default_timezone=settings.DEFAULT_TIMEZONE)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("application_shutdown")
