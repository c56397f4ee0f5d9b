import asyncio
import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, status
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import text
from app.config import settings
from app.routers.users import router as users_router
from app.routers.exercises import router as exercises_router
from app.routers.sessions import router as sessions_router
from app.routers.weights import router as weights_router
from app.routers.goals import router as goals_router
from app.routers.summaries import router as summaries_router
from app.core import exceptions
import uuid
from app.database import AsyncSessionLocal
from app.services.summary_automation_service import SummaryAutomationService

from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)
SUMMARY_SCHEDULER_LOCK_KEY = 731904417
summary_scheduler_task: asyncio.Task | None = None

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# CORS must be added before other middleware
configured_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
allow_origins = configured_origins if settings.APP_ENV == "production" else list(dict.fromkeys([*default_origins, *configured_origins]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

# Exception Handlers
app.add_exception_handler(exceptions.TrackerError, exceptions.tracker_exception_handler)  # type: ignore
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)  # type: ignore
app.add_exception_handler(IntegrityError, exceptions.integrity_exception_handler)  # type: ignore
app.add_exception_handler(SQLAlchemyError, exceptions.database_exception_handler)  # type: ignore

# Routers
app.include_router(users_router, prefix=f"{settings.API_V1_STR}/users", tags=["Users"])
app.include_router(exercises_router, prefix=f"{settings.API_V1_STR}/exercises", tags=["Exercises"])
app.include_router(sessions_router, prefix=settings.API_V1_STR, tags=["Sessions"])
app.include_router(weights_router, prefix=settings.API_V1_STR, tags=["Weight"])
app.include_router(goals_router, prefix=settings.API_V1_STR, tags=["Goals"])
app.include_router(summaries_router, prefix=settings.API_V1_STR, tags=["Summaries"])

@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database unavailable",
        ) from exc
    return {"status": "ok", "database": "ok"}

@app.get("/")
async def root():
    return {"message": "Welcome to the Gym Tracker API", "docs": "/docs"}


def _summary_scheduler_tz() -> ZoneInfo:
    tz_name = settings.SUMMARY_AUTO_TZ or settings.TRACKER_TIMEZONE
    try:
        return ZoneInfo(tz_name)
    except Exception:
        logger.warning("Invalid summary scheduler timezone '%s'; falling back to UTC", tz_name)
        return ZoneInfo("UTC")


def _seconds_until_next_run(now_utc: datetime) -> float:
    tz = _summary_scheduler_tz()
    now_local = now_utc.astimezone(tz)
    target_local = now_local.replace(
        hour=settings.SUMMARY_AUTO_HOUR_LOCAL,
        minute=settings.SUMMARY_AUTO_MINUTE_LOCAL,
        second=0,
        microsecond=0,
    )
    if now_local >= target_local:
        target_local += timedelta(days=1)
    return max((target_local.astimezone(timezone.utc) - now_utc).total_seconds(), 1.0)


async def _run_summary_scheduler_once() -> None:
    async with AsyncSessionLocal() as db:
        use_lock = db.get_bind().dialect.name == "postgresql"
        if use_lock:
            locked = bool((await db.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": SUMMARY_SCHEDULER_LOCK_KEY})).scalar())
            if not locked:
                logger.info("Summary scheduler lock busy; skipping this cycle")
                return
        try:
            summary = await SummaryAutomationService.run(AsyncSessionLocal, reason="scheduled_daily")
            logger.info(
                "Summary scheduler run complete: week=%s users=%s created=%s updated=%s skipped_empty=%s errors=%s",
                summary["week_start"],
                summary["users_scanned"],
                summary["created"],
                summary["updated"],
                summary["skipped_empty"],
                len(summary["errors"]),
            )
        finally:
            if use_lock:
                await db.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": SUMMARY_SCHEDULER_LOCK_KEY})
                await db.commit()



async def _summary_scheduler_loop() -> None:
    while True:
        delay = _seconds_until_next_run(datetime.now(timezone.utc))
        await asyncio.sleep(delay)
        try:
            await _run_summary_scheduler_once()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Summary scheduler iteration failed")


@app.on_event("startup")
async def startup_summary_scheduler() -> None:
    global summary_scheduler_task
    if not settings.SUMMARY_AUTO_ENABLED:
        logger.info("Weekly summary scheduler disabled by config")
        return
    if summary_scheduler_task and not summary_scheduler_task.done():
        return
    summary_scheduler_task = asyncio.create_task(_summary_scheduler_loop())
    logger.info(
        "Weekly summary scheduler started (hour=%s minute=%s tz=%s)",
        settings.SUMMARY_AUTO_HOUR_LOCAL,
        settings.SUMMARY_AUTO_MINUTE_LOCAL,
        settings.SUMMARY_AUTO_TZ or settings.TRACKER_TIMEZONE,
    )


@app.on_event("shutdown")
async def shutdown_summary_scheduler() -> None:
    global summary_scheduler_task
    if summary_scheduler_task and not summary_scheduler_task.done():
        summary_scheduler_task.cancel()
        try:
            await summary_scheduler_task
        except asyncio.CancelledError:
            pass
        logger.info("Weekly summary scheduler stopped")
    summary_scheduler_task = None
