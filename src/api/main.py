"""FastAPI application for the offline auto-reply API.

Provides the main application instance with routers, middleware,
and exception handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.api.middleware.auth import maybe_require_api_key
from src.api.routes import (
    auto_reply_jobs,
    auto_reply_metrics,
    auto_reply_settings,
    conversation_events,
)
from src.db.connection import close_db, get_db_context, init_db
from src.db.models import ReplyJobStatus
from src.errors.domain import DomainError, NotFoundError, ValidationError
from src.services.auto_reply_config import get_api_key
from src.services.reply_job_ledger import ReplyJobLedger

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _warn_stuck_jobs() -> None:
    """Log reply jobs left in PROCESSING by a previous process.

    They are not recovered automatically.
    """
    with get_db_context() as db:
        counts = ReplyJobLedger(db).count_by_status()
    stuck = counts[ReplyJobStatus.PROCESSING.value]
    if stuck:
        logger.warning(
            "%d reply job(s) are in PROCESSING from a previous run; "
            "they will not be retried",
            stuck,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup and dispose of the engine on shutdown."""
    global _startup_time

    _startup_time = _time.time()
    init_db()

    if get_api_key() is None:
        logger.warning(
            "ANTHROPIC_API_KEY is not set; reply jobs will be skipped with "
            "GENERATION_BACKEND_UNAVAILABLE"
        )

    try:
        _warn_stuck_jobs()
    except SQLAlchemyError as e:
        logger.error("Stuck job check failed (non-blocking): %s", e)

    yield

    close_db()


app = FastAPI(
    title="Offline Auto-Reply API",
    description="Automated replies for client messages while the agent is offline",
    version="0.1.0",
    lifespan=lifespan,
)

# Optional API auth for /api/* when AUTO_REPLY_API_KEY is configured.
app.middleware("http")(maybe_require_api_key)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain exceptions that escape a route to HTTP responses."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ValidationError):
        status_code = 400
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Include routers
app.include_router(auto_reply_settings.router, prefix="/api/v1")
app.include_router(auto_reply_metrics.router, prefix="/api/v1")
app.include_router(auto_reply_jobs.router, prefix="/api/v1")
app.include_router(auto_reply_jobs.jobs_router, prefix="/api/v1")
app.include_router(conversation_events.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with system status.

    Returns:
        Dictionary with status, version, uptime, in-flight job counts and
        whether the generation backend has credentials.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0

    try:
        with get_db_context() as db:
            counts = ReplyJobLedger(db).count_by_status()
        jobs = {
            "pending": counts[ReplyJobStatus.PENDING.value],
            "processing": counts[ReplyJobStatus.PROCESSING.value],
        }
    except SQLAlchemyError as e:
        logger.warning("Health check could not read job counts: %s", e)
        jobs = None

    try:
        version = _pkg_version("offline-autoreply")
    except PackageNotFoundError:
        version = "unknown"

    return {
        "status": "healthy" if jobs is not None else "degraded",
        "version": version,
        "uptime_seconds": uptime,
        "jobs": jobs,
        "generation_backend_configured": get_api_key() is not None,
    }


@app.get("/api")
def api_root() -> dict:
    """API root listing the main endpoint groups."""
    return {
        "name": "Offline Auto-Reply API",
        "version": "0.1.0",
        "endpoints": {
            "settings": "/api/v1/agents/{agent_id}/auto-reply/settings",
            "metrics": "/api/v1/agents/{agent_id}/auto-reply/metrics",
            "enqueue": "/api/v1/conversations/{conversation_id}/messages/{message_id}/auto-reply",
            "jobs": "/api/v1/auto-reply/jobs",
        },
    }
