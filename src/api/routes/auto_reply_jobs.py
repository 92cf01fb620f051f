"""API routes for enqueueing and processing auto-reply jobs.

The chat subsystem calls the enqueue route after storing an inbound
client message; processing then runs as a background task. The
/auto-reply/jobs routes are worker entry points for a scheduler and
require the cron bearer secret when one is configured.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from src.api.middleware.auth import require_cron_secret
from src.api.schemas import (
    DrainResponse,
    EnqueueResponse,
    JobStatusResponse,
    ProcessResponse,
)
from src.db.connection import get_db, get_db_context
from src.db.models import ReplyJobStatus
from src.services.auto_reply_config import DEFAULT_DRAIN_LIMIT
from src.services.auto_reply_service import AutoReplyService
from src.services.generation_backend import (
    AnthropicGenerationBackend,
    GenerationBackend,
)
from src.services.realtime_notifier import broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auto-reply"])
jobs_router = APIRouter(
    prefix="/auto-reply/jobs",
    tags=["auto-reply"],
    dependencies=[Depends(require_cron_secret)],
)


def get_generation_backend() -> GenerationBackend:
    """Dependency returning the generation backend."""
    return AnthropicGenerationBackend()


def _get_service(
    db: Session = Depends(get_db),
    backend: GenerationBackend = Depends(get_generation_backend),
) -> AutoReplyService:
    """Dependency injector for AutoReplyService."""
    return AutoReplyService(db, backend=backend, publisher=broadcaster)


def process_job_in_background(message_id: str, backend: GenerationBackend) -> None:
    """Process one reply job with its own session after the response is sent."""
    try:
        with get_db_context() as db:
            result = AutoReplyService(
                db, backend=backend, publisher=broadcaster
            ).process_job(message_id)
        logger.info(
            "Background reply job for message %s: %s%s",
            message_id, result.status,
            f" ({result.reason})" if result.reason else "",
        )
    except Exception:
        logger.exception("Background reply job for message %s crashed", message_id)


@router.post(
    "/conversations/{conversation_id}/messages/{message_id}/auto-reply",
    response_model=EnqueueResponse,
)
def enqueue_auto_reply(
    conversation_id: str,
    message_id: str,
    background_tasks: BackgroundTasks,
    service: AutoReplyService = Depends(_get_service),
    backend: GenerationBackend = Depends(get_generation_backend),
) -> EnqueueResponse:
    """Enqueue an automated reply for an inbound client message.

    When a job is created, processing is scheduled as a background task.
    A refusal (NO_AGENT, DISABLED, WITHIN_AVAILABILITY, DUPLICATE) is a
    normal 200 response with enqueued=false.
    """
    result = service.enqueue_for_message(conversation_id, message_id)
    if result.enqueued:
        background_tasks.add_task(process_job_in_background, message_id, backend)
    return EnqueueResponse(**result.to_dict())


@jobs_router.post("/{message_id}/process", response_model=ProcessResponse)
def process_reply_job(
    message_id: str,
    service: AutoReplyService = Depends(_get_service),
) -> ProcessResponse:
    """Run a single reply job synchronously."""
    return ProcessResponse(**service.process_job(message_id).to_dict())


@jobs_router.post("/run", response_model=DrainResponse)
def run_pending_jobs(
    limit: int = Query(DEFAULT_DRAIN_LIMIT),
    service: AutoReplyService = Depends(_get_service),
) -> DrainResponse:
    """Drain PENDING reply jobs, oldest first (limit clamped to 1-50)."""
    summary = service.process_pending(limit)
    return DrainResponse(**summary.to_dict())


@jobs_router.get("/status", response_model=JobStatusResponse)
def get_job_status(
    service: AutoReplyService = Depends(_get_service),
) -> JobStatusResponse:
    """Counts of PENDING and PROCESSING reply jobs."""
    counts = service.job_status_counts()
    return JobStatusResponse(
        pending=counts[ReplyJobStatus.PENDING.value],
        processing=counts[ReplyJobStatus.PROCESSING.value],
    )
