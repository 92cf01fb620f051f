"""Offline auto-reply orchestration.

Ties the job ledger, eligibility gate, reply generator, decision log and
realtime notifier together:

    enqueue_for_message()  pre-check, then create a PENDING job
    process_job()          claim, gate, generate, persist, log, notify
    process_pending()      drain PENDING jobs oldest first

Skips and generation failures are returned as ProcessResult values and
recorded on the job and in the decision log. Only infrastructure faults
(database errors) propagate; a job whose claimant hit one stays in
PROCESSING.

Example:
    with get_db_context() as db:
        service = AutoReplyService(db)
        if service.enqueue_for_message(conversation_id, message_id).enqueued:
            result = service.process_job(message_id)
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.models import ReplyDecision, ReplyJob, ReplyJobStatus
from src.services.auto_reply_config import DEFAULT_DRAIN_LIMIT, DRAIN_LIMIT_BOUNDS
from src.services.auto_reply_types import (
    DrainSummary,
    EnqueueResult,
    NoopReason,
    ProcessResult,
    SkipReason,
)
from src.services.conversation_store import ConversationStore
from src.services.eligibility_gate import EligibilityGate
from src.services.generation_backend import (
    AnthropicGenerationBackend,
    GenerationBackend,
)
from src.services.realtime_notifier import (
    NEW_CHAT_MESSAGE_EVENT,
    NotificationPublisher,
    conversation_channel,
    message_payload,
    publish_best_effort,
)
from src.services.reply_decision_log import DecisionLogService
from src.services.reply_generator import ReplyGenerator
from src.services.reply_job_ledger import ReplyJobLedger, is_terminal, job_reason

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def clamp_drain_limit(limit: int | None) -> int:
    """Clamp a drain batch size into DRAIN_LIMIT_BOUNDS."""
    low, high = DRAIN_LIMIT_BOUNDS
    if limit is None:
        return DEFAULT_DRAIN_LIMIT
    return max(low, min(high, int(limit)))


class AutoReplyService:
    """Entry point for offline auto-replies.

    Args:
        db: SQLAlchemy session. Each mutating step commits on its own so
            concurrent workers with separate sessions observe it.
        backend: Generation backend; defaults to the Anthropic backend.
        publisher: Realtime publisher; None disables notifications.
        now_fn: Clock returning an aware UTC datetime.
    """

    def __init__(
        self,
        db: Session,
        backend: GenerationBackend | None = None,
        publisher: NotificationPublisher | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self._backend = backend or AnthropicGenerationBackend()
        self._publisher = publisher
        self._now = now_fn or _utc_now
        self._ledger = ReplyJobLedger(db)
        self._gate = EligibilityGate(db, self._backend.is_configured)
        self._generator = ReplyGenerator(db, self._backend)
        self._decisions = DecisionLogService(db)
        self._store = ConversationStore(db)

    def enqueue_for_message(
        self, conversation_id: str, message_id: str
    ) -> EnqueueResult:
        """Create a reply job for an inbound client message.

        Runs the cheap pre-check first (agent assigned, auto-reply enabled,
        agent currently unavailable) so obviously ineligible messages never
        create a job.

        Args:
            conversation_id: Conversation the message belongs to.
            message_id: The inbound client message.

        Returns:
            EnqueueResult; reason is NO_AGENT, DISABLED, WITHIN_AVAILABILITY
            or DUPLICATE when no job was created.
        """
        try:
            verdict = self._gate.precheck(conversation_id, self._now())
            if not verdict.passed:
                logger.debug(
                    "Not enqueuing message %s: %s", message_id, verdict.reason.value
                )
                return EnqueueResult(enqueued=False, reason=verdict.reason)

            if not self._ledger.enqueue(conversation_id, message_id):
                return EnqueueResult(enqueued=False, reason=SkipReason.DUPLICATE)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error enqueuing reply for message %s", message_id)
            raise

        return EnqueueResult(enqueued=True)

    def process_job(self, message_id: str) -> ProcessResult:
        """Run one reply job to completion if this caller can claim it.

        Safe to call concurrently and repeatedly for the same message:
        only the caller that wins the claim evaluates, generates and
        writes the terminal state. Other callers get ALREADY_CLAIMED,
        JOB_NOT_FOUND, or the job's recorded terminal status.

        Args:
            message_id: Triggering client message of the job.

        Returns:
            ProcessResult with status SENT, SKIPPED or FAILED.
        """
        try:
            return self._process_job(message_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Database error processing reply job for message %s", message_id)
            raise

    def _process_job(self, message_id: str) -> ProcessResult:
        job = self._ledger.get(message_id)
        if job is None:
            return ProcessResult(
                status=ReplyJobStatus.SKIPPED.value,
                reason=NoopReason.JOB_NOT_FOUND.value,
            )
        if is_terminal(job):
            return ProcessResult(status=job.status, reason=job_reason(job))

        if not self._ledger.claim(message_id):
            return self._non_claimant_result(message_id)

        conversation_id = job.conversation_id
        verdict = self._gate.evaluate(conversation_id, message_id, self._now())
        if not verdict.passed:
            reason = verdict.reason.value
            self._ledger.finish(message_id, ReplyJobStatus.SKIPPED, reason)
            self._decisions.record(
                conversation_id=conversation_id,
                message_id=message_id,
                agent_id=verdict.agent_id,
                decision=ReplyDecision.SKIPPED,
                reason=reason,
            )
            return ProcessResult(
                status=ReplyJobStatus.SKIPPED.value, reason=reason, claimed=True
            )

        outcome = self._generator.generate(conversation_id)
        if not outcome.ok:
            reason = outcome.failure.value
            self._ledger.finish(
                message_id, ReplyJobStatus.FAILED, reason, detail=outcome.detail
            )
            self._decisions.record(
                conversation_id=conversation_id,
                message_id=message_id,
                agent_id=verdict.agent_id,
                decision=ReplyDecision.FAILED,
                reason=reason,
                model=outcome.model,
                prompt_version=outcome.prompt_version,
            )
            return ProcessResult(
                status=ReplyJobStatus.FAILED.value, reason=reason, claimed=True
            )

        reply = self._store.append_automated_message(
            conversation_id, outcome.text, created_at=self._now()
        )
        self._ledger.finish(message_id, ReplyJobStatus.SENT)
        self._decisions.record(
            conversation_id=conversation_id,
            message_id=message_id,
            agent_id=verdict.agent_id,
            decision=ReplyDecision.SENT,
            generated_message_id=reply.id,
            model=outcome.model,
            prompt_version=outcome.prompt_version,
        )
        publish_best_effort(
            self._publisher,
            conversation_channel(conversation_id),
            NEW_CHAT_MESSAGE_EVENT,
            message_payload(reply),
        )
        return ProcessResult(
            status=ReplyJobStatus.SENT.value,
            claimed=True,
            generated_message_id=reply.id,
        )

    def _non_claimant_result(self, message_id: str) -> ProcessResult:
        """Outcome for a caller that lost the claim race."""
        self.db.expire_all()
        job = self._ledger.get(message_id)
        if job is not None and is_terminal(job):
            return ProcessResult(status=job.status, reason=job_reason(job))
        return ProcessResult(
            status=ReplyJobStatus.SKIPPED.value,
            reason=NoopReason.ALREADY_CLAIMED.value,
        )

    def process_pending(self, limit: int | None = DEFAULT_DRAIN_LIMIT) -> DrainSummary:
        """Drain up to limit PENDING jobs, oldest first.

        Args:
            limit: Batch size, clamped to 1-50.

        Returns:
            DrainSummary with processed/sent/skipped/failed counters.
        """
        batch_size = clamp_drain_limit(limit)
        jobs: list[ReplyJob] = self._ledger.list_pending(batch_size)
        message_ids = [job.message_id for job in jobs]

        summary = DrainSummary()
        for message_id in message_ids:
            result = self.process_job(message_id)
            summary.processed += 1
            summary.results.append(result)
            if result.status == ReplyJobStatus.SENT.value:
                summary.sent += 1
            elif result.status == ReplyJobStatus.FAILED.value:
                summary.failed += 1
            else:
                summary.skipped += 1

        logger.info(
            "Reply job drain: processed=%d sent=%d skipped=%d failed=%d",
            summary.processed, summary.sent, summary.skipped, summary.failed,
        )
        return summary

    def job_status_counts(self) -> dict[str, int]:
        """Number of reply jobs in each status."""
        return self._ledger.count_by_status()
