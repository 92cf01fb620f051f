"""Idempotent reply job ledger with compare-and-swap claiming.

One ReplyJob row exists per triggering client message (unique
message_id). Creation absorbs duplicate triggers; claiming is a single
conditional UPDATE whose affected row count decides ownership, so no
in-process lock or external lock manager is involved. Terminal states
are final.
"""

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.db.models import (
    TERMINAL_JOB_STATUSES,
    ReplyJob,
    ReplyJobStatus,
    utc_now_iso,
)
from src.services.auto_reply_config import MAX_ERROR_DETAIL_CHARS

logger = logging.getLogger(__name__)


class InvalidStateTransition(Exception):
    """Raised when a reply job transition is not allowed.

    Attributes:
        message_id: Triggering message of the job.
        attempted_state: The state that was attempted.
    """

    def __init__(self, message_id: str, attempted_state: ReplyJobStatus) -> None:
        self.message_id = message_id
        self.attempted_state = attempted_state
        super().__init__(
            f"Reply job for message '{message_id}' cannot move to "
            f"'{attempted_state.value}'. Only a PROCESSING job owned by the "
            f"caller can be finished."
        )


# Valid state transitions for the reply job lifecycle
VALID_TRANSITIONS: dict[ReplyJobStatus, list[ReplyJobStatus]] = {
    ReplyJobStatus.PENDING: [ReplyJobStatus.PROCESSING],
    ReplyJobStatus.PROCESSING: [
        ReplyJobStatus.SENT,
        ReplyJobStatus.SKIPPED,
        ReplyJobStatus.FAILED,
    ],
    ReplyJobStatus.SENT: [],  # terminal
    ReplyJobStatus.SKIPPED: [],  # terminal
    ReplyJobStatus.FAILED: [],  # terminal
}


def can_transition(current: ReplyJobStatus, target: ReplyJobStatus) -> bool:
    """Check if a reply job state transition is valid."""
    return target in VALID_TRANSITIONS.get(current, [])


def job_reason(job: ReplyJob) -> str | None:
    """Reason code recorded on a finished job.

    SKIPPED jobs carry it in skip_reason; FAILED jobs store
    '<REASON>' or '<REASON>: <detail>' in last_error.
    """
    if job.skip_reason:
        return job.skip_reason
    if job.last_error:
        return job.last_error.split(":", 1)[0].strip() or None
    return None


class ReplyJobLedger:
    """Persistence operations for reply jobs.

    Every mutating method commits immediately so that its effect is
    visible to concurrent workers using other sessions.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, message_id: str) -> ReplyJob | None:
        """Get the job for a triggering message, if any."""
        return (
            self.db.query(ReplyJob)
            .filter(ReplyJob.message_id == message_id)
            .first()
        )

    def enqueue(self, conversation_id: str, message_id: str) -> bool:
        """Create a PENDING job for a message.

        Args:
            conversation_id: Conversation the message belongs to.
            message_id: Triggering client message (dedup key).

        Returns:
            True if a job was created, False if one already existed.
        """
        job = ReplyJob(
            conversation_id=conversation_id,
            message_id=message_id,
            status=ReplyJobStatus.PENDING.value,
            attempts=0,
        )
        self.db.add(job)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Reply job for message %s already exists", message_id)
            return False
        logger.info(
            "Enqueued reply job for message %s (conversation %s)",
            message_id, conversation_id,
        )
        return True

    def claim(self, message_id: str) -> bool:
        """Atomically move a job from PENDING to PROCESSING.

        Exactly one concurrent caller observes True; the row count of the
        conditional update is the mutex.

        Args:
            message_id: Triggering message of the job.

        Returns:
            True if this caller now owns the job.
        """
        result = self.db.execute(
            update(ReplyJob)
            .where(
                ReplyJob.message_id == message_id,
                ReplyJob.status == ReplyJobStatus.PENDING.value,
            )
            .values(
                status=ReplyJobStatus.PROCESSING.value,
                attempts=ReplyJob.attempts + 1,
                updated_at=utc_now_iso(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        claimed = result.rowcount == 1
        if claimed:
            logger.info("Claimed reply job for message %s", message_id)
        else:
            logger.debug("Reply job for message %s not claimable", message_id)
        return claimed

    def finish(
        self,
        message_id: str,
        status: ReplyJobStatus,
        reason: str | None = None,
        detail: str | None = None,
    ) -> None:
        """Write the terminal state of a claimed job.

        Args:
            message_id: Triggering message of the job.
            status: SENT, SKIPPED or FAILED.
            reason: Skip or failure reason code.
            detail: Extra failure detail, appended to last_error.

        Raises:
            InvalidStateTransition: If status is not terminal or the job is
                not currently PROCESSING.
        """
        if not can_transition(ReplyJobStatus.PROCESSING, status):
            raise InvalidStateTransition(message_id, status)

        values: dict = {
            "status": status.value,
            "processed_at": utc_now_iso(),
            "updated_at": utc_now_iso(),
        }
        if status == ReplyJobStatus.SKIPPED:
            values["skip_reason"] = reason
        elif status == ReplyJobStatus.FAILED:
            error = reason or "ERROR"
            if detail:
                error = f"{error}: {detail}"
            values["last_error"] = error[:MAX_ERROR_DETAIL_CHARS]

        result = self.db.execute(
            update(ReplyJob)
            .where(
                ReplyJob.message_id == message_id,
                ReplyJob.status == ReplyJobStatus.PROCESSING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount != 1:
            raise InvalidStateTransition(message_id, status)
        logger.info(
            "Reply job for message %s finished: %s%s",
            message_id, status.value, f" ({reason})" if reason else "",
        )

    def list_pending(self, limit: int) -> list[ReplyJob]:
        """List PENDING jobs, oldest first."""
        return (
            self.db.query(ReplyJob)
            .filter(ReplyJob.status == ReplyJobStatus.PENDING.value)
            .order_by(ReplyJob.created_at.asc())
            .limit(limit)
            .all()
        )

    def count_by_status(self) -> dict[str, int]:
        """Number of jobs in each status (all statuses present, zero-filled)."""
        counts = {status.value: 0 for status in ReplyJobStatus}
        rows = (
            self.db.query(ReplyJob.status, func.count(ReplyJob.id))
            .group_by(ReplyJob.status)
            .all()
        )
        for status, count in rows:
            counts[status] = int(count)
        return counts


def is_terminal(job: ReplyJob) -> bool:
    return job.status in TERMINAL_JOB_STATUSES
