"""Append-only decision log for the offline auto-reply engine.

Every terminal decision of process_job (SENT, SKIPPED, FAILED) is
written here. The log is for observability and metrics only; nothing in
the engine reads it back to make a decision.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from src.db.models import (
    Conversation,
    ReplyDecision,
    ReplyDecisionLog,
    to_iso,
)

logger = logging.getLogger(__name__)

TOP_SKIP_REASONS = 8
RECENT_ENTRIES = 10
NO_REASON_LABEL = "(no reason)"


class DecisionLogService:
    """Writes and summarizes ReplyDecisionLog rows.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        *,
        conversation_id: str,
        message_id: str,
        decision: ReplyDecision,
        agent_id: str | None = None,
        reason: str | None = None,
        generated_message_id: str | None = None,
        model: str | None = None,
        prompt_version: str | None = None,
    ) -> ReplyDecisionLog:
        """Append one decision entry and commit it.

        Args:
            conversation_id: Conversation the decision applies to.
            message_id: Triggering client message.
            decision: SENT, SKIPPED or FAILED.
            agent_id: Assigned agent, when known.
            reason: Skip or failure reason code.
            generated_message_id: Automated message id for SENT.
            model: Generation model, when generation ran.
            prompt_version: Prompt template version, when generation ran.

        Returns:
            The persisted ReplyDecisionLog row.
        """
        entry = ReplyDecisionLog(
            conversation_id=conversation_id,
            agent_id=agent_id,
            message_id=message_id,
            generated_message_id=generated_message_id,
            decision=decision.value,
            reason=reason,
            model=model,
            prompt_version=prompt_version,
        )
        self.db.add(entry)
        self.db.commit()
        logger.info(
            "Auto-reply decision for message %s: %s%s",
            message_id, decision.value, f" ({reason})" if reason else "",
        )
        return entry

    def list_for_message(self, message_id: str) -> list[ReplyDecisionLog]:
        """All decision entries for a triggering message, oldest first."""
        return (
            self.db.query(ReplyDecisionLog)
            .filter(ReplyDecisionLog.message_id == message_id)
            .order_by(ReplyDecisionLog.created_at.asc())
            .all()
        )

    def summarize(self, agent_id: str, since: datetime) -> dict[str, Any]:
        """Aggregate an agent's decisions created at or after since.

        Args:
            agent_id: Agent to summarize.
            since: Start of the window (inclusive).

        Returns:
            Dict with 'counts' per decision, 'skipped_by_reason' (top 8,
            most frequent first) and 'recent' (10 newest entries).
        """
        since_iso = to_iso(since)
        window = (
            ReplyDecisionLog.agent_id == agent_id,
            ReplyDecisionLog.created_at >= since_iso,
        )

        counts = {decision.value.lower(): 0 for decision in ReplyDecision}
        rows = (
            self.db.query(ReplyDecisionLog.decision, func.count(ReplyDecisionLog.id))
            .filter(*window)
            .group_by(ReplyDecisionLog.decision)
            .all()
        )
        for decision, count in rows:
            counts[str(decision).lower()] = int(count)

        reason_count = func.count(ReplyDecisionLog.id).label("count")
        reason_rows = (
            self.db.query(ReplyDecisionLog.reason, reason_count)
            .filter(*window, ReplyDecisionLog.decision == ReplyDecision.SKIPPED.value)
            .group_by(ReplyDecisionLog.reason)
            .order_by(desc(reason_count), ReplyDecisionLog.reason.asc())
            .limit(TOP_SKIP_REASONS)
            .all()
        )
        skipped_by_reason = [
            {"reason": reason or NO_REASON_LABEL, "count": int(count)}
            for reason, count in reason_rows
        ]

        recent_rows = (
            self.db.query(ReplyDecisionLog, Conversation)
            .outerjoin(Conversation, Conversation.id == ReplyDecisionLog.conversation_id)
            .filter(*window)
            .order_by(desc(ReplyDecisionLog.created_at))
            .limit(RECENT_ENTRIES)
            .all()
        )
        recent = [
            self._entry_to_dict(entry, conversation)
            for entry, conversation in recent_rows
        ]

        return {
            "counts": counts,
            "skipped_by_reason": skipped_by_reason,
            "recent": recent,
        }

    @staticmethod
    def _entry_to_dict(
        entry: ReplyDecisionLog, conversation: Conversation | None
    ) -> dict[str, Any]:
        return {
            "id": entry.id,
            "conversation_id": entry.conversation_id,
            "message_id": entry.message_id,
            "decision": entry.decision,
            "reason": entry.reason,
            "created_at": entry.created_at,
            "subject_title": conversation.subject_title if conversation else None,
            "contact_name": conversation.contact_name if conversation else None,
        }
