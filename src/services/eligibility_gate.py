"""Ordered eligibility checks run before any reply is generated.

The gate is a guard-clause chain: checks run in a fixed order and the
first failing check decides the skip reason. Every check is a read, so
the gate can be re-run safely for a retried job. It must be evaluated
after the job claim succeeds so the latest-message and human-reply
checks see messages that arrived while the job was queued.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from src.db.models import from_iso
from src.services.auto_reply_config import RATE_LIMIT_WINDOW_HOURS
from src.services.auto_reply_types import GateVerdict, SkipReason
from src.services.conversation_store import ConversationStore
from src.services.reply_settings_service import ReplySettingsService
from src.services.schedule_resolver import is_unavailable

logger = logging.getLogger(__name__)


class EligibilityGate:
    """Decides whether an automated reply may be generated for a message.

    Args:
        db: SQLAlchemy session used for read-only queries.
        backend_available: Returns True when the generation backend has
            the credentials it needs.
    """

    def __init__(self, db: Session, backend_available: Callable[[], bool]) -> None:
        self._messages = ConversationStore(db)
        self._settings = ReplySettingsService(db)
        self._backend_available = backend_available

    def evaluate(
        self, conversation_id: str, message_id: str, now: datetime
    ) -> GateVerdict:
        """Run all checks in order for a triggering client message.

        Args:
            conversation_id: Conversation the job was enqueued for.
            message_id: Triggering client message.
            now: Evaluation instant (UTC).

        Returns:
            GateVerdict with passed=True, or the first failing reason.
        """
        conversation = self._messages.get_conversation(conversation_id)
        agent_id = conversation.agent_id if conversation else None
        if not agent_id:
            return GateVerdict(passed=False, reason=SkipReason.NO_AGENT)

        settings = self._settings.get_settings(agent_id)

        def skip(reason: SkipReason) -> GateVerdict:
            logger.debug(
                "Gate skip for message %s: %s", message_id, reason.value
            )
            return GateVerdict(
                passed=False, reason=reason, agent_id=agent_id, settings=settings
            )

        if not settings.enabled:
            return skip(SkipReason.DISABLED)

        if not is_unavailable(now, settings.timezone, settings.week_schedule):
            return skip(SkipReason.WITHIN_AVAILABILITY)

        message = self._messages.get_message(message_id)
        if (
            message is None
            or not message.from_client
            or message.conversation_id != conversation_id
        ):
            return skip(SkipReason.NOT_A_CLIENT_MESSAGE)

        # Newer human replies are reported by the next check.
        latest = self._messages.latest_message(
            conversation_id, include_human_replies=False
        )
        if latest is None or latest.id != message_id:
            return skip(SkipReason.NOT_LATEST_MESSAGE)

        if self._messages.human_reply_after(conversation_id, message.created_at):
            return skip(SkipReason.HUMAN_ALREADY_REPLIED)

        last_automated = self._messages.latest_automated_reply(conversation_id)
        if last_automated is not None:
            elapsed = now - from_iso(last_automated.created_at)
            if elapsed < timedelta(minutes=settings.cooldown_minutes):
                return skip(SkipReason.COOLDOWN)

        since = now - timedelta(hours=RATE_LIMIT_WINDOW_HOURS)
        sent_recently = self._messages.count_automated_since(conversation_id, since)
        if sent_recently >= settings.max_replies_per_conversation_per_24h:
            return skip(SkipReason.RATE_LIMIT)

        if not self._backend_available():
            return skip(SkipReason.GENERATION_BACKEND_UNAVAILABLE)

        return GateVerdict(passed=True, agent_id=agent_id, settings=settings)

    def precheck(self, conversation_id: str, now: datetime) -> GateVerdict:
        """Cheap enqueue-time subset of the gate (checks 1-3).

        Filters out messages that will obviously be skipped before a job
        row is created for them.
        """
        conversation = self._messages.get_conversation(conversation_id)
        agent_id = conversation.agent_id if conversation else None
        if not agent_id:
            return GateVerdict(passed=False, reason=SkipReason.NO_AGENT)

        settings = self._settings.get_settings(agent_id)
        if not settings.enabled:
            return GateVerdict(
                passed=False, reason=SkipReason.DISABLED,
                agent_id=agent_id, settings=settings,
            )
        if not is_unavailable(now, settings.timezone, settings.week_schedule):
            return GateVerdict(
                passed=False, reason=SkipReason.WITHIN_AVAILABILITY,
                agent_id=agent_id, settings=settings,
            )
        return GateVerdict(passed=True, agent_id=agent_id, settings=settings)
