"""Read/append access to conversations and chat messages.

Thin layer over the conversations and chat_messages tables. The message
list is append-only: this service never updates or deletes a message.
All timestamps are compared as fixed-width UTC ISO8601 strings.
"""

import json
import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from src.db.models import (
    ChatMessage,
    Conversation,
    MessageSource,
    generate_uuid,
    to_iso,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """Queries the eligibility gate and reply generator need.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._db.get(Conversation, conversation_id)

    def get_message(self, message_id: str) -> ChatMessage | None:
        return self._db.get(ChatMessage, message_id)

    def latest_message(
        self, conversation_id: str, include_human_replies: bool = True
    ) -> ChatMessage | None:
        """Most recent message in the conversation.

        Args:
            conversation_id: Conversation to look in.
            include_human_replies: When False, agent-side messages written
                by a human are ignored (client and automated messages only).
        """
        query = self._db.query(ChatMessage).filter(
            ChatMessage.conversation_id == conversation_id
        )
        if not include_human_replies:
            query = query.filter(
                or_(
                    ChatMessage.from_client.is_(True),
                    ChatMessage.source != MessageSource.HUMAN.value,
                )
            )
        return query.order_by(
            ChatMessage.created_at.desc(), ChatMessage.id.desc()
        ).first()

    def human_reply_after(
        self, conversation_id: str, created_at: str
    ) -> ChatMessage | None:
        """First human agent message strictly newer than created_at."""
        return (
            self._db.query(ChatMessage)
            .filter(
                ChatMessage.conversation_id == conversation_id,
                ChatMessage.from_client.is_(False),
                ChatMessage.source == MessageSource.HUMAN.value,
                ChatMessage.created_at > created_at,
            )
            .order_by(ChatMessage.created_at.asc())
            .first()
        )

    def latest_automated_reply(self, conversation_id: str) -> ChatMessage | None:
        return (
            self._db.query(ChatMessage)
            .filter(
                ChatMessage.conversation_id == conversation_id,
                ChatMessage.from_client.is_(False),
                ChatMessage.source == MessageSource.AUTOMATED.value,
            )
            .order_by(ChatMessage.created_at.desc())
            .first()
        )

    def count_automated_since(self, conversation_id: str, since: datetime) -> int:
        """Count automated replies created at or after since."""
        count = (
            self._db.query(func.count(ChatMessage.id))
            .filter(
                ChatMessage.conversation_id == conversation_id,
                ChatMessage.from_client.is_(False),
                ChatMessage.source == MessageSource.AUTOMATED.value,
                ChatMessage.created_at >= to_iso(since),
            )
            .scalar()
        )
        return int(count or 0)

    def recent_messages(self, conversation_id: str, limit: int) -> list[ChatMessage]:
        """Last `limit` messages, returned oldest first."""
        rows = (
            self._db.query(ChatMessage)
            .filter(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
            .all()
        )
        rows.reverse()
        return rows

    def append_message(
        self,
        conversation_id: str,
        content: str,
        *,
        from_client: bool,
        source: MessageSource,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        """Append a message and commit it.

        Args:
            conversation_id: Parent conversation.
            content: Message text.
            from_client: True for customer messages.
            source: HUMAN or AUTOMATED.
            created_at: Explicit timestamp; defaults to now.

        Returns:
            The persisted ChatMessage.
        """
        msg = ChatMessage(
            id=generate_uuid(),
            conversation_id=conversation_id,
            from_client=from_client,
            source=source.value,
            content=content,
        )
        if created_at is not None:
            msg.created_at = to_iso(created_at)
        self._db.add(msg)
        self._db.commit()
        return msg

    def append_automated_message(
        self,
        conversation_id: str,
        content: str,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        """Persist an automated agent-side reply."""
        msg = self.append_message(
            conversation_id,
            content,
            from_client=False,
            source=MessageSource.AUTOMATED,
            created_at=created_at,
        )
        logger.info(
            "Stored automated reply %s in conversation %s", msg.id, conversation_id
        )
        return msg


def subject_facts(conversation: Conversation) -> dict[str, Any]:
    """Decode the conversation's structured subject facts.

    Returns an empty dict when the column is empty or not a JSON object.
    """
    if not conversation.subject_facts:
        return {}
    try:
        facts = json.loads(conversation.subject_facts)
    except (TypeError, ValueError):
        logger.warning(
            "Ignoring unreadable subject_facts on conversation %s", conversation.id
        )
        return {}
    return facts if isinstance(facts, dict) else {}
