"""SQLAlchemy ORM models for the offline auto-reply state database.

This module defines the data models for per-agent auto-reply settings,
the conversation/message mirror read by the eligibility gate, the reply
job ledger, and the append-only decision log. Uses SQLAlchemy 2.0 style
with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def to_iso(value: datetime) -> str:
    """Format a datetime as a fixed-width UTC ISO8601 string.

    Microseconds are always emitted so that string comparison in SQL
    matches chronological order. Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse a stored ISO8601 timestamp back into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return to_iso(datetime.now(UTC))


# Enums matching the database schema constraints


class ReplyJobStatus(str, Enum):
    """Status values for reply jobs.

    Lifecycle: PENDING -> PROCESSING -> SENT/SKIPPED/FAILED
    Terminal states never transition again.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({
    ReplyJobStatus.SENT.value,
    ReplyJobStatus.SKIPPED.value,
    ReplyJobStatus.FAILED.value,
})


class ReplyDecision(str, Enum):
    """Decision values recorded in the decision log."""

    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class MessageSource(str, Enum):
    """Who or what authored a chat message."""

    HUMAN = "HUMAN"
    AUTOMATED = "AUTOMATED"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class AgentReplySettings(Base):
    """Per-agent offline auto-reply configuration.

    One row per agent, created lazily with defaults on first read. Rows
    are never deleted; an agent opts out by setting enabled=False.

    Attributes:
        id: UUID primary key
        agent_id: Identifier of the human agent (unique)
        enabled: Whether automated replies may be sent for this agent
        timezone: IANA timezone name the weekly schedule is expressed in
        week_schedule: JSON object keyed mon..sun with enabled/start/end
        cooldown_minutes: Minimum spacing between automated replies (1-60)
        max_replies_per_conversation_per_24h: Rolling 24h ceiling (1-30)
        created_at: ISO8601 timestamp of row creation
        updated_at: ISO8601 timestamp of last update
    """

    __tablename__ = "agent_reply_settings"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    agent_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    week_schedule: Mapped[str] = mapped_column(Text, nullable=False)
    cooldown_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    max_replies_per_conversation_per_24h: Mapped[int] = mapped_column(
        Integer, nullable=False, default=6
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    __table_args__ = (
        UniqueConstraint("agent_id", name="uq_agent_reply_settings_agent"),
    )

    def __repr__(self) -> str:
        return (
            f"<AgentReplySettings(agent_id={self.agent_id!r}, "
            f"enabled={self.enabled!r})>"
        )


class Conversation(Base):
    """Support conversation between a client and an assigned agent.

    Owned by the chat subsystem; this core only reads it. The subject
    columns carry the facts the reply generator may quote.

    Attributes:
        id: UUID primary key
        agent_id: Assigned agent, or None when unassigned
        contact_name: Display name of the client
        subject_title: Title of what the conversation is about
        subject_facts: JSON object of structured facts about the subject
        created_at: ISO8601 timestamp of conversation creation
    """

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject_facts: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )

    __table_args__ = (Index("idx_conversations_agent", "agent_id"),)

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id!r}, agent_id={self.agent_id!r})>"


class ChatMessage(Base):
    """Single message in a conversation.

    The list of messages is append-only. from_client distinguishes the
    customer from the agent side; source tells whether the agent side
    was a human or this automated responder.

    Attributes:
        id: UUID primary key
        conversation_id: FK to Conversation
        from_client: True when written by the customer
        source: HUMAN or AUTOMATED
        content: Message text
        created_at: ISO8601 timestamp of message creation
    """

    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_client: Mapped[bool] = mapped_column(Boolean, nullable=False)
    source: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MessageSource.HUMAN.value
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )

    __table_args__ = (
        Index("ix_chat_messages_conv_created", "conversation_id", "created_at"),
        Index(
            "ix_chat_messages_conv_source",
            "conversation_id", "source", "created_at",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ChatMessage(id={self.id!r}, from_client={self.from_client!r}, "
            f"source={self.source!r})>"
        )


class ReplyJob(Base):
    """Unit of auto-reply work, keyed by the triggering client message.

    The unique constraint on message_id is the dedup key: at most one
    job exists per inbound message. Ownership is taken by a conditional
    update from PENDING to PROCESSING.

    Attributes:
        id: UUID primary key
        conversation_id: Conversation the message belongs to
        message_id: Triggering inbound message (unique)
        status: PENDING, PROCESSING, SENT, SKIPPED or FAILED
        attempts: Incremented on every successful claim
        skip_reason: Reason code for SKIPPED jobs
        last_error: Reason code or detail for FAILED jobs
        created_at: ISO8601 timestamp of job creation
        updated_at: ISO8601 timestamp of last update
        processed_at: ISO8601 timestamp when a terminal state was written
    """

    __tablename__ = "reply_jobs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(String(36), nullable=False)
    message_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReplyJobStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skip_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )
    processed_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("message_id", name="uq_reply_jobs_message"),
        Index("idx_reply_jobs_status_created", "status", "created_at"),
        Index("idx_reply_jobs_conversation", "conversation_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReplyJob(message_id={self.message_id!r}, status={self.status!r}, "
            f"attempts={self.attempts})>"
        )


class ReplyDecisionLog(Base):
    """Append-only audit record of a terminal auto-reply decision.

    Used for observability and the metrics endpoint only; never read
    for control flow and never updated.

    Attributes:
        id: UUID primary key
        conversation_id: Conversation the decision applies to
        agent_id: Agent the reply was (or would have been) sent for
        message_id: Triggering client message
        generated_message_id: Automated message id when decision is SENT
        decision: SENT, SKIPPED or FAILED
        reason: Skip or failure reason code
        model: Generation model identifier, when generation ran
        prompt_version: Prompt template version, when generation ran
        created_at: ISO8601 timestamp of the decision
    """

    __tablename__ = "reply_decision_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    conversation_id: Mapped[str] = mapped_column(String(36), nullable=False)
    agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    message_id: Mapped[str] = mapped_column(String(36), nullable=False)
    generated_message_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True
    )
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    model: Mapped[str | None] = mapped_column(String(120), nullable=True)
    prompt_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    __table_args__ = (
        Index("idx_reply_decisions_agent_created", "agent_id", "created_at"),
        Index("idx_reply_decisions_conversation", "conversation_id"),
        Index("idx_reply_decisions_message", "message_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReplyDecisionLog(message_id={self.message_id!r}, "
            f"decision={self.decision!r}, reason={self.reason!r})>"
        )
