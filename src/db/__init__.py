"""Database module for auto-reply state management and persistence."""

from src.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from src.db.models import (
    AgentReplySettings,
    ChatMessage,
    Conversation,
    MessageSource,
    ReplyDecision,
    ReplyDecisionLog,
    ReplyJob,
    ReplyJobStatus,
)

__all__ = [
    # Models
    "AgentReplySettings",
    "Conversation",
    "ChatMessage",
    "ReplyJob",
    "ReplyDecisionLog",
    # Enums
    "ReplyJobStatus",
    "ReplyDecision",
    "MessageSource",
    # Connection
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
]
