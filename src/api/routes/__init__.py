"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import (
    auto_reply_jobs,
    auto_reply_metrics,
    auto_reply_settings,
    conversation_events,
)

__all__ = [
    "auto_reply_jobs",
    "auto_reply_metrics",
    "auto_reply_settings",
    "conversation_events",
]
