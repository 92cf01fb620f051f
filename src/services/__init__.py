"""Service layer for the offline auto-reply engine.

Provides settings management, the reply job ledger, the eligibility gate,
reply generation and the orchestrating AutoReplyService.
"""

from src.services.auto_reply_service import AutoReplyService
from src.services.reply_decision_log import DecisionLogService
from src.services.reply_job_ledger import InvalidStateTransition, ReplyJobLedger
from src.services.reply_settings_service import ReplySettingsService

__all__ = [
    "AutoReplyService",
    "DecisionLogService",
    "InvalidStateTransition",
    "ReplyJobLedger",
    "ReplySettingsService",
]
