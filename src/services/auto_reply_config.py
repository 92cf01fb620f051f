"""Configuration for the offline auto-reply engine.

All settings come from environment variables and are read on each call so
tests can monkeypatch them.

Environment Variables:
    ANTHROPIC_API_KEY: Credential for the generation backend. When unset the
        eligibility gate skips with GENERATION_BACKEND_UNAVAILABLE.
    AUTO_REPLY_MODEL: Claude model used to draft replies.
        Defaults to "claude-haiku-4-5-20251001".
    AUTO_REPLY_GENERATION_TIMEOUT: Seconds before a generation call is
        abandoned (default 20).
    AUTO_REPLY_MAX_TOKENS: Completion token ceiling (default 260).
    AUTO_REPLY_HISTORY_LIMIT: Messages of history sent as context (default 8).
    AUTO_REPLY_MAX_CHARS: Maximum accepted reply length (default 800).
    AUTO_REPLY_DEFAULT_TIMEZONE: Fallback for invalid agent timezones
        (default "America/Sao_Paulo").
    AUTO_REPLY_CRON_SECRET: Bearer secret required by the job drain routes.
"""

import os

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_TIMEZONE = "America/Sao_Paulo"
PROMPT_VERSION = "v1"

DEFAULT_COOLDOWN_MINUTES = 3
DEFAULT_MAX_REPLIES_PER_24H = 6
COOLDOWN_BOUNDS = (1, 60)
MAX_REPLIES_BOUNDS = (1, 30)

RATE_LIMIT_WINDOW_HOURS = 24
DRAIN_LIMIT_BOUNDS = (1, 50)
DEFAULT_DRAIN_LIMIT = 20

# Detail stored in ReplyJob.last_error is clipped to this many characters.
MAX_ERROR_DETAIL_CHARS = 500


def _int_env(name: str, default_value: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default_value
    try:
        parsed = int(raw)
    except ValueError:
        return default_value
    return parsed if parsed > 0 else default_value


def get_model() -> str:
    """Get the Claude model used for drafting replies."""
    return os.environ.get("AUTO_REPLY_MODEL", "").strip() or DEFAULT_MODEL


def get_api_key() -> str | None:
    """Return the generation backend credential, or None when unset."""
    key = os.environ.get("ANTHROPIC_API_KEY", "").strip()
    return key or None


def get_generation_timeout() -> float:
    """Hard timeout in seconds for a single generation call."""
    return float(_int_env("AUTO_REPLY_GENERATION_TIMEOUT", 20))


def get_max_tokens() -> int:
    return _int_env("AUTO_REPLY_MAX_TOKENS", 260)


def get_history_limit() -> int:
    return _int_env("AUTO_REPLY_HISTORY_LIMIT", 8)


def get_max_reply_chars() -> int:
    return _int_env("AUTO_REPLY_MAX_CHARS", 800)


def get_default_timezone() -> str:
    return os.environ.get("AUTO_REPLY_DEFAULT_TIMEZONE", "").strip() or DEFAULT_TIMEZONE


def get_cron_secret() -> str:
    """Return the cron bearer secret; empty string means routes are open."""
    return os.environ.get("AUTO_REPLY_CRON_SECRET", "").strip()
