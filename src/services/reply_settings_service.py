"""Service for per-agent auto-reply settings.

Wraps the agent_reply_settings table. Reads always return a validated
ReplySettings value object: invalid persisted data degrades to defaults
instead of raising.
"""

import json
import logging
import math
from typing import Any

from sqlalchemy.orm import Session

from src.db.models import AgentReplySettings, utc_now_iso
from src.errors.domain import ValidationError
from src.services.auto_reply_config import (
    COOLDOWN_BOUNDS,
    DEFAULT_COOLDOWN_MINUTES,
    DEFAULT_MAX_REPLIES_PER_24H,
    MAX_REPLIES_BOUNDS,
)
from src.services.auto_reply_types import ReplySettings
from src.services.schedule_resolver import (
    default_week_schedule,
    normalize_week_schedule,
    safe_timezone,
)

logger = logging.getLogger(__name__)

# Fields accepted by upsert_settings()
_MUTABLE_FIELDS = {
    "enabled",
    "timezone",
    "week_schedule",
    "cooldown_minutes",
    "max_replies_per_conversation_per_24h",
}


def clamp_int(value: Any, default: int, bounds: tuple[int, int]) -> int:
    """Floor a numeric value and clamp it into bounds.

    Non-numeric, zero or missing values fall back to default. Anything
    else is floored first, so a fraction below one clamps to the lower
    bound.
    """
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        number = default
    elif isinstance(value, float) and not math.isfinite(value):
        number = default
    elif value == 0:
        number = default
    else:
        number = math.floor(value)
    return max(low, min(high, number))


def _merge_schedule(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Overlay patched day entries onto the stored schedule, field by field."""
    schedule = {day: dict(row) for day, row in current.items()}
    for day, row in patch.items():
        if day in schedule and isinstance(row, dict):
            schedule[day] = {**schedule[day], **row}
    return schedule


def _load_schedule_json(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable week_schedule JSON")
        return None


def default_settings(agent_id: str) -> ReplySettings:
    """Settings used for agents that never configured auto-reply."""
    return ReplySettings(
        agent_id=agent_id,
        enabled=False,
        timezone=safe_timezone(None),
        week_schedule=default_week_schedule(),
        cooldown_minutes=DEFAULT_COOLDOWN_MINUTES,
        max_replies_per_conversation_per_24h=DEFAULT_MAX_REPLIES_PER_24H,
    )


def to_settings(row: AgentReplySettings) -> ReplySettings:
    """Convert a settings row into a validated value object."""
    return ReplySettings(
        agent_id=row.agent_id,
        enabled=bool(row.enabled),
        timezone=safe_timezone(row.timezone),
        week_schedule=normalize_week_schedule(_load_schedule_json(row.week_schedule)),
        cooldown_minutes=clamp_int(
            row.cooldown_minutes, DEFAULT_COOLDOWN_MINUTES, COOLDOWN_BOUNDS
        ),
        max_replies_per_conversation_per_24h=clamp_int(
            row.max_replies_per_conversation_per_24h,
            DEFAULT_MAX_REPLIES_PER_24H,
            MAX_REPLIES_BOUNDS,
        ),
    )


class ReplySettingsService:
    """Read and upsert auto-reply settings for agents."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def _find(self, agent_id: str) -> AgentReplySettings | None:
        return (
            self._db.query(AgentReplySettings)
            .filter(AgentReplySettings.agent_id == agent_id)
            .first()
        )

    def get_settings(self, agent_id: str) -> ReplySettings:
        """Return settings for an agent without writing.

        Agents with no row get default_settings(). This is the read used
        by the eligibility gate, which must stay side-effect free.
        """
        row = self._find(agent_id)
        if row is None:
            return default_settings(agent_id)
        return to_settings(row)

    def get_or_create(self, agent_id: str) -> ReplySettings:
        """Return settings for an agent, creating the default row if absent."""
        if not agent_id or not agent_id.strip():
            raise ValidationError("agent_id is required")
        row = self._find(agent_id)
        if row is None:
            defaults = default_settings(agent_id)
            row = AgentReplySettings(
                agent_id=agent_id,
                enabled=defaults.enabled,
                timezone=defaults.timezone,
                week_schedule=json.dumps(defaults.week_schedule.to_dict()),
                cooldown_minutes=defaults.cooldown_minutes,
                max_replies_per_conversation_per_24h=(
                    defaults.max_replies_per_conversation_per_24h
                ),
            )
            self._db.add(row)
            self._db.flush()
            logger.info("Created default auto-reply settings for agent %s", agent_id)
        return to_settings(row)

    def upsert_settings(self, agent_id: str, patch: dict[str, Any]) -> ReplySettings:
        """Validate, clamp and store settings for an agent.

        Fields missing from patch keep their current (or default) value.
        The timezone falls back to the default zone when unknown; the
        schedule patch is merged onto the stored schedule day by day and
        then normalized; numeric limits are clamped.

        Args:
            agent_id: Agent to configure.
            patch: Dict of field names to new values.

        Returns:
            The stored settings.

        Raises:
            ValidationError: If agent_id is blank or patch has unknown fields.
        """
        if not agent_id or not agent_id.strip():
            raise ValidationError("agent_id is required")
        unknown = set(patch.keys()) - _MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown setting fields: {sorted(unknown)}")

        current = self.get_settings(agent_id)
        merged = {**current.to_dict(), **patch}
        if isinstance(patch.get("week_schedule"), dict):
            merged["week_schedule"] = _merge_schedule(
                current.week_schedule.to_dict(), patch["week_schedule"]
            )

        enabled = merged["enabled"]
        week_schedule = normalize_week_schedule(merged["week_schedule"])
        values = {
            "enabled": enabled if isinstance(enabled, bool) else current.enabled,
            "timezone": safe_timezone(merged["timezone"]),
            "week_schedule": json.dumps(week_schedule.to_dict()),
            "cooldown_minutes": clamp_int(
                merged["cooldown_minutes"], DEFAULT_COOLDOWN_MINUTES, COOLDOWN_BOUNDS
            ),
            "max_replies_per_conversation_per_24h": clamp_int(
                merged["max_replies_per_conversation_per_24h"],
                DEFAULT_MAX_REPLIES_PER_24H,
                MAX_REPLIES_BOUNDS,
            ),
        }

        row = self._find(agent_id)
        if row is None:
            row = AgentReplySettings(agent_id=agent_id, **values)
            self._db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = utc_now_iso()
        self._db.flush()
        logger.info(
            "Stored auto-reply settings for agent %s (enabled=%s, tz=%s)",
            agent_id, values["enabled"], values["timezone"],
        )
        return to_settings(row)
