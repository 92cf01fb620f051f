"""Shared types and reason codes for the offline auto-reply engine.

Neutral module with no DB or service-layer imports. Used by the schedule
resolver, settings service, eligibility gate, and the orchestrating
AutoReplyService.
"""

from dataclasses import dataclass, field
from enum import Enum


# --- Reason codes ---


class SkipReason(str, Enum):
    """Expected, non-error reasons a reply is not sent."""

    NO_AGENT = "NO_AGENT"
    DISABLED = "DISABLED"
    WITHIN_AVAILABILITY = "WITHIN_AVAILABILITY"
    NOT_A_CLIENT_MESSAGE = "NOT_A_CLIENT_MESSAGE"
    NOT_LATEST_MESSAGE = "NOT_LATEST_MESSAGE"
    HUMAN_ALREADY_REPLIED = "HUMAN_ALREADY_REPLIED"
    COOLDOWN = "COOLDOWN"
    RATE_LIMIT = "RATE_LIMIT"
    GENERATION_BACKEND_UNAVAILABLE = "GENERATION_BACKEND_UNAVAILABLE"
    DUPLICATE = "DUPLICATE"


class FailureReason(str, Enum):
    """Reasons for jobs where generation was attempted and lost."""

    GENERATION_ERROR = "GENERATION_ERROR"
    EMPTY_OUTPUT = "EMPTY_OUTPUT"


class NoopReason(str, Enum):
    """Outcomes reported to callers that did not own the job."""

    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"


# --- Schedule value objects ---

DAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


@dataclass(frozen=True)
class DaySchedule:
    """Availability window for one weekday, in the agent's timezone."""

    enabled: bool
    start: str
    end: str

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class WeekSchedule:
    """Seven DaySchedule entries, Monday through Sunday."""

    mon: DaySchedule
    tue: DaySchedule
    wed: DaySchedule
    thu: DaySchedule
    fri: DaySchedule
    sat: DaySchedule
    sun: DaySchedule

    def day(self, key: str) -> DaySchedule:
        """Return the entry for a day key ('mon'..'sun')."""
        return getattr(self, key)

    def to_dict(self) -> dict[str, dict]:
        return {key: self.day(key).to_dict() for key in DAY_KEYS}


# --- Settings value object ---


@dataclass(frozen=True)
class ReplySettings:
    """Validated, clamped view of an agent's auto-reply settings.

    Attributes:
        agent_id: Agent the settings belong to.
        enabled: Whether automated replies are allowed.
        timezone: Valid IANA timezone name.
        week_schedule: Normalized weekly availability calendar.
        cooldown_minutes: Spacing between automated replies (1-60).
        max_replies_per_conversation_per_24h: Rolling ceiling (1-30).
    """

    agent_id: str
    enabled: bool
    timezone: str
    week_schedule: WeekSchedule
    cooldown_minutes: int
    max_replies_per_conversation_per_24h: int

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "enabled": self.enabled,
            "timezone": self.timezone,
            "week_schedule": self.week_schedule.to_dict(),
            "cooldown_minutes": self.cooldown_minutes,
            "max_replies_per_conversation_per_24h": (
                self.max_replies_per_conversation_per_24h
            ),
        }


# --- Results ---


@dataclass(frozen=True)
class GateVerdict:
    """Outcome of the eligibility gate.

    Attributes:
        passed: True when every check passed and generation may run.
        reason: First failing check's reason when passed is False.
        agent_id: Assigned agent, when the conversation has one.
        settings: Settings the gate evaluated, when loaded.
    """

    passed: bool
    reason: SkipReason | None = None
    agent_id: str | None = None
    settings: ReplySettings | None = None


@dataclass(frozen=True)
class EnqueueResult:
    """Result of enqueue_for_message()."""

    enqueued: bool
    reason: SkipReason | None = None

    def to_dict(self) -> dict:
        data: dict = {"enqueued": self.enqueued}
        if self.reason is not None:
            data["reason"] = self.reason.value
        return data


@dataclass(frozen=True)
class ProcessResult:
    """Result of process_job().

    Attributes:
        status: SENT, SKIPPED or FAILED.
        reason: Skip, failure or no-op reason code.
        claimed: True only for the caller that owned the job.
        generated_message_id: Id of the automated message when SENT.
    """

    status: str
    reason: str | None = None
    claimed: bool = False
    generated_message_id: str | None = None

    def to_dict(self) -> dict:
        data: dict = {"status": self.status, "claimed": self.claimed}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.generated_message_id is not None:
            data["generated_message_id"] = self.generated_message_id
        return data


@dataclass
class DrainSummary:
    """Counters returned by process_pending()."""

    processed: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[ProcessResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
        }
