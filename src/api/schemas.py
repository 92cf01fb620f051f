"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the auto-reply REST API:
agent settings, decision metrics, enqueue and job processing results.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MetricsRange(str, Enum):
    """Look-back windows accepted by the metrics endpoint."""

    last_24h = "24h"
    last_7d = "7d"


# Settings schemas


class DayScheduleSchema(BaseModel):
    """Availability window for one weekday."""

    enabled: bool
    start: str
    end: str


class ReplySettingsResponse(BaseModel):
    """Response schema for an agent's auto-reply settings."""

    agent_id: str
    enabled: bool
    timezone: str
    week_schedule: dict[str, DayScheduleSchema]
    cooldown_minutes: int
    max_replies_per_conversation_per_24h: int
    currently_unavailable: bool = False


class ReplySettingsUpdate(BaseModel):
    """Request schema for updating settings (all fields optional).

    Values are not rejected for being out of range: the settings service
    clamps numbers, falls back to the default timezone and normalizes
    invalid schedule entries.
    """

    enabled: bool | None = None
    timezone: str | None = None
    week_schedule: dict[str, Any] | None = None
    cooldown_minutes: float | None = None
    max_replies_per_conversation_per_24h: float | None = None


# Metrics schemas


class DecisionCounts(BaseModel):
    sent: int = 0
    skipped: int = 0
    failed: int = 0


class SkipReasonCount(BaseModel):
    reason: str
    count: int


class DecisionEntry(BaseModel):
    """Single decision log entry in the metrics response."""

    id: str
    conversation_id: str
    message_id: str
    decision: str
    reason: str | None = None
    created_at: str
    subject_title: str | None = None
    contact_name: str | None = None


class MetricsResponse(BaseModel):
    """Response schema for auto-reply metrics of one agent."""

    range: MetricsRange
    since: str
    enabled: bool
    counts: DecisionCounts
    skipped_by_reason: list[SkipReasonCount] = Field(default_factory=list)
    recent: list[DecisionEntry] = Field(default_factory=list)


# Job schemas


class EnqueueResponse(BaseModel):
    """Response schema for an auto-reply enqueue request."""

    enqueued: bool
    reason: str | None = None


class ProcessResponse(BaseModel):
    """Response schema for processing a single reply job."""

    status: str
    reason: str | None = None
    claimed: bool = False
    generated_message_id: str | None = None


class DrainResponse(BaseModel):
    """Response schema for draining pending reply jobs."""

    success: bool = True
    processed: int
    sent: int
    skipped: int
    failed: int


class JobStatusResponse(BaseModel):
    """Counts of reply jobs still in flight."""

    success: bool = True
    pending: int
    processing: int
