"""Weekly availability calendar and the off-duty calculation.

Pure functions with no I/O. The settings service uses the normalization
helpers when reading and writing calendars; the eligibility gate calls
is_unavailable() to decide whether the agent is currently off duty.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.services.auto_reply_config import get_default_timezone
from src.services.auto_reply_types import DAY_KEYS, DaySchedule, WeekSchedule

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_DEFAULT_DAYS: dict[str, DaySchedule] = {
    "mon": DaySchedule(enabled=True, start="09:00", end="18:00"),
    "tue": DaySchedule(enabled=True, start="09:00", end="18:00"),
    "wed": DaySchedule(enabled=True, start="09:00", end="18:00"),
    "thu": DaySchedule(enabled=True, start="09:00", end="18:00"),
    "fri": DaySchedule(enabled=True, start="09:00", end="18:00"),
    "sat": DaySchedule(enabled=False, start="09:00", end="13:00"),
    "sun": DaySchedule(enabled=False, start="09:00", end="13:00"),
}


def default_week_schedule() -> WeekSchedule:
    """Return the default calendar: weekdays 09:00-18:00, weekends off."""
    return WeekSchedule(**_DEFAULT_DAYS)


def parse_time_to_minutes(value: Any) -> int | None:
    """Convert "HH:MM" (00:00-23:59) to minutes past midnight.

    Returns:
        Minute offset, or None when the value is not a valid time.
    """
    match = _TIME_RE.match(str(value or "").strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def _load_zone(name: str) -> ZoneInfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def safe_timezone(value: Any) -> str:
    """Return value when it names a known timezone, else the default zone."""
    name = str(value or "").strip()
    if _load_zone(name) is not None:
        return name
    fallback = get_default_timezone()
    if name:
        logger.debug("Unknown timezone %r, falling back to %s", name, fallback)
    return fallback


def normalize_week_schedule(raw: Any) -> WeekSchedule:
    """Build a WeekSchedule from untrusted input.

    Each day starts from the default entry. A supplied entry with a
    missing start or end takes the default time; one whose start or end
    is not a valid time disables the day. A non-boolean enabled flag
    keeps the default flag.

    Args:
        raw: Mapping keyed 'mon'..'sun', or anything else (ignored).

    Returns:
        A fully populated WeekSchedule.
    """
    days = dict(_DEFAULT_DAYS)
    if not isinstance(raw, dict):
        return WeekSchedule(**days)

    for key in DAY_KEYS:
        row = raw.get(key)
        if not isinstance(row, dict):
            continue
        base = days[key]
        enabled = row.get("enabled")
        if not isinstance(enabled, bool):
            enabled = base.enabled
        start = str(row.get("start") or "").strip() or base.start
        end = str(row.get("end") or "").strip() or base.end
        if parse_time_to_minutes(start) is None or parse_time_to_minutes(end) is None:
            logger.debug("Invalid %s window %r-%r, disabling the day", key, start, end)
            days[key] = DaySchedule(enabled=False, start=base.start, end=base.end)
            continue
        days[key] = DaySchedule(enabled=enabled, start=start, end=end)

    return WeekSchedule(**days)


def local_day_and_minute(now: datetime, timezone: str) -> tuple[str, int] | None:
    """Project an instant into a timezone.

    Args:
        now: Instant to project. Naive values are treated as UTC.
        timezone: IANA timezone name.

    Returns:
        (day key, minute of day), or None when the timezone is invalid.
    """
    zone = _load_zone(str(timezone or "").strip())
    if zone is None:
        return None
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    try:
        local = now.astimezone(zone)
    except (OverflowError, ValueError):
        return None
    return DAY_KEYS[local.weekday()], local.hour * 60 + local.minute


def is_unavailable(now: datetime, timezone: str, schedule: WeekSchedule) -> bool:
    """Return True when the agent is off duty at the given instant.

    Rules, evaluated in the agent's local time:
    - invalid timezone: unavailable
    - day disabled: unavailable all day
    - start == end: unavailable (a zero-length window never opens)
    - start < end: available for start <= minute < end
    - start > end (crosses midnight): available for minute >= start
      or minute < end

    Args:
        now: Current instant.
        timezone: IANA timezone the schedule is expressed in.
        schedule: Weekly availability calendar.

    Returns:
        True when an automated reply may be considered.
    """
    local = local_day_and_minute(now, timezone)
    if local is None:
        return True
    day_key, minute = local

    day = schedule.day(day_key)
    if not day.enabled:
        return True

    start = parse_time_to_minutes(day.start)
    end = parse_time_to_minutes(day.end)
    if start is None or end is None:
        return True

    if start == end:
        return True

    if start < end:
        return not (start <= minute < end)

    return end <= minute < start
