"""Tests for the weekly availability calendar and is_unavailable()."""

from datetime import UTC, datetime

import pytest

from src.services.auto_reply_types import DaySchedule
from src.services.schedule_resolver import (
    default_week_schedule,
    is_unavailable,
    local_day_and_minute,
    normalize_week_schedule,
    parse_time_to_minutes,
    safe_timezone,
)

SAO_PAULO = "America/Sao_Paulo"


def _schedule_with(day: str, entry: dict):
    raw = default_week_schedule().to_dict()
    raw[day] = entry
    return normalize_week_schedule(raw)


class TestParseTime:
    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("09:30", 570), ("23:59", 1439)],
    )
    def test_valid_times(self, value, expected):
        assert parse_time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "9:00", "12:60", "", None, "noon"])
    def test_invalid_times(self, value):
        assert parse_time_to_minutes(value) is None


class TestSafeTimezone:
    def test_known_zone_kept(self):
        assert safe_timezone("Europe/Lisbon") == "Europe/Lisbon"

    def test_unknown_zone_falls_back_to_default(self):
        assert safe_timezone("Mars/Olympus") == SAO_PAULO

    def test_blank_falls_back_to_default(self):
        assert safe_timezone("  ") == SAO_PAULO

    def test_default_is_configurable(self, monkeypatch):
        monkeypatch.setenv("AUTO_REPLY_DEFAULT_TIMEZONE", "Europe/Berlin")
        assert safe_timezone(None) == "Europe/Berlin"


class TestNormalizeWeekSchedule:
    def test_defaults_for_non_mapping(self):
        schedule = normalize_week_schedule("not a schedule")
        assert schedule == default_week_schedule()
        assert schedule.mon == DaySchedule(True, "09:00", "18:00")
        assert schedule.sat == DaySchedule(False, "09:00", "13:00")

    def test_valid_entry_replaces_default(self):
        schedule = normalize_week_schedule(
            {"sat": {"enabled": True, "start": "10:00", "end": "12:00"}}
        )
        assert schedule.sat == DaySchedule(True, "10:00", "12:00")
        assert schedule.sun == DaySchedule(False, "09:00", "13:00")

    def test_invalid_time_disables_day(self):
        schedule = normalize_week_schedule(
            {"mon": {"enabled": True, "start": "25:00", "end": "18:00"}}
        )
        assert schedule.mon == DaySchedule(False, "09:00", "18:00")
        assert schedule.mon.enabled is False
        assert schedule.tue == DaySchedule(True, "09:00", "18:00")

    def test_invalid_end_disables_weekend_day(self):
        schedule = normalize_week_schedule(
            {"sat": {"enabled": True, "start": "10:00", "end": "noon"}}
        )
        assert schedule.sat == DaySchedule(False, "09:00", "13:00")

    def test_non_boolean_enabled_keeps_default_flag(self):
        schedule = normalize_week_schedule(
            {"tue": {"enabled": "yes", "start": "08:00", "end": "17:00"}}
        )
        assert schedule.tue == DaySchedule(True, "08:00", "17:00")


class TestLocalDayAndMinute:
    def test_projects_into_zone(self):
        # 2026-03-04 23:30 UTC is Wednesday 20:30 in Sao Paulo (UTC-3)
        now = datetime(2026, 3, 4, 23, 30, tzinfo=UTC)
        assert local_day_and_minute(now, SAO_PAULO) == ("wed", 20 * 60 + 30)

    def test_day_rolls_over(self):
        # 2026-03-05 01:00 UTC is still Wednesday 22:00 in Sao Paulo
        now = datetime(2026, 3, 5, 1, 0, tzinfo=UTC)
        assert local_day_and_minute(now, SAO_PAULO) == ("wed", 22 * 60)

    def test_invalid_zone(self):
        assert local_day_and_minute(datetime.now(UTC), "Nowhere/City") is None


class TestIsUnavailable:
    def test_inside_window_is_available(self):
        # Wednesday 12:00 local
        now = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)
        assert is_unavailable(now, SAO_PAULO, default_week_schedule()) is False

    def test_after_window_is_unavailable(self):
        # Wednesday 20:00 local
        now = datetime(2026, 3, 4, 23, 0, tzinfo=UTC)
        assert is_unavailable(now, SAO_PAULO, default_week_schedule()) is True

    def test_start_is_inclusive_end_is_exclusive(self):
        schedule = default_week_schedule()
        at_start = datetime(2026, 3, 4, 12, 0, tzinfo=UTC)  # 09:00 local
        at_end = datetime(2026, 3, 4, 21, 0, tzinfo=UTC)  # 18:00 local
        assert is_unavailable(at_start, SAO_PAULO, schedule) is False
        assert is_unavailable(at_end, SAO_PAULO, schedule) is True

    def test_disabled_day_is_unavailable_all_day(self):
        # Saturday 11:00 local, inside the (disabled) 09:00-13:00 window
        now = datetime(2026, 3, 7, 14, 0, tzinfo=UTC)
        assert is_unavailable(now, SAO_PAULO, default_week_schedule()) is True

    def test_overnight_window(self):
        schedule = _schedule_with("wed", {"enabled": True, "start": "22:00", "end": "06:00"})
        late = datetime(2026, 3, 5, 1, 30, tzinfo=UTC)  # Wed 22:30 local
        evening = datetime(2026, 3, 4, 23, 0, tzinfo=UTC)  # Wed 20:00 local
        early = datetime(2026, 3, 4, 7, 0, tzinfo=UTC)  # Wed 04:00 local
        assert is_unavailable(late, SAO_PAULO, schedule) is False
        assert is_unavailable(early, SAO_PAULO, schedule) is False
        assert is_unavailable(evening, SAO_PAULO, schedule) is True

    @pytest.mark.parametrize(
        ("now", "expected"),
        [
            (datetime(2026, 3, 5, 2, 0, tzinfo=UTC), False),  # Wed 23:00 local
            (datetime(2026, 3, 4, 13, 0, tzinfo=UTC), True),  # Wed 10:00 local
            (datetime(2026, 3, 4, 8, 59, tzinfo=UTC), False),  # Wed 05:59 local
            (datetime(2026, 3, 4, 9, 0, tzinfo=UTC), True),  # Wed 06:00 local
        ],
    )
    def test_overnight_window_edges(self, now, expected):
        schedule = _schedule_with("wed", {"enabled": True, "start": "22:00", "end": "06:00"})
        assert is_unavailable(now, SAO_PAULO, schedule) is expected

    def test_zero_length_window_is_always_unavailable(self):
        schedule = _schedule_with("wed", {"enabled": True, "start": "10:00", "end": "10:00"})
        # Wednesday 09:00, 10:00, 12:00 and 17:00 local
        for hour in (12, 13, 15, 20):
            now = datetime(2026, 3, 4, hour, 0, tzinfo=UTC)
            assert is_unavailable(now, SAO_PAULO, schedule) is True

    def test_invalid_timezone_is_unavailable(self):
        now = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)
        assert is_unavailable(now, "Invalid/Zone", default_week_schedule()) is True

    def test_naive_datetime_treated_as_utc(self):
        now = datetime(2026, 3, 4, 15, 0)
        assert is_unavailable(now, SAO_PAULO, default_week_schedule()) is False
