"""Tests for visit time parsing and business-window resolution."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from discovery_agent.tools.time_resolver import (
    ParsedLabel,
    clamp_to_business_window,
    format_when_text,
    next_business_day_open,
    parse_label,
    resolve_time,
    resolve_time_iso,
    when_text_from_iso,
)

TZ = ZoneInfo("America/New_York")
# Monday, 09:00 local.
NOW = datetime(2026, 10, 19, 9, 0, tzinfo=TZ)


def local(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, day, hour, minute, tzinfo=TZ)


class TestParseLabel:
    def test_weekday_and_pm_time(self):
        assert parse_label("Wednesday 5pm") == ParsedLabel(weekday=2, hour=17, minute=0)

    def test_abbreviated_weekday_with_minutes(self):
        assert parse_label("Fri 10:30am") == ParsedLabel(weekday=4, hour=10, minute=30)

    def test_part_of_day(self):
        assert parse_label("Thursday afternoon") == ParsedLabel(weekday=3, hour=14, minute=0)
        assert parse_label("tuesday morning").hour == 10

    def test_24_hour_clock(self):
        parsed = parse_label("13:00")
        assert parsed.weekday is None
        assert (parsed.hour, parsed.minute) == (13, 0)

    def test_bare_small_hour_means_afternoon(self):
        assert parse_label("Friday at 3").hour == 15

    def test_noon_and_midnight_meridiem(self):
        assert parse_label("12pm").hour == 12
        assert parse_label("12am").hour == 0

    def test_relative_day(self):
        assert parse_label("tomorrow 11am").day_offset == 1

    def test_no_time_uses_default(self):
        assert parse_label("next week sometime") == ParsedLabel(weekday=None, hour=14, minute=0)


class TestBusinessWindow:
    def test_inside_window_unchanged(self):
        assert clamp_to_business_window(local(21, 14)) == local(21, 14)

    def test_closing_hour_on_the_hour_is_allowed(self):
        assert clamp_to_business_window(local(21, 17)) == local(21, 17)

    def test_before_open_moves_to_open(self):
        assert clamp_to_business_window(local(21, 8)) == local(21, 10)

    def test_after_close_rolls_to_next_day(self):
        assert clamp_to_business_window(local(21, 18)) == local(22, 10)
        assert clamp_to_business_window(local(21, 17, 30)) == local(22, 10)

    def test_friday_evening_rolls_to_monday(self):
        assert clamp_to_business_window(local(23, 19)) == local(26, 10)

    def test_weekend_moves_to_monday_open(self):
        assert clamp_to_business_window(local(24, 14)) == local(26, 10)
        assert clamp_to_business_window(local(25, 9)) == local(26, 10)

    def test_next_business_day_skips_weekend(self):
        assert next_business_day_open(local(23, 11)) == local(26, 10)


class TestResolveTime:
    def test_named_weekday_beyond_lead(self):
        assert resolve_time("Wednesday 5pm", now=NOW) == local(21, 17)

    def test_wednesday_afternoon_from_monday(self):
        resolved = datetime.fromisoformat(resolve_time_iso("Wednesday afternoon", now=NOW))
        assert resolved.weekday() == 2
        assert resolved.hour == 14
        assert resolved - NOW >= timedelta(hours=48)

    def test_wednesday_afternoon_inside_lead_is_following_week(self):
        tuesday = local(20, 15)
        assert resolve_time("Wednesday afternoon", now=tuesday) == local(28, 14)

    def test_named_weekday_inside_lead_moves_a_week(self):
        assert resolve_time("Monday 10am", now=NOW) == local(26, 10)

    def test_weekend_label(self):
        assert resolve_time("Saturday 2pm", now=NOW) == local(26, 10)

    def test_after_hours_label(self):
        assert resolve_time("Wednesday 6pm", now=NOW) == local(22, 10)

    def test_relative_day_inside_lead(self):
        assert resolve_time("tomorrow 9am", now=NOW) == local(21, 10)

    def test_explicit_iso_wins_over_label(self):
        resolved = resolve_time("Monday 10am", start_iso="2026-10-23T15:00:00Z", now=NOW)
        assert resolved == local(23, 11)

    def test_naive_iso_is_business_local(self):
        assert resolve_time(start_iso="2026-10-22T13:00:00", now=NOW) == local(22, 13)

    def test_invalid_iso_raises(self):
        with pytest.raises(ValueError):
            resolve_time(start_iso="not a timestamp", now=NOW)

    @pytest.mark.parametrize("label", [
        "Monday 10am", "today", "tomorrow evening", "Friday at 3", "Sunday noon",
        "Wednesday 5pm", "13:00", "", "whenever works",
    ])
    def test_results_are_bookable(self, label):
        resolved = resolve_time(label, now=NOW)
        assert resolved.weekday() < 5
        assert 10 <= resolved.hour <= 17
        assert resolved - NOW >= timedelta(hours=48)

    def test_spring_forward_weekend_keeps_full_lead(self):
        # Clocks jump forward at 02:00 on Sunday 2026-03-08.
        saturday = datetime(2026, 3, 7, 14, 0, tzinfo=TZ)
        resolved = resolve_time("Monday afternoon", now=saturday)
        assert resolved == datetime(2026, 3, 16, 14, 0, tzinfo=TZ)
        elapsed = resolved.astimezone(timezone.utc) - saturday.astimezone(timezone.utc)
        assert elapsed >= timedelta(hours=48)

    def test_spring_forward_rolls_unnamed_day(self):
        saturday = datetime(2026, 3, 7, 10, 0, tzinfo=TZ)
        assert resolve_time("today", now=saturday) == datetime(2026, 3, 10, 10, 0, tzinfo=TZ)

    def test_iso_output_carries_offset(self):
        assert resolve_time_iso("Wednesday 5pm", now=NOW) == "2026-10-21T17:00:00-04:00"


class TestWhenText:
    def test_format(self):
        assert format_when_text(local(21, 17)) == "Wednesday at 5:00 PM"
        assert format_when_text(local(22, 10, 30)) == "Thursday at 10:30 AM"

    def test_from_utc_iso(self):
        assert when_text_from_iso("2026-10-21T21:00:00Z") == "Wednesday at 5:00 PM"
