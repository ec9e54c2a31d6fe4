"""Unit tests for calendar trigger next-fire computation."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from config import settings
from scheduler.triggers import (
    DailyTrigger,
    IntervalTrigger,
    WeeklyTrigger,
    triggers_from_settings,
)

SEOUL = ZoneInfo("Asia/Seoul")


def test_daily_trigger_fires_later_today_or_tomorrow() -> None:
    """Daily triggers pick today's slot if still ahead, else tomorrow's."""
    trigger = DailyTrigger(hour=9, minute=0, tz=SEOUL)

    before = datetime(2024, 1, 11, 8, 59, tzinfo=SEOUL)
    at = datetime(2024, 1, 11, 9, 0, tzinfo=SEOUL)

    assert trigger.next_fire(before) == datetime(2024, 1, 11, 9, 0, tzinfo=SEOUL)
    assert trigger.next_fire(at) == datetime(2024, 1, 12, 9, 0, tzinfo=SEOUL)


def test_daily_trigger_converts_utc_input() -> None:
    """UTC instants are interpreted in the trigger's timezone."""
    trigger = DailyTrigger(hour=9, minute=0, tz=SEOUL)
    utc_instant = datetime(2024, 1, 10, 23, 30, tzinfo=timezone.utc)

    fire = trigger.next_fire(utc_instant)

    assert fire == datetime(2024, 1, 11, 9, 0, tzinfo=SEOUL)
    assert fire.astimezone(timezone.utc) == datetime(2024, 1, 11, 0, 0, tzinfo=timezone.utc)


def test_interval_trigger_aligns_to_local_midnight() -> None:
    """Six-hour intervals fire at 00, 06, 12, and 18 local time."""
    trigger = IntervalTrigger(hours=6, tz=SEOUL)

    assert trigger.next_fire(datetime(2024, 1, 11, 7, 15, tzinfo=SEOUL)) == datetime(
        2024, 1, 11, 12, 0, tzinfo=SEOUL
    )
    assert trigger.next_fire(datetime(2024, 1, 11, 18, 0, tzinfo=SEOUL)) == datetime(
        2024, 1, 12, 0, 0, tzinfo=SEOUL
    )


def test_interval_trigger_rejects_uneven_hours() -> None:
    """Intervals must divide the day evenly."""
    with pytest.raises(ValueError):
        IntervalTrigger(hours=5, tz=SEOUL)


def test_weekly_trigger_finds_next_weekday() -> None:
    """Weekly triggers fire on the configured weekday and roll a week when passed."""
    trigger = WeeklyTrigger(weekday=0, hour=9, minute=0, tz=SEOUL)

    # 2024-01-11 is a Thursday.
    assert trigger.next_fire(datetime(2024, 1, 11, 10, 0, tzinfo=SEOUL)) == datetime(
        2024, 1, 15, 9, 0, tzinfo=SEOUL
    )
    assert trigger.next_fire(datetime(2024, 1, 15, 9, 0, tzinfo=SEOUL)) == datetime(
        2024, 1, 22, 9, 0, tzinfo=SEOUL
    )
    assert trigger.next_fire(datetime(2024, 1, 15, 8, 0, tzinfo=SEOUL)) == datetime(
        2024, 1, 15, 9, 0, tzinfo=SEOUL
    )


def test_triggers_from_settings(monkeypatch) -> None:
    """Settings drive the three trigger definitions."""
    monkeypatch.setattr(settings.scheduler, "timezone", "Asia/Seoul", raising=False)
    monkeypatch.setattr(settings.scheduler, "deadline_sweep_time", "08:30", raising=False)
    monkeypatch.setattr(settings.scheduler, "issue_watch_interval_hours", 4, raising=False)
    monkeypatch.setattr(settings.scheduler, "weekly_report_day", "Friday", raising=False)
    monkeypatch.setattr(settings.scheduler, "weekly_report_time", "17:00", raising=False)

    deadline, issues, weekly = triggers_from_settings()

    assert (deadline.hour, deadline.minute) == (8, 30)
    assert issues.hours == 4
    assert (weekly.weekday, weekly.hour, weekly.minute) == (4, 17, 0)
    assert deadline.tz == SEOUL
