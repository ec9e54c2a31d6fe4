"""Calendar triggers computing the next fire time in a local timezone."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from typing import Protocol

from config import parse_hhmm, settings, weekday_index
from time_utils import get_local_timezone


class Trigger(Protocol):
    """Computes the first fire time strictly after a given instant."""

    def next_fire(self, after: datetime) -> datetime:
        """Return the next fire time after ``after``."""


def _localize(after: datetime, tz: tzinfo) -> datetime:
    if after.tzinfo is None:
        return after.replace(tzinfo=tz)
    return after.astimezone(tz)


@dataclass(frozen=True)
class DailyTrigger:
    """Fires once a day at a fixed local time."""

    hour: int
    minute: int = 0
    tz: tzinfo = field(default_factory=get_local_timezone)

    def next_fire(self, after: datetime) -> datetime:
        local = _localize(after, self.tz)
        candidate = datetime.combine(local.date(), time(self.hour, self.minute), tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=1), time(self.hour, self.minute), tzinfo=self.tz
            )
        return candidate


@dataclass(frozen=True)
class IntervalTrigger:
    """Fires every ``hours`` hours, aligned to local midnight."""

    hours: int
    tz: tzinfo = field(default_factory=get_local_timezone)

    def __post_init__(self) -> None:
        if self.hours < 1 or 24 % self.hours != 0:
            raise ValueError("IntervalTrigger hours must divide 24.")

    def next_fire(self, after: datetime) -> datetime:
        local = _localize(after, self.tz)
        for hour in range(0, 24, self.hours):
            candidate = datetime.combine(local.date(), time(hour), tzinfo=self.tz)
            if candidate > local:
                return candidate
        return datetime.combine(local.date() + timedelta(days=1), time(0), tzinfo=self.tz)


@dataclass(frozen=True)
class WeeklyTrigger:
    """Fires once a week on a weekday (Monday=0) at a fixed local time."""

    weekday: int
    hour: int
    minute: int = 0
    tz: tzinfo = field(default_factory=get_local_timezone)

    def next_fire(self, after: datetime) -> datetime:
        local = _localize(after, self.tz)
        days_ahead = (self.weekday - local.weekday()) % 7
        at = time(self.hour, self.minute)
        candidate = datetime.combine(local.date() + timedelta(days=days_ahead), at, tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(
                local.date() + timedelta(days=days_ahead + 7), at, tzinfo=self.tz
            )
        return candidate


def triggers_from_settings() -> tuple[DailyTrigger, IntervalTrigger, WeeklyTrigger]:
    """Build the deadline, issue watch, and weekly report triggers from settings."""
    scheduler_config = settings.scheduler
    tz = get_local_timezone()
    deadline_hour, deadline_minute = parse_hhmm(scheduler_config.deadline_sweep_time)
    report_hour, report_minute = parse_hhmm(scheduler_config.weekly_report_time)
    return (
        DailyTrigger(hour=deadline_hour, minute=deadline_minute, tz=tz),
        IntervalTrigger(hours=scheduler_config.issue_watch_interval_hours, tz=tz),
        WeeklyTrigger(
            weekday=weekday_index(scheduler_config.weekly_report_day),
            hour=report_hour,
            minute=report_minute,
            tz=tz,
        ),
    )


__all__ = [
    "DailyTrigger",
    "IntervalTrigger",
    "Trigger",
    "WeeklyTrigger",
    "triggers_from_settings",
]
