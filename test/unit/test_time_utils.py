"""Unit tests for timezone conversion helpers."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from config import settings
from time_utils import coerce_utc, get_local_timezone, local_today, to_local, to_utc


def test_get_local_timezone_uses_settings(monkeypatch) -> None:
    """Local timezone resolves from settings."""
    monkeypatch.setattr(settings.scheduler, "timezone", "UTC", raising=False)
    tz = get_local_timezone()
    assert tz.key == "UTC"


def test_to_utc_converts_from_local(monkeypatch) -> None:
    """to_utc converts naive local times to UTC."""
    monkeypatch.setattr(settings.scheduler, "timezone", "Asia/Seoul", raising=False)
    converted = to_utc(datetime(2024, 1, 11, 9, 0, 0))

    assert converted.tzinfo == timezone.utc
    assert converted.hour == 0


def test_to_local_converts_from_utc(monkeypatch) -> None:
    """to_local converts aware UTC times to local timezone."""
    monkeypatch.setattr(settings.scheduler, "timezone", "America/New_York", raising=False)
    utc_time = datetime(2025, 1, 15, 17, 0, 0, tzinfo=timezone.utc)
    converted = to_local(utc_time)

    assert converted.hour == 12
    assert converted.tzinfo is not None


def test_coerce_utc_attaches_or_converts() -> None:
    """Naive values are treated as UTC and aware values are converted."""
    naive = datetime(2024, 1, 11, 0, 0)
    seoul = datetime(2024, 1, 11, 9, 0, tzinfo=timezone(timedelta(hours=9)))

    assert coerce_utc(None) is None
    assert coerce_utc(naive) == datetime(2024, 1, 11, 0, 0, tzinfo=timezone.utc)
    assert coerce_utc(seoul).tzinfo == timezone.utc
    assert coerce_utc(seoul).hour == 0


def test_local_today_crosses_midnight(monkeypatch) -> None:
    """The local calendar day can differ from the UTC day."""
    monkeypatch.setattr(settings.scheduler, "timezone", "Asia/Seoul", raising=False)
    late_utc = datetime(2024, 1, 10, 15, 30, tzinfo=timezone.utc)

    assert late_utc.date() == date(2024, 1, 10)
    assert local_today(late_utc) == date(2024, 1, 11)
