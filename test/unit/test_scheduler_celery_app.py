"""Unit tests for the Celery sweep tasks and beat schedule."""

from __future__ import annotations

import scheduler.celery_app as celery_app
from config import settings
from scheduler.sweeps import SweepResult


class _StubRunner:
    """Runner returning canned results per sweep."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def run_deadline_sweep(self) -> SweepResult:
        self.calls.append("deadline")
        return SweepResult("deadline", "completed", scanned=3, delivered=2, failed=1, changed=1)

    def run_issue_watch(self) -> SweepResult:
        self.calls.append("issue_watch")
        return SweepResult("issue_watch", "skipped")

    def run_weekly_report(self) -> SweepResult:
        self.calls.append("weekly_report")
        return SweepResult("weekly_report", "completed", scanned=2, delivered=2)


def test_beat_schedule_follows_settings(monkeypatch) -> None:
    """Beat entries use the configured times and weekday."""
    monkeypatch.setattr(settings.scheduler, "deadline_sweep_time", "08:30", raising=False)
    monkeypatch.setattr(settings.scheduler, "issue_watch_interval_hours", 6, raising=False)
    monkeypatch.setattr(settings.scheduler, "weekly_report_day", "Friday", raising=False)
    monkeypatch.setattr(settings.scheduler, "weekly_report_time", "17:00", raising=False)

    schedule = celery_app.build_beat_schedule()

    deadline = schedule["scheduler.run_deadline_sweep"]["schedule"]
    issues = schedule["scheduler.run_issue_watch"]["schedule"]
    weekly = schedule["scheduler.run_weekly_report"]["schedule"]
    assert (deadline.hour, deadline.minute) == ({8}, {30})
    assert issues.hour == {0, 6, 12, 18}
    assert issues.minute == {0}
    # Celery numbers Friday as 5.
    assert weekly.day_of_week == {5}
    assert (weekly.hour, weekly.minute) == ({17}, {0})


def test_beat_schedule_is_registered() -> None:
    """The module registers all three sweeps on the Celery app."""
    registered = celery_app.celery_app.conf.beat_schedule

    assert {
        "scheduler.run_deadline_sweep",
        "scheduler.run_issue_watch",
        "scheduler.run_weekly_report",
    } <= set(registered)
    assert celery_app.celery_app.conf.task_default_queue == "scheduler"


def test_tasks_return_result_payloads(monkeypatch) -> None:
    """Tasks run on the shared runner and return serializable counters."""
    runner = _StubRunner()
    monkeypatch.setattr(celery_app, "_RUNNER", runner)

    deadline = celery_app.run_deadline_sweep()
    issues = celery_app.run_issue_watch()
    weekly = celery_app.run_weekly_report()

    assert deadline == {
        "kind": "deadline",
        "status": "completed",
        "scanned": 3,
        "delivered": 2,
        "failed": 1,
        "changed": 1,
    }
    assert issues["status"] == "skipped"
    assert weekly["delivered"] == 2
    assert runner.calls == ["deadline", "issue_watch", "weekly_report"]


def test_runner_is_built_once(monkeypatch) -> None:
    """The runner factory is invoked lazily and only once per worker."""
    built: list[_StubRunner] = []

    def factory() -> _StubRunner:
        runner = _StubRunner()
        built.append(runner)
        return runner

    monkeypatch.setattr(celery_app, "_RUNNER", None)
    monkeypatch.setattr(celery_app, "_runner_factory", factory)

    celery_app.run_deadline_sweep()
    celery_app.run_issue_watch()

    assert len(built) == 1
    assert built[0].calls == ["deadline", "issue_watch"]
