"""Celery entry point for scheduled tracker sweeps."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable

from celery import Celery
from celery.schedules import crontab

from config import parse_hhmm, settings, weekday_index
from scheduler.sweeps import SweepResult, SweepRunner
from services.database import get_session_factory
from services.discord import DiscordNotifier
from tracker.guild_settings import GuildSettingsRepository
from tracker.notifications import NotificationDispatcher

LOGGER = logging.getLogger(__name__)

# Weekday names sidestep Celery numbering, which starts at Sunday=0.
_CRON_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _env(var: str, default: str) -> str:
    return os.environ.get(var, default)


celery_app = Celery("saeop.scheduler")
celery_app.conf.broker_url = _env("CELERY_BROKER_URL", f"{settings.redis.url}/1")
celery_app.conf.result_backend = _env("CELERY_RESULT_BACKEND", f"{settings.redis.url}/2")
celery_app.conf.task_default_queue = _env("CELERY_QUEUE_NAME", "scheduler")
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.enable_utc = True
celery_app.conf.timezone = settings.scheduler.timezone


def build_beat_schedule() -> dict[str, dict[str, Any]]:
    """Return beat entries for the three sweeps from scheduler settings."""
    scheduler_config = settings.scheduler
    deadline_hour, deadline_minute = parse_hhmm(scheduler_config.deadline_sweep_time)
    report_hour, report_minute = parse_hhmm(scheduler_config.weekly_report_time)
    report_day = _CRON_WEEKDAYS[weekday_index(scheduler_config.weekly_report_day)]
    return {
        "scheduler.run_deadline_sweep": {
            "task": "scheduler.run_deadline_sweep",
            "schedule": crontab(hour=deadline_hour, minute=deadline_minute),
        },
        "scheduler.run_issue_watch": {
            "task": "scheduler.run_issue_watch",
            "schedule": crontab(
                hour=f"*/{scheduler_config.issue_watch_interval_hours}", minute=0
            ),
        },
        "scheduler.run_weekly_report": {
            "task": "scheduler.run_weekly_report",
            "schedule": crontab(
                day_of_week=report_day, hour=report_hour, minute=report_minute
            ),
        },
    }


beat_schedule = celery_app.conf.get("beat_schedule")
if beat_schedule is None:
    beat_schedule = {}
beat_schedule.update(build_beat_schedule())
celery_app.conf.beat_schedule = beat_schedule


def _default_runner_factory() -> SweepRunner:
    """Build a sweep runner wired to the database and Discord."""
    session_factory = get_session_factory()
    dispatcher = NotificationDispatcher(
        DiscordNotifier(),
        GuildSettingsRepository(session_factory),
    )
    return SweepRunner(session_factory, dispatcher)


_runner_factory: Callable[[], SweepRunner] = _default_runner_factory
_RUNNER: SweepRunner | None = None


def _get_runner() -> SweepRunner:
    """Return the worker-wide runner so per-kind locks are shared."""
    global _RUNNER
    if _RUNNER is None:
        _RUNNER = _runner_factory()
    return _RUNNER


def _result_payload(result: SweepResult) -> dict[str, Any]:
    LOGGER.info(
        "Celery sweep completed: kind=%s status=%s delivered=%s failed=%s",
        result.kind,
        result.status,
        result.delivered,
        result.failed,
    )
    return {
        "kind": result.kind,
        "status": result.status,
        "scanned": result.scanned,
        "delivered": result.delivered,
        "failed": result.failed,
        "changed": result.changed,
    }


@celery_app.task(name="scheduler.run_deadline_sweep")
def run_deadline_sweep() -> dict[str, Any]:
    """Celery beat job for the daily milestone deadline sweep."""
    return _result_payload(_get_runner().run_deadline_sweep())


@celery_app.task(name="scheduler.run_issue_watch")
def run_issue_watch() -> dict[str, Any]:
    """Celery beat job for the unattended issue watch."""
    return _result_payload(_get_runner().run_issue_watch())


@celery_app.task(name="scheduler.run_weekly_report")
def run_weekly_report() -> dict[str, Any]:
    """Celery beat job for the weekly report."""
    return _result_payload(_get_runner().run_weekly_report())


__all__ = [
    "build_beat_schedule",
    "celery_app",
    "run_deadline_sweep",
    "run_issue_watch",
    "run_weekly_report",
]
