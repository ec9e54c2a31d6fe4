"""Scheduled sweeps: stale milestone advancement, reminders, warnings, and reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import threading
from typing import Callable, Literal

from sqlalchemy.orm import Session

from config import settings
from scheduler.weekly_report import build_weekly_report_message, collect_weekly_report
from time_utils import coerce_utc, to_local
from tracker.eligibility import (
    due_for_issue_warning,
    due_for_milestone_delay,
    due_for_milestone_lead,
    lead_notification_kind,
)
from tracker.enums import IssueStatus, MilestoneStatus, NotificationKind
from tracker.errors import DeliveryFailure, NotFound
from tracker.guild_settings import GuildSettingsRepository
from tracker.issue_repository import IssueFilter, IssueRepository
from tracker.milestone_repository import MilestoneFilter, MilestoneRepository
from tracker.notifications import (
    NotificationDispatcher,
    RenderedMessage,
    build_issue_warning_message,
    build_milestone_delayed_message,
    build_milestone_lead_message,
)
from tracker.project_repository import ProjectRepository
from tracker.states import ProjectState
from tracker.status_rules import advance_stale_milestones

logger = logging.getLogger(__name__)

SweepKind = Literal["deadline", "issue_watch", "weekly_report"]
SweepStatus = Literal["completed", "skipped"]


@dataclass(frozen=True)
class SweepConfig:
    """Thresholds used by the sweeps."""

    milestone_lead_days: tuple[int, ...]
    issue_unattended_days: int
    issue_warning_cooldown_hours: int


def resolve_sweep_config(config: SweepConfig | None) -> SweepConfig:
    """Resolve sweep configuration with defaults from settings."""
    if config is not None:
        _validate_config(config)
        return config
    tracker_config = settings.tracker
    resolved = SweepConfig(
        milestone_lead_days=tuple(tracker_config.milestone_lead_days),
        issue_unattended_days=int(tracker_config.issue_unattended_days),
        issue_warning_cooldown_hours=int(tracker_config.issue_warning_cooldown_hours),
    )
    _validate_config(resolved)
    return resolved


@dataclass(frozen=True)
class SweepResult:
    """Outcome counters for one sweep execution."""

    kind: SweepKind
    status: SweepStatus
    scanned: int = 0
    delivered: int = 0
    failed: int = 0
    changed: int = 0


class _Counters:
    def __init__(self) -> None:
        self.scanned = 0
        self.delivered = 0
        self.failed = 0
        self.changed = 0


class SweepRunner:
    """Runs the three scheduled sweeps with per-kind non-overlap guarantees."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        dispatcher: NotificationDispatcher,
        *,
        config: SweepConfig | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with persistence, delivery, and configuration dependencies."""
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._config = resolve_sweep_config(config)
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._projects = ProjectRepository(session_factory)
        self._milestones = MilestoneRepository(session_factory)
        self._issues = IssueRepository(session_factory)
        self._guild_settings = GuildSettingsRepository(session_factory)
        self._locks: dict[str, threading.Lock] = {
            "deadline": threading.Lock(),
            "issue_watch": threading.Lock(),
            "weekly_report": threading.Lock(),
        }

    def is_running(self, kind: SweepKind) -> bool:
        """Return True while a sweep of the given kind is in progress."""
        return self._locks[kind].locked()

    def run_deadline_sweep(self, now: datetime | None = None) -> SweepResult:
        """Advance stale milestones, then send D-N and delayed notifications."""
        return self._guarded("deadline", self._deadline_sweep, now)

    def run_issue_watch(self, now: datetime | None = None) -> SweepResult:
        """Warn about OPEN issues left unattended past the threshold."""
        return self._guarded("issue_watch", self._issue_watch, now)

    def run_weekly_report(self, now: datetime | None = None) -> SweepResult:
        """Send one weekly report to every guild with a notification channel."""
        return self._guarded("weekly_report", self._weekly_report, now)

    def _guarded(
        self,
        kind: SweepKind,
        work: Callable[[datetime, _Counters], None],
        now: datetime | None,
    ) -> SweepResult:
        lock = self._locks[kind]
        if not lock.acquire(blocking=False):
            logger.warning("sweep_skipped kind=%s reason=already_running", kind)
            return SweepResult(kind=kind, status="skipped")
        try:
            current = coerce_utc(now or self._now_provider())
            counters = _Counters()
            logger.info("sweep_started kind=%s now=%s", kind, current.isoformat())
            work(current, counters)
        finally:
            lock.release()
        result = SweepResult(
            kind=kind,
            status="completed",
            scanned=counters.scanned,
            delivered=counters.delivered,
            failed=counters.failed,
            changed=counters.changed,
        )
        logger.info(
            "sweep_finished kind=%s scanned=%s delivered=%s failed=%s changed=%s",
            kind,
            result.scanned,
            result.delivered,
            result.failed,
            result.changed,
        )
        return result

    def _deadline_sweep(self, now: datetime, counters: _Counters) -> None:
        today = to_local(now).date()
        projects: dict[int, ProjectState] = {}

        try:
            stale = self._milestones.list(
                MilestoneFilter(statuses=(MilestoneStatus.SCHEDULED,), target_before=today)
            )
            changed_ids = advance_stale_milestones(stale, today)
            counters.changed += self._milestones.set_status_bulk(
                changed_ids, MilestoneStatus.DELAYED, now=now
            )
            if changed_ids:
                logger.info("milestones_delayed count=%s ids=%s", len(changed_ids), changed_ids)
        except Exception:
            logger.exception("Stale milestone advancement failed.")

        for lead_days in sorted(self._config.milestone_lead_days, reverse=True):
            kind = lead_notification_kind(lead_days)
            notify_day = today + timedelta(days=lead_days)
            try:
                candidates = self._milestones.list(
                    MilestoneFilter(
                        statuses=(MilestoneStatus.SCHEDULED,),
                        target_from=notify_day,
                        target_to=notify_day,
                        not_notified=kind,
                    )
                )
            except Exception:
                logger.exception("Milestone lead scan failed: lead_days=%s", lead_days)
                continue
            for milestone in candidates:
                if not due_for_milestone_lead(milestone, now, lead_days):
                    continue
                counters.scanned += 1
                self._deliver_milestone(
                    counters,
                    projects,
                    milestone.id,
                    milestone.project_id,
                    kind,
                    now,
                    lambda project, m=milestone: build_milestone_lead_message(project, m, today),
                )

        try:
            delayed = self._milestones.list(
                MilestoneFilter(
                    statuses=(MilestoneStatus.DELAYED,),
                    not_notified=NotificationKind.DELAYED,
                )
            )
        except Exception:
            logger.exception("Delayed milestone scan failed.")
            return
        for milestone in delayed:
            if not due_for_milestone_delay(milestone):
                continue
            counters.scanned += 1
            self._deliver_milestone(
                counters,
                projects,
                milestone.id,
                milestone.project_id,
                NotificationKind.DELAYED,
                now,
                lambda project, m=milestone: build_milestone_delayed_message(project, m, today),
            )

    def _issue_watch(self, now: datetime, counters: _Counters) -> None:
        cutoff = now - timedelta(days=self._config.issue_unattended_days)
        projects: dict[int, ProjectState] = {}
        try:
            candidates = self._issues.list(
                IssueFilter(statuses=(IssueStatus.OPEN,), created_before=cutoff)
            )
        except Exception:
            logger.exception("Unattended issue scan failed.")
            return
        for issue in candidates:
            if not due_for_issue_warning(
                issue,
                now,
                self._config.issue_unattended_days,
                self._config.issue_warning_cooldown_hours,
            ):
                continue
            counters.scanned += 1
            try:
                project = self._project(projects, issue.project_id)
                self._dispatcher.dispatch(
                    project.guild_id, build_issue_warning_message(project, issue, now)
                )
                self._issues.mark_warned(issue.id, warned_at=now)
                counters.delivered += 1
            except DeliveryFailure as exc:
                counters.failed += 1
                logger.warning(
                    "issue_warning_failed issue_id=%s reason=%s", issue.id, exc.message
                )
            except Exception:
                counters.failed += 1
                logger.exception("Issue warning failed: issue_id=%s", issue.id)

    def _weekly_report(self, now: datetime, counters: _Counters) -> None:
        try:
            guilds = self._guild_settings.list_with_notification_channel()
        except Exception:
            logger.exception("Weekly report guild scan failed.")
            return
        for guild in guilds:
            counters.scanned += 1
            try:
                data = collect_weekly_report(self._session_factory, guild.guild_id, now=now)
                self._dispatcher.dispatch(guild.guild_id, build_weekly_report_message(data))
                counters.delivered += 1
            except DeliveryFailure as exc:
                counters.failed += 1
                logger.warning(
                    "weekly_report_failed guild_id=%s reason=%s", guild.guild_id, exc.message
                )
            except Exception:
                counters.failed += 1
                logger.exception("Weekly report failed: guild_id=%s", guild.guild_id)

    def _deliver_milestone(
        self,
        counters: _Counters,
        projects: dict[int, ProjectState],
        milestone_id: int,
        project_id: int,
        kind: NotificationKind,
        now: datetime,
        render: Callable[[ProjectState], RenderedMessage],
    ) -> None:
        try:
            project = self._project(projects, project_id)
            self._dispatcher.dispatch(project.guild_id, render(project))
            self._milestones.mark_notified(milestone_id, kind, sent_at=now)
            counters.delivered += 1
        except DeliveryFailure as exc:
            counters.failed += 1
            logger.warning(
                "milestone_notification_failed milestone_id=%s kind=%s reason=%s",
                milestone_id,
                kind.value,
                exc.message,
            )
        except Exception:
            counters.failed += 1
            logger.exception(
                "Milestone notification failed: milestone_id=%s kind=%s",
                milestone_id,
                kind.value,
            )

    def _project(self, cache: dict[int, ProjectState], project_id: int) -> ProjectState:
        project = cache.get(project_id)
        if project is None:
            project = self._projects.get(project_id)
            if project is None:
                raise NotFound("Project", project_id)
            cache[project_id] = project
        return project


def _validate_config(config: SweepConfig) -> None:
    """Validate sweep configuration values."""
    for lead_days in config.milestone_lead_days:
        lead_notification_kind(lead_days)
    if config.issue_unattended_days < 0:
        raise ValueError("issue_unattended_days must be >= 0.")
    if config.issue_warning_cooldown_hours < 0:
        raise ValueError("issue_warning_cooldown_hours must be >= 0.")


__all__ = [
    "SweepConfig",
    "SweepResult",
    "SweepRunner",
    "resolve_sweep_config",
]
