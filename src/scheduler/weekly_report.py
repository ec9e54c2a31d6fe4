"""Weekly per-guild activity report aggregation and rendering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Callable

from sqlalchemy.orm import Session

from time_utils import coerce_utc, to_local
from tracker.enums import IssueImpact, IssueStatus, MilestoneStatus, ProjectStatus
from tracker.issue_repository import IssueFilter, IssueRepository
from tracker.milestone_repository import MilestoneFilter, MilestoneRepository
from tracker.notifications import RenderedMessage
from tracker.project_repository import ProjectFilter, ProjectRepository

logger = logging.getLogger(__name__)

REPORT_WINDOW = timedelta(days=7)
UPCOMING_DAYS = 7


@dataclass(frozen=True)
class WeeklyReportData:
    """Counts summarizing a guild's trailing week."""

    guild_id: str
    window_start: datetime
    window_end: datetime
    projects_total: int
    projects_active: int
    projects_completed: int
    projects_with_issues: int
    milestones_completed: int
    milestones_delayed: int
    milestones_upcoming: int
    issues_opened: int
    issues_closed: int
    issues_critical: int


def collect_weekly_report(
    session_factory: Callable[[], Session],
    guild_id: str,
    *,
    now: datetime,
) -> WeeklyReportData:
    """Aggregate report counts over the window [now - 7 days, now].

    Upcoming milestones are SCHEDULED ones targeted from today through the
    next seven calendar days in the local timezone.
    """
    window_end = coerce_utc(now)
    window_start = window_end - REPORT_WINDOW
    today = to_local(window_end).date()
    projects = ProjectRepository(session_factory)
    milestones = MilestoneRepository(session_factory)
    issues = IssueRepository(session_factory)

    return WeeklyReportData(
        guild_id=guild_id,
        window_start=window_start,
        window_end=window_end,
        projects_total=projects.count(ProjectFilter(guild_id=guild_id)),
        projects_active=projects.count(
            ProjectFilter(guild_id=guild_id, exclude_statuses=(ProjectStatus.COMPLETED,))
        ),
        projects_completed=projects.count(
            ProjectFilter(
                guild_id=guild_id,
                statuses=(ProjectStatus.COMPLETED,),
                completed_from=window_start,
                completed_to=window_end,
            )
        ),
        projects_with_issues=projects.count(
            ProjectFilter(guild_id=guild_id, statuses=(ProjectStatus.ISSUE,))
        ),
        milestones_completed=milestones.count(
            MilestoneFilter(
                guild_id=guild_id,
                statuses=(MilestoneStatus.COMPLETED,),
                completed_from=window_start,
                completed_to=window_end,
            )
        ),
        milestones_delayed=milestones.count(
            MilestoneFilter(guild_id=guild_id, statuses=(MilestoneStatus.DELAYED,))
        ),
        milestones_upcoming=milestones.count(
            MilestoneFilter(
                guild_id=guild_id,
                statuses=(MilestoneStatus.SCHEDULED,),
                target_from=today,
                target_to=today + timedelta(days=UPCOMING_DAYS),
            )
        ),
        issues_opened=issues.count(
            IssueFilter(guild_id=guild_id, created_from=window_start, created_to=window_end)
        ),
        issues_closed=issues.count(
            IssueFilter(
                guild_id=guild_id,
                statuses=(IssueStatus.CLOSED,),
                closed_from=window_start,
                closed_to=window_end,
            )
        ),
        issues_critical=issues.count(
            IssueFilter(guild_id=guild_id, impacts=(IssueImpact.CRITICAL,), active_only=True)
        ),
    )


def build_weekly_report_message(data: WeeklyReportData) -> RenderedMessage:
    """Render report counts as a plain message."""
    start: date = to_local(data.window_start).date()
    end: date = to_local(data.window_end).date()
    period = f"{start.isoformat()} ~ {end.isoformat()}"
    return RenderedMessage(
        content=f"Weekly report for {period}",
        title="Weekly report",
        description=period,
        fields=(
            (
                "Projects",
                f"total {data.projects_total} / active {data.projects_active} / "
                f"completed {data.projects_completed} / with issues {data.projects_with_issues}",
            ),
            (
                "Milestones",
                f"completed {data.milestones_completed} / delayed {data.milestones_delayed} / "
                f"upcoming {data.milestones_upcoming}",
            ),
            (
                "Issues",
                f"opened {data.issues_opened} / closed {data.issues_closed} / "
                f"active critical {data.issues_critical}",
            ),
        ),
    )


__all__ = [
    "WeeklyReportData",
    "build_weekly_report_message",
    "collect_weekly_report",
]
