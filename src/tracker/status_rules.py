"""Pure status transition rules for projects, milestones, and issues.

Every function here takes immutable snapshots and returns either an updated
snapshot or a status-update command for the caller to persist. Nothing in this
module touches the database or the clock; ``now`` and ``today`` are always
supplied by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import math
from datetime import date, datetime
from typing import Iterable, Sequence

from tracker.enums import (
    ACTIVE_ISSUE_STATUSES,
    IMPACT_RANK,
    IssueImpact,
    IssueStatus,
    MilestoneStatus,
    ProjectStatus,
)
from tracker.errors import AlreadyCompleted, InvalidTransition, OpenIssuesRemain
from tracker.states import IssueState, MilestoneState, ProjectState


@dataclass(frozen=True)
class ProjectStatusUpdate:
    """Command to move a project to a new status."""

    project_id: int
    from_status: ProjectStatus
    to_status: ProjectStatus
    reason: str
    completed_at: datetime | None = None


@dataclass(frozen=True)
class IssueTransition:
    """Result of an issue status transition."""

    issue: IssueState
    recompute_project_escalation: bool
    reenters_active_set: bool = False


def transition_issue_status(
    issue: IssueState,
    target_status: IssueStatus,
    *,
    now: datetime,
    resolution: str | None = None,
) -> IssueTransition:
    """Move an issue to a new status, stamping lifecycle timestamps.

    Raises:
        InvalidTransition: If the issue is already CLOSED.
    """
    target_status = IssueStatus(target_status)
    if issue.status == IssueStatus.CLOSED:
        raise InvalidTransition(
            f"Issue {issue.id} is closed and cannot change status.",
            {"issue_id": issue.id, "from": issue.status.value, "to": target_status.value},
        )

    changes: dict[str, object] = {"status": target_status}
    if target_status == IssueStatus.RESOLVED:
        changes["resolved_at"] = now
    elif target_status == IssueStatus.CLOSED:
        changes["closed_at"] = now
        if resolution is not None:
            changes["resolution"] = resolution

    updated = replace(issue, **changes)
    is_critical = issue.impact == IssueImpact.CRITICAL
    was_active = issue.status in ACTIVE_ISSUE_STATUSES
    now_active = target_status in ACTIVE_ISSUE_STATUSES
    return IssueTransition(
        issue=updated,
        recompute_project_escalation=is_critical and not now_active,
        reenters_active_set=is_critical and now_active and not was_active,
    )


def apply_issue_creation_escalation(
    project: ProjectState,
    issue: IssueState,
) -> ProjectStatusUpdate | None:
    """Escalate an in-progress project when an active critical issue appears."""
    if issue.impact != IssueImpact.CRITICAL or not issue.is_active:
        return None
    if project.status != ProjectStatus.IN_PROGRESS:
        return None
    return ProjectStatusUpdate(
        project_id=project.id,
        from_status=project.status,
        to_status=ProjectStatus.ISSUE,
        reason=f"critical issue {issue.id} opened",
    )


def recompute_project_escalation(
    project: ProjectState,
    remaining_active_critical: int,
) -> ProjectStatusUpdate | None:
    """De-escalate an ISSUE project once no active critical issues remain."""
    if project.status != ProjectStatus.ISSUE or remaining_active_critical > 0:
        return None
    return ProjectStatusUpdate(
        project_id=project.id,
        from_status=project.status,
        to_status=ProjectStatus.IN_PROGRESS,
        reason="no active critical issues remain",
    )


def transition_project_status(
    project: ProjectState,
    target_status: ProjectStatus,
) -> ProjectStatusUpdate:
    """Validate an explicit project status change.

    COMPLETED projects may only be reactivated to IN_PROGRESS. Completion
    itself goes through ``complete_project`` so the open-issue check applies.
    """
    target_status = ProjectStatus(target_status)
    if project.status == ProjectStatus.COMPLETED and target_status != ProjectStatus.IN_PROGRESS:
        raise InvalidTransition(
            f"Project {project.id} is completed; only reactivation to IN_PROGRESS is allowed.",
            {"project_id": project.id, "from": project.status.value, "to": target_status.value},
        )
    if target_status == ProjectStatus.COMPLETED:
        raise InvalidTransition(
            f"Project {project.id} must be completed through the completion command.",
            {"project_id": project.id, "from": project.status.value, "to": target_status.value},
        )
    return ProjectStatusUpdate(
        project_id=project.id,
        from_status=project.status,
        to_status=target_status,
        reason="reactivated" if project.status == ProjectStatus.COMPLETED else "manual",
    )


def complete_project(
    project: ProjectState,
    open_issue_count: int,
    *,
    now: datetime,
) -> ProjectStatusUpdate:
    """Complete a project when no active issues remain."""
    if project.status == ProjectStatus.COMPLETED:
        raise AlreadyCompleted(
            f"Project {project.id} is already completed.",
            {"project_id": project.id},
        )
    if open_issue_count > 0:
        raise OpenIssuesRemain(open_issue_count)
    return ProjectStatusUpdate(
        project_id=project.id,
        from_status=project.status,
        to_status=ProjectStatus.COMPLETED,
        reason="completed",
        completed_at=now,
    )


def complete_milestone(milestone: MilestoneState, *, now: datetime) -> MilestoneState:
    """Mark a milestone completed, whether it was scheduled or delayed."""
    if milestone.status == MilestoneStatus.COMPLETED:
        raise AlreadyCompleted(
            f"Milestone {milestone.id} is already completed.",
            {"milestone_id": milestone.id},
        )
    return replace(milestone, status=MilestoneStatus.COMPLETED, completed_at=now)


def advance_stale_milestones(
    milestones: Iterable[MilestoneState],
    today: date,
) -> list[int]:
    """Return ids of scheduled milestones whose target day is before today."""
    return [
        milestone.id
        for milestone in milestones
        if milestone.status == MilestoneStatus.SCHEDULED and milestone.target_date < today
    ]


def sort_issues_by_urgency(issues: Sequence[IssueState]) -> list[IssueState]:
    """Order issues by impact descending, then newest first."""
    by_recency = sorted(issues, key=lambda issue: issue.created_at, reverse=True)
    return sorted(by_recency, key=lambda issue: IMPACT_RANK[issue.impact], reverse=True)


def calculate_progress(start_date: date, end_date: date, today: date) -> int:
    """Return calendar-elapsed progress through a project period as a percentage."""
    total_days = (end_date - start_date).days
    elapsed_days = (today - start_date).days
    if total_days <= 0:
        return 100
    if elapsed_days <= 0:
        return 0
    if elapsed_days >= total_days:
        return 100
    return math.floor(elapsed_days / total_days * 100 + 0.5)


def percentage(part: int, total: int) -> int:
    """Return part/total as a rounded whole percentage, 0 when total is 0."""
    if total <= 0:
        return 0
    return math.floor(part / total * 100 + 0.5)


def days_until(target_date: date, today: date) -> int:
    """Return whole days from today to the target day (negative when past)."""
    return (target_date - today).days


def format_d_day(target_date: date, today: date) -> str:
    """Render a D-day label such as ``D-7``, ``D-Day`` or ``D+2``."""
    diff = days_until(target_date, today)
    if diff == 0:
        return "D-Day"
    if diff > 0:
        return f"D-{diff}"
    return f"D+{abs(diff)}"


__all__ = [
    "IssueTransition",
    "ProjectStatusUpdate",
    "advance_stale_milestones",
    "apply_issue_creation_escalation",
    "calculate_progress",
    "complete_milestone",
    "complete_project",
    "days_until",
    "format_d_day",
    "percentage",
    "recompute_project_escalation",
    "sort_issues_by_urgency",
    "transition_issue_status",
    "transition_project_status",
]
