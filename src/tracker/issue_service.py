"""Issue command operations, including escalation and the critical alert path."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from sqlalchemy.orm import Session

from tracker.eligibility import due_for_critical_issue_immediate
from tracker.enums import IssueImpact, IssueStatus, ProjectStatus
from tracker.errors import DeliveryFailure, InvalidTransition, NotFound
from tracker.issue_repository import (
    IssueCreateInput,
    IssueFilter,
    IssueRepository,
    IssueUpdateInput,
)
from tracker.notifications import NotificationDispatcher, build_critical_issue_message
from tracker.project_repository import ProjectRepository
from tracker.states import IssueState, ProjectState
from tracker.status_rules import (
    ProjectStatusUpdate,
    apply_issue_creation_escalation,
    percentage,
    recompute_project_escalation,
    transition_issue_status,
)
from tracker.store import UNSET, check_length, stamp

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 2000


@dataclass(frozen=True)
class IssueCreateResult:
    """Outcome of creating an issue."""

    issue: IssueState
    project: ProjectState
    escalated: bool
    critical_alert_sent: bool


@dataclass(frozen=True)
class IssueTransitionResult:
    """Outcome of an issue status change."""

    issue: IssueState
    project: ProjectState
    project_status_changed: bool


@dataclass(frozen=True)
class IssueStats:
    """Issue counts for a project."""

    total: int
    open: int
    in_action: int
    resolved: int
    closed: int
    by_impact: dict[IssueImpact, int]
    resolution_rate: int


class IssueService:
    """Service for issue lifecycle and project escalation."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """Initialize the service with a session factory and optional dispatcher."""
        self._projects = ProjectRepository(session_factory)
        self._issues = IssueRepository(session_factory)
        self._dispatcher = dispatcher

    def create(
        self, payload: IssueCreateInput, *, now: datetime | None = None
    ) -> IssueCreateResult:
        """Raise an issue, escalating the project and alerting on CRITICAL impact."""
        check_length(payload.title, "title", TITLE_MAX_LENGTH, required=True)
        check_length(payload.content, "content", CONTENT_MAX_LENGTH, required=True)
        project = self._get_project(payload.project_id)
        if project.status == ProjectStatus.COMPLETED:
            raise InvalidTransition(
                f"Cannot raise issues on completed project {project.id}.",
                {"project_id": project.id},
            )

        issue = self._issues.create(payload, now=now)
        logger.info(
            "issue_created issue_id=%s project_id=%s impact=%s",
            issue.id,
            issue.project_id,
            issue.impact.value,
        )
        command = apply_issue_creation_escalation(project, issue)
        if command is not None:
            project = self._projects.apply_status_update(command, now=now)

        alert_sent = False
        if due_for_critical_issue_immediate(issue):
            alert_sent = self._send_critical_alert(project, issue)
        return IssueCreateResult(
            issue=issue,
            project=project,
            escalated=command is not None,
            critical_alert_sent=alert_sent,
        )

    def get(self, issue_id: int) -> IssueState:
        """Return an issue or raise NotFound."""
        issue = self._issues.get(issue_id)
        if issue is None:
            raise NotFound("Issue", issue_id)
        return issue

    def list(self, filters: IssueFilter | None = None) -> list[IssueState]:
        """List issues matching a filter, most urgent first."""
        return self._issues.list(filters)

    def list_critical(self, guild_id: str | None = None) -> list[IssueState]:
        """List active CRITICAL issues, optionally within one guild."""
        return self._issues.list(
            IssueFilter(guild_id=guild_id, impacts=(IssueImpact.CRITICAL,), active_only=True)
        )

    def update(
        self,
        issue_id: int,
        updates: IssueUpdateInput,
        *,
        now: datetime | None = None,
    ) -> IssueState:
        """Edit a non-closed issue; impact changes re-evaluate escalation."""
        issue = self.get(issue_id)
        if issue.status == IssueStatus.CLOSED:
            raise InvalidTransition(
                f"Issue {issue_id} is closed and cannot be edited.",
                {"issue_id": issue_id},
            )
        if updates.title is not UNSET:
            check_length(updates.title, "title", TITLE_MAX_LENGTH, required=True)
        if updates.content is not UNSET:
            check_length(updates.content, "content", CONTENT_MAX_LENGTH, required=True)
        updated = self._issues.update(issue_id, updates, now=now)

        if updated.is_active and updated.impact != issue.impact:
            project = self._get_project(updated.project_id)
            if updated.impact == IssueImpact.CRITICAL:
                command = apply_issue_creation_escalation(project, updated)
            elif issue.impact == IssueImpact.CRITICAL:
                command = recompute_project_escalation(
                    project, self._issues.count_active_critical(project.id)
                )
            else:
                command = None
            self._apply(command, now=now)
        return updated

    def transition_status(
        self,
        issue_id: int,
        target_status: IssueStatus,
        *,
        resolution: str | None = None,
        now: datetime | None = None,
    ) -> IssueTransitionResult:
        """Move an issue through its lifecycle and propagate escalation changes."""
        if resolution is not None:
            check_length(resolution, "resolution", CONTENT_MAX_LENGTH, required=False)
        issue = self.get(issue_id)
        transition = transition_issue_status(
            issue,
            target_status,
            now=stamp(now),
            resolution=resolution,
        )
        saved = self._issues.save_transition(transition.issue, now=now)
        project = self._get_project(saved.project_id)

        command: ProjectStatusUpdate | None = None
        if transition.recompute_project_escalation:
            remaining = self._issues.count_active_critical(project.id, exclude_id=saved.id)
            command = recompute_project_escalation(project, remaining)
        elif transition.reenters_active_set:
            command = apply_issue_creation_escalation(project, saved)
        if command is not None:
            project = self._projects.apply_status_update(command, now=now)

        logger.info(
            "issue_status_changed issue_id=%s from=%s to=%s",
            issue_id,
            issue.status.value,
            saved.status.value,
        )
        return IssueTransitionResult(
            issue=saved,
            project=project,
            project_status_changed=command is not None,
        )

    def close(
        self,
        issue_id: int,
        *,
        resolution: str | None = None,
        now: datetime | None = None,
    ) -> IssueTransitionResult:
        """Close an issue, recording an optional resolution."""
        return self.transition_status(
            issue_id,
            IssueStatus.CLOSED,
            resolution=resolution,
            now=now,
        )

    def stats(self, project_id: int) -> IssueStats:
        """Return issue counts and resolution rate for a project."""
        issues = self._issues.list_for_project(project_id)
        by_status = {status: 0 for status in IssueStatus}
        by_impact = {impact: 0 for impact in IssueImpact}
        for issue in issues:
            by_status[issue.status] += 1
            by_impact[issue.impact] += 1
        finished = by_status[IssueStatus.RESOLVED] + by_status[IssueStatus.CLOSED]
        return IssueStats(
            total=len(issues),
            open=by_status[IssueStatus.OPEN],
            in_action=by_status[IssueStatus.IN_ACTION],
            resolved=by_status[IssueStatus.RESOLVED],
            closed=by_status[IssueStatus.CLOSED],
            by_impact=by_impact,
            resolution_rate=percentage(finished, len(issues)),
        )

    def _get_project(self, project_id: int) -> ProjectState:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFound("Project", project_id)
        return project

    def _apply(self, command: ProjectStatusUpdate | None, *, now: datetime | None) -> None:
        if command is not None:
            self._projects.apply_status_update(command, now=now)

    def _send_critical_alert(self, project: ProjectState, issue: IssueState) -> bool:
        if self._dispatcher is None:
            logger.warning(
                "critical_issue_alert_skipped issue_id=%s reason=no_dispatcher", issue.id
            )
            return False
        try:
            message = build_critical_issue_message(project, issue)
            self._dispatcher.dispatch(project.guild_id, message)
        except DeliveryFailure as exc:
            logger.warning(
                "critical_issue_alert_failed issue_id=%s guild_id=%s reason=%s",
                issue.id,
                project.guild_id,
                exc.message,
            )
            return False
        return True


__all__ = [
    "IssueCreateResult",
    "IssueService",
    "IssueStats",
    "IssueTransitionResult",
]
