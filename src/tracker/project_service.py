"""Project command operations built on the status rules and repositories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Callable

from sqlalchemy.orm import Session

from time_utils import local_today
from tracker.enums import IssueImpact, MilestoneStatus, ParticipantRole, ProjectStatus
from tracker.errors import NotFound, ValidationFailed
from tracker.issue_repository import IssueRepository
from tracker.milestone_repository import MilestoneRepository
from tracker.project_repository import (
    ParticipantRecord,
    ProjectCreateInput,
    ProjectFilter,
    ProjectRepository,
    ProjectUpdateInput,
)
from tracker.states import ProjectState
from tracker.status_rules import (
    calculate_progress,
    complete_project,
    transition_project_status,
)
from tracker.store import UNSET, check_length, stamp

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
INITIAL_STATUSES = (ProjectStatus.PLANNING, ProjectStatus.IN_PROGRESS)


@dataclass(frozen=True)
class ProjectDetail:
    """Project snapshot with participant list and summary statistics."""

    project: ProjectState
    participants: list[ParticipantRecord]
    milestones_total: int
    milestones_completed: int
    milestones_delayed: int
    issues_total: int
    issues_open: int
    issues_critical: int
    progress: int


@dataclass(frozen=True)
class GuildProjectStats:
    """Project counts for a guild."""

    total: int
    active: int
    by_status: dict[ProjectStatus, int]


class ProjectService:
    """Service for project registration, lifecycle, and membership."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the service with a SQLAlchemy session factory."""
        self._projects = ProjectRepository(session_factory)
        self._milestones = MilestoneRepository(session_factory)
        self._issues = IssueRepository(session_factory)

    def create(self, payload: ProjectCreateInput, *, now: datetime | None = None) -> ProjectState:
        """Register a new project after validating its fields and period."""
        check_length(payload.name, "name", NAME_MAX_LENGTH, required=True)
        check_length(payload.description, "description", DESCRIPTION_MAX_LENGTH, required=False)
        _validate_period(payload.start_date, payload.end_date)
        if ProjectStatus(payload.status) not in INITIAL_STATUSES:
            raise ValidationFailed(
                "A new project must start as PLANNING or IN_PROGRESS.",
                {"status": ProjectStatus(payload.status).value},
            )
        project = self._projects.create(payload, now=now)
        logger.info(
            "project_created project_id=%s guild_id=%s pm_id=%s",
            project.id,
            project.guild_id,
            project.pm_id,
        )
        return project

    def get(self, project_id: int) -> ProjectState:
        """Return a project or raise NotFound."""
        project = self._projects.get(project_id)
        if project is None:
            raise NotFound("Project", project_id)
        return project

    def get_detail(self, project_id: int, *, today: date | None = None) -> ProjectDetail:
        """Return a project with milestone and issue statistics."""
        project = self.get(project_id)
        milestones = self._milestones.list_for_project(project_id)
        issues = self._issues.list_for_project(project_id)
        active = [issue for issue in issues if issue.is_active]
        return ProjectDetail(
            project=project,
            participants=self._projects.list_participants(project_id),
            milestones_total=len(milestones),
            milestones_completed=sum(
                1 for milestone in milestones if milestone.status == MilestoneStatus.COMPLETED
            ),
            milestones_delayed=sum(
                1 for milestone in milestones if milestone.status == MilestoneStatus.DELAYED
            ),
            issues_total=len(issues),
            issues_open=len(active),
            issues_critical=sum(1 for issue in active if issue.impact == IssueImpact.CRITICAL),
            progress=calculate_progress(
                project.start_date,
                project.end_date,
                today or local_today(),
            ),
        )

    def list(self, filters: ProjectFilter | None = None) -> list[ProjectState]:
        """List projects matching a filter."""
        return self._projects.list(filters)

    def update(
        self,
        project_id: int,
        updates: ProjectUpdateInput,
        *,
        now: datetime | None = None,
    ) -> ProjectState:
        """Update editable project fields."""
        project = self.get(project_id)
        if updates.name is not UNSET:
            check_length(updates.name, "name", NAME_MAX_LENGTH, required=True)
        if updates.description is not UNSET:
            check_length(
                updates.description, "description", DESCRIPTION_MAX_LENGTH, required=False
            )
        start_date = project.start_date if updates.start_date is UNSET else updates.start_date
        end_date = project.end_date if updates.end_date is UNSET else updates.end_date
        _validate_period(start_date, end_date)
        if updates.pm_id is not UNSET and updates.pm_id != project.pm_id:
            self._projects.add_participant(project_id, updates.pm_id, role=ParticipantRole.PM)
        return self._projects.update(project_id, updates, now=now)

    def update_status(
        self,
        project_id: int,
        target_status: ProjectStatus,
        *,
        now: datetime | None = None,
    ) -> ProjectState:
        """Apply an explicit status change, including reactivation."""
        project = self.get(project_id)
        command = transition_project_status(project, target_status)
        return self._projects.apply_status_update(command, now=now)

    def complete(self, project_id: int, *, now: datetime | None = None) -> ProjectState:
        """Complete a project once all of its issues are resolved or closed."""
        project = self.get(project_id)
        open_issues = self._issues.count_active(project_id)
        command = complete_project(project, open_issues, now=stamp(now))
        return self._projects.apply_status_update(command, now=now)

    def add_participant(self, project_id: int, user_id: str) -> bool:
        """Add a member to the project; return False if already present."""
        self.get(project_id)
        return self._projects.add_participant(project_id, user_id)

    def remove_participant(self, project_id: int, user_id: str) -> bool:
        """Remove a member from the project; the PM cannot be removed."""
        project = self.get(project_id)
        if project.pm_id == user_id:
            raise ValidationFailed(
                "The project PM cannot be removed from participants.",
                {"project_id": project_id, "user_id": user_id},
            )
        return self._projects.remove_participant(project_id, user_id)

    def list_participants(self, project_id: int) -> list[ParticipantRecord]:
        """Return participants of a project."""
        self.get(project_id)
        return self._projects.list_participants(project_id)

    def guild_stats(self, guild_id: str) -> GuildProjectStats:
        """Return per-status project counts for a guild."""
        by_status = self._projects.count_by_status(guild_id)
        total = sum(by_status.values())
        return GuildProjectStats(
            total=total,
            active=total - by_status[ProjectStatus.COMPLETED],
            by_status=by_status,
        )


def _validate_period(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ValidationFailed(
            "end_date must be after start_date.",
            {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


__all__ = [
    "GuildProjectStats",
    "ProjectDetail",
    "ProjectService",
]
