"""Milestone command operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Callable

from sqlalchemy.orm import Session

from time_utils import local_today
from tracker.enums import MilestoneStatus, ProjectStatus
from tracker.errors import InvalidTransition, NotFound, ValidationFailed
from tracker.milestone_repository import (
    MilestoneCreateInput,
    MilestoneFilter,
    MilestoneRepository,
    MilestoneUpdateInput,
)
from tracker.project_repository import ProjectRepository
from tracker.states import MilestoneState, ProjectState
from tracker.status_rules import complete_milestone, percentage
from tracker.store import UNSET, check_length, stamp

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000


@dataclass(frozen=True)
class MilestoneStats:
    """Milestone counts for a project."""

    total: int
    completed: int
    delayed: int
    scheduled: int
    completion_rate: int


class MilestoneService:
    """Service for milestone scheduling and completion."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the service with a SQLAlchemy session factory."""
        self._projects = ProjectRepository(session_factory)
        self._milestones = MilestoneRepository(session_factory)

    def create(
        self,
        payload: MilestoneCreateInput,
        *,
        now: datetime | None = None,
    ) -> MilestoneState:
        """Schedule a milestone inside its project's period."""
        check_length(payload.name, "name", NAME_MAX_LENGTH, required=True)
        check_length(payload.description, "description", DESCRIPTION_MAX_LENGTH, required=False)
        project = self._open_project(payload.project_id, action="add milestones to")
        _validate_target_date(project, payload.target_date)
        milestone = self._milestones.create(payload, now=now)
        logger.info(
            "milestone_created milestone_id=%s project_id=%s target_date=%s",
            milestone.id,
            milestone.project_id,
            milestone.target_date.isoformat(),
        )
        return milestone

    def get(self, milestone_id: int) -> MilestoneState:
        """Return a milestone or raise NotFound."""
        milestone = self._milestones.get(milestone_id)
        if milestone is None:
            raise NotFound("Milestone", milestone_id)
        return milestone

    def list(self, filters: MilestoneFilter | None = None) -> list[MilestoneState]:
        """List milestones matching a filter."""
        return self._milestones.list(filters)

    def update(
        self,
        milestone_id: int,
        updates: MilestoneUpdateInput,
        *,
        now: datetime | None = None,
    ) -> MilestoneState:
        """Edit a milestone.

        Moving the target date clears the D-7/D-1 records so both reminders fire
        again for the new date. The delayed notification record is left untouched.
        """
        milestone = self.get(milestone_id)
        if milestone.status == MilestoneStatus.COMPLETED:
            raise InvalidTransition(
                f"Milestone {milestone_id} is completed and cannot be edited.",
                {"milestone_id": milestone_id},
            )
        if updates.name is not UNSET:
            check_length(updates.name, "name", NAME_MAX_LENGTH, required=True)
        if updates.description is not UNSET:
            check_length(
                updates.description, "description", DESCRIPTION_MAX_LENGTH, required=False
            )
        project = self._open_project(milestone.project_id, action="edit milestones of")
        if updates.target_date is not UNSET:
            _validate_target_date(project, updates.target_date)
        return self._milestones.update(milestone_id, updates, now=now)

    def complete(self, milestone_id: int, *, now: datetime | None = None) -> MilestoneState:
        """Mark a milestone completed."""
        milestone = self.get(milestone_id)
        completed = complete_milestone(milestone, now=stamp(now))
        self._milestones.save_completion(completed, now=now)
        logger.info(
            "milestone_completed milestone_id=%s previous_status=%s",
            milestone_id,
            milestone.status.value,
        )
        return completed

    def stats(self, project_id: int) -> MilestoneStats:
        """Return milestone counts and completion rate for a project."""
        milestones = self._milestones.list_for_project(project_id)
        completed = sum(1 for m in milestones if m.status == MilestoneStatus.COMPLETED)
        delayed = sum(1 for m in milestones if m.status == MilestoneStatus.DELAYED)
        scheduled = sum(1 for m in milestones if m.status == MilestoneStatus.SCHEDULED)
        return MilestoneStats(
            total=len(milestones),
            completed=completed,
            delayed=delayed,
            scheduled=scheduled,
            completion_rate=percentage(completed, len(milestones)),
        )

    def upcoming(
        self,
        guild_id: str,
        *,
        limit: int = 5,
        today: date | None = None,
    ) -> list[MilestoneState]:
        """Return the next scheduled milestones in a guild from today on."""
        milestones = self._milestones.list(
            MilestoneFilter(
                guild_id=guild_id,
                statuses=(MilestoneStatus.SCHEDULED,),
                target_from=today or local_today(),
            )
        )
        return milestones[:limit]

    def due_within(self, guild_id: str, days: int, *, today: date | None = None) -> int:
        """Count scheduled milestones due within the next ``days`` calendar days."""
        start = today or local_today()
        return self._milestones.count(
            MilestoneFilter(
                guild_id=guild_id,
                statuses=(MilestoneStatus.SCHEDULED,),
                target_from=start,
                target_to=start + timedelta(days=days),
            )
        )

    def _open_project(self, project_id: int, *, action: str) -> ProjectState:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFound("Project", project_id)
        if project.status == ProjectStatus.COMPLETED:
            raise InvalidTransition(
                f"Cannot {action} completed project {project_id}.",
                {"project_id": project_id},
            )
        return project


def _validate_target_date(project: ProjectState, target_date: date) -> None:
    if target_date < project.start_date or target_date > project.end_date:
        raise ValidationFailed(
            "target_date must fall within the project period.",
            {
                "target_date": target_date.isoformat(),
                "start_date": project.start_date.isoformat(),
                "end_date": project.end_date.isoformat(),
            },
        )


__all__ = [
    "MilestoneService",
    "MilestoneStats",
]
