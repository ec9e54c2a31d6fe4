"""Repository helpers for project persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Project, ProjectParticipant
from time_utils import coerce_utc
from tracker.enums import ParticipantRole, ProjectStatus
from tracker.states import ProjectState
from tracker.status_rules import ProjectStatusUpdate
from tracker.store import UNSET, SessionRepository, fetch_or_raise, project_to_state, stamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectCreateInput:
    """Input payload for creating a project record."""

    guild_id: str
    name: str
    pm_id: str
    start_date: date
    end_date: date
    description: str | None = None
    channel_id: str | None = None
    man_hours: float | None = None
    personnel: str | None = None
    participants: tuple[str, ...] = ()
    status: ProjectStatus = ProjectStatus.PLANNING


@dataclass(frozen=True)
class ProjectUpdateInput:
    """Input payload for updating project fields."""

    name: str | object = UNSET
    description: str | None | object = UNSET
    pm_id: str | object = UNSET
    start_date: date | object = UNSET
    end_date: date | object = UNSET
    channel_id: str | None | object = UNSET
    man_hours: float | None | object = UNSET
    personnel: str | None | object = UNSET


@dataclass(frozen=True)
class ProjectFilter:
    """Query filter for project listings."""

    guild_id: str | None = None
    statuses: tuple[ProjectStatus, ...] = field(default_factory=tuple)
    exclude_statuses: tuple[ProjectStatus, ...] = field(default_factory=tuple)
    pm_id: str | None = None
    completed_from: datetime | None = None
    completed_to: datetime | None = None


@dataclass(frozen=True)
class ParticipantRecord:
    """A user's membership in a project."""

    project_id: int
    user_id: str
    role: ParticipantRole


class ProjectRepository(SessionRepository):
    """Repository for project and participant CRUD operations."""

    def create(self, payload: ProjectCreateInput, *, now: datetime | None = None) -> ProjectState:
        """Create a project and register its PM and initial participants."""

        def handler(session: Session) -> ProjectState:
            timestamp = stamp(now)
            project = Project(
                guild_id=payload.guild_id,
                name=payload.name,
                description=payload.description,
                status=ProjectStatus(payload.status).value,
                pm_id=payload.pm_id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                channel_id=payload.channel_id,
                man_hours=payload.man_hours,
                personnel=payload.personnel,
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(project)
            session.flush()
            session.add(
                ProjectParticipant(
                    project_id=project.id,
                    user_id=payload.pm_id,
                    role=ParticipantRole.PM.value,
                    joined_at=timestamp,
                )
            )
            for user_id in dict.fromkeys(payload.participants):
                if user_id == payload.pm_id:
                    continue
                session.add(
                    ProjectParticipant(
                        project_id=project.id,
                        user_id=user_id,
                        role=ParticipantRole.MEMBER.value,
                        joined_at=timestamp,
                    )
                )
            session.flush()
            return project_to_state(project)

        return self._execute(handler)

    def get(self, project_id: int) -> ProjectState | None:
        """Fetch a project by its primary key."""

        def handler(session: Session) -> ProjectState | None:
            project = session.get(Project, project_id)
            return project_to_state(project) if project is not None else None

        return self._execute(handler)

    def list(self, filters: ProjectFilter | None = None) -> list[ProjectState]:
        """List projects matching a filter, newest first."""
        filters = filters or ProjectFilter()

        def handler(session: Session) -> list[ProjectState]:
            stmt = _apply_filter(select(Project), filters).order_by(
                Project.created_at.desc(), Project.id.desc()
            )
            return [project_to_state(row) for row in session.scalars(stmt)]

        return self._execute(handler)

    def count(self, filters: ProjectFilter | None = None) -> int:
        """Count projects matching a filter."""
        filters = filters or ProjectFilter()

        def handler(session: Session) -> int:
            stmt = _apply_filter(select(func.count(Project.id)), filters)
            return int(session.scalar(stmt) or 0)

        return self._execute(handler)

    def count_by_status(self, guild_id: str) -> dict[ProjectStatus, int]:
        """Return per-status project counts for a guild."""

        def handler(session: Session) -> dict[ProjectStatus, int]:
            stmt = (
                select(Project.status, func.count(Project.id))
                .where(Project.guild_id == guild_id)
                .group_by(Project.status)
            )
            counts = {status: 0 for status in ProjectStatus}
            for status, total in session.execute(stmt):
                counts[ProjectStatus(status)] = int(total)
            return counts

        return self._execute(handler)

    def update(
        self,
        project_id: int,
        updates: ProjectUpdateInput,
        *,
        now: datetime | None = None,
    ) -> ProjectState:
        """Update project fields by ID."""

        def handler(session: Session) -> ProjectState:
            project = fetch_or_raise(session, Project, project_id, "Project")
            for name in ProjectUpdateInput.__dataclass_fields__:
                value = getattr(updates, name)
                if value is not UNSET:
                    setattr(project, name, value)
            project.updated_at = stamp(now)
            session.flush()
            return project_to_state(project)

        return self._execute(handler)

    def apply_status_update(
        self,
        update: ProjectStatusUpdate,
        *,
        now: datetime | None = None,
    ) -> ProjectState:
        """Persist a status command produced by the status rules."""

        def handler(session: Session) -> ProjectState:
            project = fetch_or_raise(session, Project, update.project_id, "Project")
            project.status = update.to_status.value
            if update.to_status == ProjectStatus.COMPLETED:
                project.completed_at = coerce_utc(update.completed_at)
            elif update.from_status == ProjectStatus.COMPLETED:
                project.completed_at = None
            project.updated_at = stamp(now)
            session.flush()
            logger.info(
                "project_status_changed project_id=%s from=%s to=%s reason=%s",
                update.project_id,
                update.from_status.value,
                update.to_status.value,
                update.reason,
            )
            return project_to_state(project)

        return self._execute(handler)

    def list_participants(self, project_id: int) -> list[ParticipantRecord]:
        """Return participants for a project, PM first."""

        def handler(session: Session) -> list[ParticipantRecord]:
            stmt = (
                select(ProjectParticipant)
                .where(ProjectParticipant.project_id == project_id)
                .order_by(ProjectParticipant.joined_at, ProjectParticipant.id)
            )
            records = [
                ParticipantRecord(
                    project_id=row.project_id,
                    user_id=row.user_id,
                    role=ParticipantRole(row.role),
                )
                for row in session.scalars(stmt)
            ]
            return sorted(records, key=lambda record: record.role != ParticipantRole.PM)

        return self._execute(handler)

    def add_participant(
        self,
        project_id: int,
        user_id: str,
        *,
        role: ParticipantRole = ParticipantRole.MEMBER,
        now: datetime | None = None,
    ) -> bool:
        """Add a participant; return False when the user is already a member."""

        def handler(session: Session) -> bool:
            fetch_or_raise(session, Project, project_id, "Project")
            if _find_participant(session, project_id, user_id) is not None:
                return False
            session.add(
                ProjectParticipant(
                    project_id=project_id,
                    user_id=user_id,
                    role=ParticipantRole(role).value,
                    joined_at=stamp(now),
                )
            )
            session.flush()
            return True

        return self._execute(handler)

    def remove_participant(self, project_id: int, user_id: str) -> bool:
        """Remove a participant; return False when the user was not a member."""

        def handler(session: Session) -> bool:
            participant = _find_participant(session, project_id, user_id)
            if participant is None:
                return False
            session.delete(participant)
            session.flush()
            return True

        return self._execute(handler)


def _find_participant(
    session: Session, project_id: int, user_id: str
) -> ProjectParticipant | None:
    stmt = select(ProjectParticipant).where(
        ProjectParticipant.project_id == project_id,
        ProjectParticipant.user_id == user_id,
    )
    return session.scalars(stmt).first()


def _apply_filter(stmt, filters: ProjectFilter):
    """Apply a ProjectFilter to a select statement."""
    if filters.guild_id is not None:
        stmt = stmt.where(Project.guild_id == filters.guild_id)
    if filters.statuses:
        stmt = stmt.where(Project.status.in_([status.value for status in filters.statuses]))
    if filters.exclude_statuses:
        stmt = stmt.where(
            Project.status.not_in([status.value for status in filters.exclude_statuses])
        )
    if filters.pm_id is not None:
        stmt = stmt.where(Project.pm_id == filters.pm_id)
    if filters.completed_from is not None:
        stmt = stmt.where(Project.completed_at >= coerce_utc(filters.completed_from))
    if filters.completed_to is not None:
        stmt = stmt.where(Project.completed_at <= coerce_utc(filters.completed_to))
    return stmt


__all__ = [
    "ParticipantRecord",
    "ProjectCreateInput",
    "ProjectFilter",
    "ProjectRepository",
    "ProjectUpdateInput",
]
