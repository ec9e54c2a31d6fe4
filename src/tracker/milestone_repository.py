"""Repository helpers for milestone persistence and notification records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from typing import Iterable, Sequence

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.orm import Session

from models import Milestone, MilestoneNotification, Project
from time_utils import coerce_utc
from tracker.enums import MilestoneStatus, NotificationKind
from tracker.states import MilestoneState
from tracker.store import (
    UNSET,
    SessionRepository,
    fetch_or_raise,
    group_notifications,
    milestone_to_state,
    stamp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MilestoneCreateInput:
    """Input payload for creating a milestone record."""

    project_id: int
    name: str
    target_date: date
    description: str | None = None
    assignee_id: str | None = None


@dataclass(frozen=True)
class MilestoneUpdateInput:
    """Input payload for updating milestone fields."""

    name: str | object = UNSET
    description: str | None | object = UNSET
    target_date: date | object = UNSET
    assignee_id: str | None | object = UNSET


@dataclass(frozen=True)
class MilestoneFilter:
    """Query filter for milestone listings.

    ``not_notified`` keeps only milestones with no delivered record for that
    kind, which lets sweeps push the flag check into SQL.
    """

    project_id: int | None = None
    guild_id: str | None = None
    statuses: tuple[MilestoneStatus, ...] = field(default_factory=tuple)
    target_from: date | None = None
    target_to: date | None = None
    target_before: date | None = None
    not_notified: NotificationKind | None = None
    completed_from: datetime | None = None
    completed_to: datetime | None = None
    assignee_id: str | None = None


class MilestoneRepository(SessionRepository):
    """Repository for milestone CRUD and notification bookkeeping."""

    def create(
        self,
        payload: MilestoneCreateInput,
        *,
        now: datetime | None = None,
    ) -> MilestoneState:
        """Create and persist a scheduled milestone."""

        def handler(session: Session) -> MilestoneState:
            timestamp = stamp(now)
            milestone = Milestone(
                project_id=payload.project_id,
                name=payload.name,
                description=payload.description,
                target_date=payload.target_date,
                assignee_id=payload.assignee_id,
                status=MilestoneStatus.SCHEDULED.value,
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(milestone)
            session.flush()
            return milestone_to_state(milestone)

        return self._execute(handler)

    def get(self, milestone_id: int) -> MilestoneState | None:
        """Fetch a milestone with its notification records."""

        def handler(session: Session) -> MilestoneState | None:
            milestone = session.get(Milestone, milestone_id)
            if milestone is None:
                return None
            return milestone_to_state(milestone, _load_notifications(session, [milestone_id]))

        return self._execute(handler)

    def list(self, filters: MilestoneFilter | None = None) -> list[MilestoneState]:
        """List milestones matching a filter, earliest target first."""
        filters = filters or MilestoneFilter()

        def handler(session: Session) -> list[MilestoneState]:
            stmt = _apply_filter(select(Milestone), filters).order_by(
                Milestone.target_date, Milestone.id
            )
            rows = list(session.scalars(stmt))
            grouped = group_notifications(
                _load_notifications(session, [row.id for row in rows])
            )
            return [milestone_to_state(row, grouped.get(row.id, ())) for row in rows]

        return self._execute(handler)

    def list_for_project(self, project_id: int) -> list[MilestoneState]:
        """List all milestones of a project."""
        return self.list(MilestoneFilter(project_id=project_id))

    def count(self, filters: MilestoneFilter | None = None) -> int:
        """Count milestones matching a filter."""
        filters = filters or MilestoneFilter()

        def handler(session: Session) -> int:
            stmt = _apply_filter(select(func.count(Milestone.id)), filters)
            return int(session.scalar(stmt) or 0)

        return self._execute(handler)

    def update(
        self,
        milestone_id: int,
        updates: MilestoneUpdateInput,
        *,
        now: datetime | None = None,
    ) -> MilestoneState:
        """Update milestone fields by ID; a new target date clears the D-7/D-1 records."""

        def handler(session: Session) -> MilestoneState:
            milestone = fetch_or_raise(session, Milestone, milestone_id, "Milestone")
            if updates.target_date is not UNSET and updates.target_date != milestone.target_date:
                # The delayed record survives date edits.
                session.execute(
                    delete(MilestoneNotification).where(
                        MilestoneNotification.milestone_id == milestone_id,
                        MilestoneNotification.kind.in_(
                            [NotificationKind.D7.value, NotificationKind.D1.value]
                        ),
                    )
                )
            for name in MilestoneUpdateInput.__dataclass_fields__:
                value = getattr(updates, name)
                if value is not UNSET:
                    setattr(milestone, name, value)
            milestone.updated_at = stamp(now)
            session.flush()
            return milestone_to_state(milestone, _load_notifications(session, [milestone_id]))

        return self._execute(handler)

    def save_completion(self, milestone: MilestoneState, *, now: datetime | None = None) -> None:
        """Persist the status and completion timestamp of a milestone snapshot."""

        def handler(session: Session) -> None:
            row = fetch_or_raise(session, Milestone, milestone.id, "Milestone")
            row.status = milestone.status.value
            row.completed_at = coerce_utc(milestone.completed_at)
            row.updated_at = stamp(now)
            session.flush()
            return None

        self._execute(handler)

    def set_status_bulk(
        self,
        milestone_ids: Sequence[int],
        status: MilestoneStatus,
        *,
        now: datetime | None = None,
    ) -> int:
        """Set one status on many milestones in a single statement."""
        if not milestone_ids:
            return 0

        def handler(session: Session) -> int:
            result = session.execute(
                update(Milestone)
                .where(Milestone.id.in_(list(milestone_ids)))
                .values(status=MilestoneStatus(status).value, updated_at=stamp(now))
            )
            return int(result.rowcount or 0)

        return self._execute(handler)

    def mark_notified(
        self,
        milestone_id: int,
        kind: NotificationKind,
        *,
        sent_at: datetime | None = None,
    ) -> bool:
        """Record a delivered notification; return False if it was already recorded."""

        def handler(session: Session) -> bool:
            existing = session.scalars(
                select(MilestoneNotification).where(
                    MilestoneNotification.milestone_id == milestone_id,
                    MilestoneNotification.kind == NotificationKind(kind).value,
                )
            ).first()
            if existing is not None:
                return False
            session.add(
                MilestoneNotification(
                    milestone_id=milestone_id,
                    kind=NotificationKind(kind).value,
                    sent_at=stamp(sent_at),
                )
            )
            session.flush()
            return True

        return self._execute(handler)


def _load_notifications(
    session: Session, milestone_ids: Iterable[int]
) -> list[MilestoneNotification]:
    ids = list(milestone_ids)
    if not ids:
        return []
    stmt = select(MilestoneNotification).where(MilestoneNotification.milestone_id.in_(ids))
    return list(session.scalars(stmt))


def _apply_filter(stmt, filters: MilestoneFilter):
    """Apply a MilestoneFilter to a select statement."""
    if filters.project_id is not None:
        stmt = stmt.where(Milestone.project_id == filters.project_id)
    if filters.guild_id is not None:
        stmt = stmt.join(Project, Project.id == Milestone.project_id).where(
            Project.guild_id == filters.guild_id
        )
    if filters.statuses:
        stmt = stmt.where(Milestone.status.in_([status.value for status in filters.statuses]))
    if filters.target_from is not None:
        stmt = stmt.where(Milestone.target_date >= filters.target_from)
    if filters.target_to is not None:
        stmt = stmt.where(Milestone.target_date <= filters.target_to)
    if filters.target_before is not None:
        stmt = stmt.where(Milestone.target_date < filters.target_before)
    if filters.not_notified is not None:
        sent = exists().where(
            MilestoneNotification.milestone_id == Milestone.id,
            MilestoneNotification.kind == NotificationKind(filters.not_notified).value,
        )
        stmt = stmt.where(~sent)
    if filters.completed_from is not None:
        stmt = stmt.where(Milestone.completed_at >= coerce_utc(filters.completed_from))
    if filters.completed_to is not None:
        stmt = stmt.where(Milestone.completed_at <= coerce_utc(filters.completed_to))
    if filters.assignee_id is not None:
        stmt = stmt.where(Milestone.assignee_id == filters.assignee_id)
    return stmt


__all__ = [
    "MilestoneCreateInput",
    "MilestoneFilter",
    "MilestoneRepository",
    "MilestoneUpdateInput",
]
