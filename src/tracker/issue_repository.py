"""Repository helpers for issue persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Issue, Project
from time_utils import coerce_utc
from tracker.enums import ACTIVE_ISSUE_STATUSES, IssueImpact, IssueStatus
from tracker.states import IssueState
from tracker.status_rules import sort_issues_by_urgency
from tracker.store import UNSET, SessionRepository, fetch_or_raise, issue_to_state, stamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueCreateInput:
    """Input payload for creating an issue record."""

    project_id: int
    title: str
    content: str
    impact: IssueImpact = IssueImpact.MEDIUM
    assignee_id: str | None = None


@dataclass(frozen=True)
class IssueUpdateInput:
    """Input payload for updating issue fields other than status."""

    title: str | object = UNSET
    content: str | object = UNSET
    impact: IssueImpact | object = UNSET
    assignee_id: str | None | object = UNSET


@dataclass(frozen=True)
class IssueFilter:
    """Query filter for issue listings."""

    project_id: int | None = None
    guild_id: str | None = None
    statuses: tuple[IssueStatus, ...] = field(default_factory=tuple)
    impacts: tuple[IssueImpact, ...] = field(default_factory=tuple)
    assignee_id: str | None = None
    active_only: bool = False
    created_before: datetime | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    closed_from: datetime | None = None
    closed_to: datetime | None = None
    exclude_id: int | None = None


class IssueRepository(SessionRepository):
    """Repository for issue CRUD operations."""

    def create(self, payload: IssueCreateInput, *, now: datetime | None = None) -> IssueState:
        """Create and persist an OPEN issue."""

        def handler(session: Session) -> IssueState:
            timestamp = stamp(now)
            issue = Issue(
                project_id=payload.project_id,
                title=payload.title,
                content=payload.content,
                impact=IssueImpact(payload.impact).value,
                assignee_id=payload.assignee_id,
                status=IssueStatus.OPEN.value,
                created_at=timestamp,
                updated_at=timestamp,
            )
            session.add(issue)
            session.flush()
            return issue_to_state(issue)

        return self._execute(handler)

    def get(self, issue_id: int) -> IssueState | None:
        """Fetch an issue by its primary key."""

        def handler(session: Session) -> IssueState | None:
            issue = session.get(Issue, issue_id)
            return issue_to_state(issue) if issue is not None else None

        return self._execute(handler)

    def list(self, filters: IssueFilter | None = None) -> list[IssueState]:
        """List issues matching a filter, most urgent first."""
        filters = filters or IssueFilter()

        def handler(session: Session) -> list[IssueState]:
            stmt = _apply_filter(select(Issue), filters)
            return [issue_to_state(row) for row in session.scalars(stmt)]

        return sort_issues_by_urgency(self._execute(handler))

    def list_for_project(self, project_id: int) -> list[IssueState]:
        """List all issues of a project, most urgent first."""
        return self.list(IssueFilter(project_id=project_id))

    def count(self, filters: IssueFilter | None = None) -> int:
        """Count issues matching a filter."""
        filters = filters or IssueFilter()

        def handler(session: Session) -> int:
            stmt = _apply_filter(select(func.count(Issue.id)), filters)
            return int(session.scalar(stmt) or 0)

        return self._execute(handler)

    def count_active(self, project_id: int) -> int:
        """Count OPEN and IN_ACTION issues for a project."""
        return self.count(IssueFilter(project_id=project_id, active_only=True))

    def count_active_critical(self, project_id: int, *, exclude_id: int | None = None) -> int:
        """Count active CRITICAL issues for a project, optionally excluding one."""
        return self.count(
            IssueFilter(
                project_id=project_id,
                impacts=(IssueImpact.CRITICAL,),
                active_only=True,
                exclude_id=exclude_id,
            )
        )

    def update(
        self,
        issue_id: int,
        updates: IssueUpdateInput,
        *,
        now: datetime | None = None,
    ) -> IssueState:
        """Update non-status issue fields by ID."""

        def handler(session: Session) -> IssueState:
            issue = fetch_or_raise(session, Issue, issue_id, "Issue")
            for name in IssueUpdateInput.__dataclass_fields__:
                value = getattr(updates, name)
                if value is UNSET:
                    continue
                if name == "impact":
                    value = IssueImpact(value).value
                setattr(issue, name, value)
            issue.updated_at = stamp(now)
            session.flush()
            return issue_to_state(issue)

        return self._execute(handler)

    def save_transition(self, issue: IssueState, *, now: datetime | None = None) -> IssueState:
        """Persist lifecycle fields from a transitioned issue snapshot."""

        def handler(session: Session) -> IssueState:
            row = fetch_or_raise(session, Issue, issue.id, "Issue")
            row.status = issue.status.value
            row.resolution = issue.resolution
            row.resolved_at = coerce_utc(issue.resolved_at)
            row.closed_at = coerce_utc(issue.closed_at)
            row.updated_at = stamp(now)
            session.flush()
            return issue_to_state(row)

        return self._execute(handler)

    def mark_warned(self, issue_id: int, *, warned_at: datetime) -> None:
        """Stamp the last unattended-issue warning time."""

        def handler(session: Session) -> None:
            row = fetch_or_raise(session, Issue, issue_id, "Issue")
            row.last_warning_at = coerce_utc(warned_at)
            session.flush()
            return None

        self._execute(handler)


def _apply_filter(stmt, filters: IssueFilter):
    """Apply an IssueFilter to a select statement."""
    if filters.project_id is not None:
        stmt = stmt.where(Issue.project_id == filters.project_id)
    if filters.guild_id is not None:
        stmt = stmt.join(Project, Project.id == Issue.project_id).where(
            Project.guild_id == filters.guild_id
        )
    if filters.statuses:
        stmt = stmt.where(Issue.status.in_([status.value for status in filters.statuses]))
    if filters.active_only:
        stmt = stmt.where(Issue.status.in_([status.value for status in ACTIVE_ISSUE_STATUSES]))
    if filters.impacts:
        stmt = stmt.where(Issue.impact.in_([impact.value for impact in filters.impacts]))
    if filters.assignee_id is not None:
        stmt = stmt.where(Issue.assignee_id == filters.assignee_id)
    if filters.created_before is not None:
        stmt = stmt.where(Issue.created_at <= coerce_utc(filters.created_before))
    if filters.created_from is not None:
        stmt = stmt.where(Issue.created_at >= coerce_utc(filters.created_from))
    if filters.created_to is not None:
        stmt = stmt.where(Issue.created_at <= coerce_utc(filters.created_to))
    if filters.closed_from is not None:
        stmt = stmt.where(Issue.closed_at >= coerce_utc(filters.closed_from))
    if filters.closed_to is not None:
        stmt = stmt.where(Issue.closed_at <= coerce_utc(filters.closed_to))
    if filters.exclude_id is not None:
        stmt = stmt.where(Issue.id != filters.exclude_id)
    return stmt


__all__ = [
    "IssueCreateInput",
    "IssueFilter",
    "IssueRepository",
    "IssueUpdateInput",
]
