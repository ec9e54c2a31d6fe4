"""Shared session handling and row-to-snapshot conversion for tracker repositories."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
import logging
from typing import Callable, Iterable, Mapping

from sqlalchemy.orm import Session

from models import GuildSettings, Issue, Milestone, MilestoneNotification, Project
from time_utils import coerce_utc, utc_now
from tracker.enums import (
    IssueImpact,
    IssueStatus,
    MilestoneStatus,
    NotificationKind,
    ProjectStatus,
)
from tracker.errors import NotFound, ValidationFailed
from tracker.states import GuildSettingsState, IssueState, MilestoneState, ProjectState

UNSET = object()
logger = logging.getLogger(__name__)


class SessionRepository:
    """Base repository that runs work inside a managed session."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


def stamp(now: datetime | None = None) -> datetime:
    """Return ``now`` normalized to UTC, defaulting to the current time."""
    return coerce_utc(now) if now is not None else utc_now()


def fetch_or_raise(session: Session, model, entity_id: int, entity: str):
    """Return a row by primary key or raise NotFound."""
    row = session.get(model, entity_id)
    if row is None:
        raise NotFound(entity, entity_id)
    return row


def check_length(value: str | None, field_name: str, maximum: int, *, required: bool) -> None:
    """Validate a text field against a maximum length."""
    if value is None or value == "":
        if required:
            raise ValidationFailed(f"{field_name} is required.", {"field": field_name})
        return
    if len(value) > maximum:
        raise ValidationFailed(
            f"{field_name} must be at most {maximum} characters.",
            {"field": field_name, "max": maximum},
        )


def project_to_state(row: Project) -> ProjectState:
    """Convert a project row to a snapshot."""
    return ProjectState(
        id=row.id,
        guild_id=row.guild_id,
        name=row.name,
        status=ProjectStatus(row.status),
        pm_id=row.pm_id,
        start_date=row.start_date,
        end_date=row.end_date,
        description=row.description,
        channel_id=row.channel_id,
        man_hours=row.man_hours,
        personnel=row.personnel,
        created_at=coerce_utc(row.created_at),
        updated_at=coerce_utc(row.updated_at),
        completed_at=coerce_utc(row.completed_at),
    )


def milestone_to_state(
    row: Milestone,
    notifications: Iterable[MilestoneNotification] = (),
) -> MilestoneState:
    """Convert a milestone row and its notification records to a snapshot."""
    sent: dict[NotificationKind, object] = {
        NotificationKind(record.kind): coerce_utc(record.sent_at) for record in notifications
    }
    return MilestoneState(
        id=row.id,
        project_id=row.project_id,
        name=row.name,
        status=MilestoneStatus(row.status),
        target_date=row.target_date,
        assignee_id=row.assignee_id,
        description=row.description,
        completed_at=coerce_utc(row.completed_at),
        notifications=sent,
    )


def issue_to_state(row: Issue) -> IssueState:
    """Convert an issue row to a snapshot."""
    return IssueState(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        status=IssueStatus(row.status),
        impact=IssueImpact(row.impact),
        created_at=coerce_utc(row.created_at),
        content=row.content,
        assignee_id=row.assignee_id,
        last_warning_at=coerce_utc(row.last_warning_at),
        resolution=row.resolution,
        resolved_at=coerce_utc(row.resolved_at),
        closed_at=coerce_utc(row.closed_at),
    )


def guild_settings_to_state(row: GuildSettings) -> GuildSettingsState:
    """Convert a guild settings row to a snapshot."""
    return GuildSettingsState(
        guild_id=row.guild_id,
        notification_channel_id=row.notification_channel_id,
        admin_role_id=row.admin_role_id,
        pm_role_id=row.pm_role_id,
        timezone=row.timezone,
    )


def group_notifications(
    records: Iterable[MilestoneNotification],
) -> Mapping[int, list[MilestoneNotification]]:
    """Group notification records by milestone id."""
    grouped: dict[int, list[MilestoneNotification]] = {}
    for record in records:
        grouped.setdefault(record.milestone_id, []).append(record)
    return grouped


__all__ = [
    "SessionRepository",
    "UNSET",
    "check_length",
    "fetch_or_raise",
    "group_notifications",
    "guild_settings_to_state",
    "issue_to_state",
    "milestone_to_state",
    "project_to_state",
    "stamp",
]
