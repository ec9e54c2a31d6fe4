"""Immutable entity snapshots consumed by the status and eligibility engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Mapping

from tracker.enums import (
    ACTIVE_ISSUE_STATUSES,
    IssueImpact,
    IssueStatus,
    MilestoneStatus,
    NotificationKind,
    ProjectStatus,
)


@dataclass(frozen=True)
class ProjectState:
    """Snapshot of a project row."""

    id: int
    guild_id: str
    name: str
    status: ProjectStatus
    pm_id: str
    start_date: date
    end_date: date
    description: str | None = None
    channel_id: str | None = None
    man_hours: float | None = None
    personnel: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class MilestoneState:
    """Snapshot of a milestone row plus its delivered notification kinds."""

    id: int
    project_id: int
    name: str
    status: MilestoneStatus
    target_date: date
    assignee_id: str | None = None
    description: str | None = None
    completed_at: datetime | None = None
    notifications: Mapping[NotificationKind, datetime] = field(
        default_factory=dict, hash=False
    )

    def notified(self, kind: NotificationKind) -> bool:
        """Return True when the given notification kind was already delivered."""
        return kind in self.notifications

    @property
    def notified_d7(self) -> bool:
        return self.notified(NotificationKind.D7)

    @property
    def notified_d1(self) -> bool:
        return self.notified(NotificationKind.D1)

    @property
    def notified_delayed(self) -> bool:
        return self.notified(NotificationKind.DELAYED)


@dataclass(frozen=True)
class IssueState:
    """Snapshot of an issue row."""

    id: int
    project_id: int
    title: str
    status: IssueStatus
    impact: IssueImpact
    created_at: datetime
    content: str = ""
    assignee_id: str | None = None
    last_warning_at: datetime | None = None
    resolution: str | None = None
    resolved_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        """Return True while the issue is OPEN or IN_ACTION."""
        return self.status in ACTIVE_ISSUE_STATUSES


@dataclass(frozen=True)
class GuildSettingsState:
    """Snapshot of a guild's delivery settings."""

    guild_id: str
    notification_channel_id: str | None = None
    admin_role_id: str | None = None
    pm_role_id: str | None = None
    timezone: str = "Asia/Seoul"


__all__ = [
    "GuildSettingsState",
    "IssueState",
    "MilestoneState",
    "ProjectState",
]
