"""Status and kind enumerations shared by the tracker engine and storage."""

from __future__ import annotations

import enum


class ProjectStatus(str, enum.Enum):
    """Lifecycle states of a project."""

    PLANNING = "PLANNING"
    IN_PROGRESS = "IN_PROGRESS"
    ISSUE = "ISSUE"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"


class MilestoneStatus(str, enum.Enum):
    """Lifecycle states of a milestone."""

    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    DELAYED = "DELAYED"


class IssueStatus(str, enum.Enum):
    """Lifecycle states of an issue."""

    OPEN = "OPEN"
    IN_ACTION = "IN_ACTION"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class IssueImpact(str, enum.Enum):
    """Severity of an issue."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ParticipantRole(str, enum.Enum):
    """Role of a user within a project."""

    PM = "PM"
    MEMBER = "MEMBER"


class DocumentType(str, enum.Enum):
    """Category of a registered document link."""

    PLAN = "PLAN"
    DESIGN = "DESIGN"
    MEETING = "MEETING"
    REFERENCE = "REFERENCE"
    CONTRACT = "CONTRACT"
    REPORT = "REPORT"
    OTHER = "OTHER"


class NotificationKind(str, enum.Enum):
    """One-shot milestone notifications tracked per milestone."""

    D7 = "D7"
    D1 = "D1"
    DELAYED = "DELAYED"


ACTIVE_ISSUE_STATUSES = frozenset({IssueStatus.OPEN, IssueStatus.IN_ACTION})

IMPACT_RANK = {
    IssueImpact.CRITICAL: 4,
    IssueImpact.HIGH: 3,
    IssueImpact.MEDIUM: 2,
    IssueImpact.LOW: 1,
}

LEAD_DAY_KINDS = {
    7: NotificationKind.D7,
    1: NotificationKind.D1,
}

__all__ = [
    "ACTIVE_ISSUE_STATUSES",
    "DocumentType",
    "IMPACT_RANK",
    "IssueImpact",
    "IssueStatus",
    "LEAD_DAY_KINDS",
    "MilestoneStatus",
    "NotificationKind",
    "ParticipantRole",
    "ProjectStatus",
]
