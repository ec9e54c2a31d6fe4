"""Data models for the Saeop tracker bot."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Tracker enums
ProjectStatusEnum = Enum(
    "PLANNING",
    "IN_PROGRESS",
    "ISSUE",
    "ON_HOLD",
    "COMPLETED",
    name="project_status",
    native_enum=False,
)
MilestoneStatusEnum = Enum(
    "SCHEDULED",
    "COMPLETED",
    "DELAYED",
    name="milestone_status",
    native_enum=False,
)
IssueStatusEnum = Enum(
    "OPEN",
    "IN_ACTION",
    "RESOLVED",
    "CLOSED",
    name="issue_status",
    native_enum=False,
)
IssueImpactEnum = Enum(
    "LOW",
    "MEDIUM",
    "HIGH",
    "CRITICAL",
    name="issue_impact",
    native_enum=False,
)
ParticipantRoleEnum = Enum(
    "PM",
    "MEMBER",
    name="participant_role",
    native_enum=False,
)
DocumentTypeEnum = Enum(
    "PLAN",
    "DESIGN",
    "MEETING",
    "REFERENCE",
    "CONTRACT",
    "REPORT",
    "OTHER",
    name="document_type",
    native_enum=False,
)
NotificationKindEnum = Enum(
    "D7",
    "D1",
    "DELAYED",
    name="milestone_notification_kind",
    native_enum=False,
)


# Database models
class Project(Base):
    """Tracked project registered within a guild."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    guild_id = Column(String(32), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(ProjectStatusEnum, nullable=False, default="PLANNING")
    pm_id = Column(String(32), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    channel_id = Column(String(32), nullable=True)
    man_hours = Column(Float, nullable=True)
    personnel = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class ProjectParticipant(Base):
    """Membership of a user in a project."""

    __tablename__ = "project_participants"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_participant"),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(32), nullable=False)
    role = Column(ParticipantRoleEnum, nullable=False, default="MEMBER")
    joined_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Milestone(Base):
    """Dated checkpoint within a project."""

    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    target_date = Column(Date, nullable=False, index=True)
    status = Column(MilestoneStatusEnum, nullable=False, default="SCHEDULED")
    assignee_id = Column(String(32), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class MilestoneNotification(Base):
    """Record that a one-shot milestone notification kind was delivered."""

    __tablename__ = "milestone_notifications"
    __table_args__ = (
        UniqueConstraint("milestone_id", "kind", name="uq_milestone_notification_kind"),
    )

    id = Column(Integer, primary_key=True)
    milestone_id = Column(
        Integer, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(NotificationKindEnum, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Issue(Base):
    """Problem raised against a project."""

    __tablename__ = "issues"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(IssueStatusEnum, nullable=False, default="OPEN")
    impact = Column(IssueImpactEnum, nullable=False, default="MEDIUM")
    assignee_id = Column(String(32), nullable=True)
    resolution = Column(Text, nullable=True)
    last_warning_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Decision(Base):
    """Recorded project decision."""

    __tablename__ = "decisions"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    reason = Column(Text, nullable=True)
    decider_id = Column(String(32), nullable=False)
    related_links = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Document(Base):
    """Document link registered against a project."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(200), nullable=False)
    type = Column(DocumentTypeEnum, nullable=False, default="OTHER")
    url = Column(Text, nullable=False)
    registrant_id = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class GuildSettings(Base):
    """Per-guild delivery and permission settings."""

    __tablename__ = "guild_settings"

    id = Column(Integer, primary_key=True)
    guild_id = Column(String(32), nullable=False, unique=True)
    notification_channel_id = Column(String(32), nullable=True)
    admin_role_id = Column(String(32), nullable=True)
    pm_role_id = Column(String(32), nullable=True)
    timezone = Column(String(64), nullable=False, default="Asia/Seoul")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
