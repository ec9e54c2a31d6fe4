"""Notification delivery contract, dispatcher, and message builders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from typing import Protocol

from time_utils import coerce_utc, to_local
from tracker.errors import DeliveryFailure
from tracker.guild_settings import GuildSettingsRepository
from tracker.states import IssueState, MilestoneState, ProjectState
from tracker.status_rules import days_until, format_d_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedMessage:
    """Plain message handed to a notifier."""

    content: str
    title: str | None = None
    description: str | None = None
    fields: tuple[tuple[str, str], ...] = field(default_factory=tuple)


class Notifier(Protocol):
    """Delivers a rendered message to a destination channel."""

    def deliver(self, destination_key: str, message: RenderedMessage) -> bool:
        """Deliver a message and return True on success."""


class NotificationDispatcher:
    """Resolve a guild's notification channel and hand messages to a notifier."""

    def __init__(self, notifier: Notifier, guild_settings: GuildSettingsRepository) -> None:
        """Initialize the dispatcher with a notifier and settings repository."""
        self._notifier = notifier
        self._guild_settings = guild_settings

    def resolve_destination(self, guild_id: str) -> str | None:
        """Return the guild's notification channel id, if configured."""
        settings_state = self._guild_settings.get(guild_id)
        if settings_state is None:
            return None
        return settings_state.notification_channel_id

    def dispatch(self, guild_id: str, message: RenderedMessage) -> str:
        """Deliver a message to the guild's channel and return the channel id.

        Raises:
            DeliveryFailure: When no channel is configured or delivery fails.
        """
        destination = self.resolve_destination(guild_id)
        if not destination:
            raise DeliveryFailure(
                f"No notification channel configured for guild {guild_id}.",
                {"guild_id": guild_id, "reason": "no_channel"},
            )
        try:
            delivered = self._notifier.deliver(destination, message)
        except Exception as exc:
            raise DeliveryFailure(
                f"Notifier raised while delivering to {destination}: {exc}",
                {"guild_id": guild_id, "channel_id": destination, "reason": "notifier_error"},
            ) from exc
        if not delivered:
            raise DeliveryFailure(
                f"Notifier reported failure delivering to {destination}.",
                {"guild_id": guild_id, "channel_id": destination, "reason": "rejected"},
            )
        logger.debug("notification_delivered guild_id=%s channel_id=%s", guild_id, destination)
        return destination


def mention(user_id: str | None) -> str:
    """Return a chat mention for a user id, or an empty string."""
    return f"<@{user_id}>" if user_id else ""


def build_milestone_lead_message(
    project: ProjectState,
    milestone: MilestoneState,
    today: date,
) -> RenderedMessage:
    """Build the D-N reminder for an upcoming milestone."""
    label = format_d_day(milestone.target_date, today)
    remaining = days_until(milestone.target_date, today)
    target = mention(milestone.assignee_id)
    prefix = f"{target} " if target else ""
    return RenderedMessage(
        content=f"{prefix}Milestone due in {remaining} day(s): {milestone.name}",
        title=f"{label} | {milestone.name}",
        description=f"Project: {project.name}",
        fields=(
            ("Target date", milestone.target_date.isoformat()),
            ("Assignee", target or "unassigned"),
        ),
    )


def build_milestone_delayed_message(
    project: ProjectState,
    milestone: MilestoneState,
    today: date,
) -> RenderedMessage:
    """Build the one-time alert for a milestone that slipped past its date."""
    overdue = -days_until(milestone.target_date, today)
    return RenderedMessage(
        content=f"{mention(project.pm_id)} Milestone delayed: {milestone.name}",
        title=f"Delayed | {milestone.name}",
        description=f"Project: {project.name}",
        fields=(
            ("Target date", milestone.target_date.isoformat()),
            ("Days overdue", str(overdue)),
            ("Assignee", mention(milestone.assignee_id) or "unassigned"),
        ),
    )


def build_issue_warning_message(
    project: ProjectState,
    issue: IssueState,
    now: datetime,
) -> RenderedMessage:
    """Build the warning for an issue left OPEN too long."""
    age_days = (coerce_utc(now) - coerce_utc(issue.created_at)).days
    mentions = " ".join(
        part for part in (mention(issue.assignee_id), mention(project.pm_id)) if part
    )
    return RenderedMessage(
        content=f"{mentions} Issue unattended for {age_days} day(s): {issue.title}",
        title=f"Unattended issue | {issue.title}",
        description=f"Project: {project.name}",
        fields=(
            ("Impact", issue.impact.value),
            ("Opened", to_local(issue.created_at).strftime("%Y-%m-%d %H:%M")),
        ),
    )


def build_critical_issue_message(project: ProjectState, issue: IssueState) -> RenderedMessage:
    """Build the immediate alert for a newly created critical issue."""
    return RenderedMessage(
        content=f"@here Critical issue raised in {project.name}: {issue.title}",
        title=f"Critical issue | {issue.title}",
        description=issue.content or None,
        fields=(
            ("Project", project.name),
            ("Assignee", mention(issue.assignee_id) or "unassigned"),
        ),
    )


__all__ = [
    "NotificationDispatcher",
    "Notifier",
    "RenderedMessage",
    "build_critical_issue_message",
    "build_issue_warning_message",
    "build_milestone_delayed_message",
    "build_milestone_lead_message",
    "mention",
]
