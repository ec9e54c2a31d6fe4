"""Unit tests for notification dispatch and message builders."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from config import settings
from tracker.enums import IssueImpact, IssueStatus, MilestoneStatus, ProjectStatus
from tracker.errors import DeliveryFailure
from tracker.guild_settings import GuildSettingsRepository, GuildSettingsUpdateInput
from tracker.notifications import (
    NotificationDispatcher,
    RenderedMessage,
    build_critical_issue_message,
    build_issue_warning_message,
    build_milestone_delayed_message,
    build_milestone_lead_message,
    mention,
)
from tracker.states import IssueState, MilestoneState, ProjectState

PROJECT = ProjectState(
    id=1,
    guild_id="guild-1",
    name="Website",
    status=ProjectStatus.IN_PROGRESS,
    pm_id="pm-1",
    start_date=date(2024, 1, 1),
    end_date=date(2024, 1, 31),
)
MILESTONE = MilestoneState(
    id=10,
    project_id=1,
    name="Beta",
    status=MilestoneStatus.SCHEDULED,
    target_date=date(2024, 1, 18),
    assignee_id="dev-1",
)
ISSUE = IssueState(
    id=5,
    project_id=1,
    title="Login broken",
    status=IssueStatus.OPEN,
    impact=IssueImpact.CRITICAL,
    created_at=datetime(2024, 1, 7, 0, 0, tzinfo=timezone.utc),
    content="Users cannot sign in",
)


@pytest.fixture(autouse=True)
def _seoul(monkeypatch):
    monkeypatch.setattr(settings.scheduler, "timezone", "Asia/Seoul", raising=False)


def _dispatcher(session_factory: sessionmaker, notifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, GuildSettingsRepository(session_factory))


def test_dispatch_delivers_to_configured_channel(
    sqlite_session_factory: sessionmaker, recording_notifier
) -> None:
    """Messages go to the guild's notification channel."""
    GuildSettingsRepository(sqlite_session_factory).set_notification_channel("guild-1", "chan-1")
    dispatcher = _dispatcher(sqlite_session_factory, recording_notifier)

    channel = dispatcher.dispatch("guild-1", RenderedMessage(content="hi"))

    assert channel == "chan-1"
    assert recording_notifier.contents() == ["hi"]


def test_dispatch_without_channel_fails(
    sqlite_session_factory: sessionmaker, recording_notifier
) -> None:
    """A guild without a channel cannot receive notifications."""
    dispatcher = _dispatcher(sqlite_session_factory, recording_notifier)

    with pytest.raises(DeliveryFailure) as excinfo:
        dispatcher.dispatch("guild-1", RenderedMessage(content="hi"))

    assert excinfo.value.details["reason"] == "no_channel"
    assert recording_notifier.delivered == []


@pytest.mark.parametrize(
    ("attribute", "reason"),
    [("reject_channels", "rejected"), ("raise_channels", "notifier_error")],
)
def test_dispatch_reports_notifier_failures(
    sqlite_session_factory: sessionmaker, recording_notifier, attribute, reason
) -> None:
    """Rejected deliveries and notifier exceptions both surface as DeliveryFailure."""
    GuildSettingsRepository(sqlite_session_factory).set_notification_channel("guild-1", "chan-1")
    getattr(recording_notifier, attribute).add("chan-1")
    dispatcher = _dispatcher(sqlite_session_factory, recording_notifier)

    with pytest.raises(DeliveryFailure) as excinfo:
        dispatcher.dispatch("guild-1", RenderedMessage(content="hi"))

    assert excinfo.value.details == {
        "guild_id": "guild-1",
        "channel_id": "chan-1",
        "reason": reason,
    }
    assert excinfo.value.to_dict()["code"] == "DELIVERY_FAILURE"


def test_mention_formats_user_ids() -> None:
    assert mention("dev-1") == "<@dev-1>"
    assert mention(None) == ""


def test_lead_message_uses_d_day_label() -> None:
    """Lead reminders mention the assignee and carry the D-N label."""
    message = build_milestone_lead_message(PROJECT, MILESTONE, date(2024, 1, 11))

    assert message.content == "<@dev-1> Milestone due in 7 day(s): Beta"
    assert message.title == "D-7 | Beta"
    assert ("Target date", "2024-01-18") in message.fields


def test_lead_message_without_assignee() -> None:
    """Unassigned milestones still produce a readable reminder."""
    unassigned = MilestoneState(
        id=11,
        project_id=1,
        name="RC",
        status=MilestoneStatus.SCHEDULED,
        target_date=date(2024, 1, 12),
    )

    message = build_milestone_lead_message(PROJECT, unassigned, date(2024, 1, 11))

    assert message.content == "Milestone due in 1 day(s): RC"
    assert ("Assignee", "unassigned") in message.fields


def test_delayed_message_counts_overdue_days() -> None:
    """Delayed alerts mention the PM and report days overdue."""
    message = build_milestone_delayed_message(PROJECT, MILESTONE, date(2024, 1, 20))

    assert message.content == "<@pm-1> Milestone delayed: Beta"
    assert ("Days overdue", "2") in message.fields


def test_issue_warning_reports_age_in_local_time() -> None:
    """Warnings include the age in days and the local open time."""
    message = build_issue_warning_message(
        PROJECT, ISSUE, datetime(2024, 1, 11, 0, 0, tzinfo=timezone.utc)
    )

    assert message.content == "<@pm-1> Issue unattended for 4 day(s): Login broken"
    assert ("Opened", "2024-01-07 09:00") in message.fields


def test_critical_issue_message_alerts_channel() -> None:
    message = build_critical_issue_message(PROJECT, ISSUE)

    assert message.content.startswith("@here Critical issue raised in Website")
    assert message.description == "Users cannot sign in"


def test_dispatch_treats_blank_channel_as_missing(
    sqlite_session_factory: sessionmaker, recording_notifier
) -> None:
    """A stored empty channel id is never used as a destination."""
    GuildSettingsRepository(sqlite_session_factory).upsert(
        "guild-1", GuildSettingsUpdateInput(notification_channel_id="")
    )
    dispatcher = _dispatcher(sqlite_session_factory, recording_notifier)

    with pytest.raises(DeliveryFailure) as excinfo:
        dispatcher.dispatch("guild-1", RenderedMessage(content="hi"))

    assert excinfo.value.details["reason"] == "no_channel"
    assert recording_notifier.delivered == []


def test_issue_warning_accepts_naive_now() -> None:
    """A naive clock value is read as UTC when computing the issue age."""
    message = build_issue_warning_message(PROJECT, ISSUE, datetime(2024, 1, 11, 0, 0))

    assert message.content == "<@pm-1> Issue unattended for 4 day(s): Login broken"
