"""Unit tests for notification eligibility predicates."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from config import settings
from tracker.eligibility import (
    due_for_critical_issue_immediate,
    due_for_issue_warning,
    due_for_milestone_delay,
    due_for_milestone_lead,
    lead_notification_kind,
)
from tracker.enums import IssueImpact, IssueStatus, MilestoneStatus, NotificationKind
from tracker.states import IssueState, MilestoneState

# 09:00 on 2024-01-03 in Asia/Seoul.
NOW = datetime(2024, 1, 3, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _seoul_timezone(monkeypatch) -> None:
    """Pin the local calendar to Asia/Seoul."""
    monkeypatch.setattr(settings.scheduler, "timezone", "Asia/Seoul", raising=False)


def _milestone(
    target: date,
    status: MilestoneStatus = MilestoneStatus.SCHEDULED,
    notifications: dict | None = None,
) -> MilestoneState:
    """Build a milestone snapshot."""
    return MilestoneState(
        id=1,
        project_id=1,
        name="Launch",
        status=status,
        target_date=target,
        notifications=notifications or {},
    )


def _issue(
    *,
    status: IssueStatus = IssueStatus.OPEN,
    age: timedelta = timedelta(days=4),
    last_warning_at: datetime | None = None,
    impact: IssueImpact = IssueImpact.MEDIUM,
) -> IssueState:
    """Build an issue snapshot created ``age`` before NOW."""
    return IssueState(
        id=1,
        project_id=1,
        title="Slow build",
        status=status,
        impact=impact,
        created_at=NOW - age,
        last_warning_at=last_warning_at,
    )


def test_lead_notification_kind_maps_supported_days() -> None:
    """Seven and one day leads map to D7 and D1."""
    assert lead_notification_kind(7) == NotificationKind.D7
    assert lead_notification_kind(1) == NotificationKind.D1
    with pytest.raises(ValueError):
        lead_notification_kind(3)


def test_milestone_lead_due_exactly_seven_days_ahead() -> None:
    """D-7 fires only on the exact local day."""
    assert due_for_milestone_lead(_milestone(date(2024, 1, 10)), NOW, 7) is True
    assert due_for_milestone_lead(_milestone(date(2024, 1, 11)), NOW, 7) is False
    assert due_for_milestone_lead(_milestone(date(2024, 1, 9)), NOW, 7) is False


def test_milestone_lead_not_due_after_flag_is_set() -> None:
    """A delivered kind is never due again."""
    milestone = _milestone(date(2024, 1, 10), notifications={NotificationKind.D7: NOW})

    assert due_for_milestone_lead(milestone, NOW, 7) is False

    # D7 delivery does not suppress D1.
    tomorrow = _milestone(date(2024, 1, 4), notifications={NotificationKind.D7: NOW})
    assert due_for_milestone_lead(tomorrow, NOW, 1) is True


def test_milestone_lead_uses_local_calendar_day() -> None:
    """A late-evening UTC instant already belongs to the next local day."""
    late_utc = datetime(2024, 1, 2, 16, 0, tzinfo=timezone.utc)

    assert due_for_milestone_lead(_milestone(date(2024, 1, 4)), late_utc, 1) is True


def test_milestone_lead_skips_non_scheduled() -> None:
    """Delayed and completed milestones get no lead reminders."""
    for status in (MilestoneStatus.DELAYED, MilestoneStatus.COMPLETED):
        assert due_for_milestone_lead(_milestone(date(2024, 1, 10), status), NOW, 7) is False


def test_milestone_delay_due_once() -> None:
    """Delayed notice fires for DELAYED milestones without the flag."""
    delayed = _milestone(date(2024, 1, 1), MilestoneStatus.DELAYED)
    notified = _milestone(
        date(2024, 1, 1),
        MilestoneStatus.DELAYED,
        notifications={NotificationKind.DELAYED: NOW},
    )

    assert due_for_milestone_delay(delayed) is True
    assert due_for_milestone_delay(notified) is False
    assert due_for_milestone_delay(_milestone(date(2024, 1, 1))) is False


def test_issue_warning_requires_age_threshold() -> None:
    """Issues younger than the threshold are not warned."""
    assert due_for_issue_warning(_issue(age=timedelta(days=2, hours=23)), NOW, 3, 6) is False
    assert due_for_issue_warning(_issue(age=timedelta(days=3)), NOW, 3, 6) is True


def test_issue_warning_only_for_open_issues() -> None:
    """IN_ACTION issues are being worked on and are not warned."""
    assert due_for_issue_warning(_issue(status=IssueStatus.IN_ACTION), NOW, 3, 6) is False


def test_issue_warning_respects_cooldown_without_upper_bound() -> None:
    """Inside the cooldown is quiet; any time after it is due."""
    inside = _issue(last_warning_at=NOW - timedelta(hours=5, minutes=59))
    boundary = _issue(last_warning_at=NOW - timedelta(hours=6))
    long_after = _issue(last_warning_at=NOW - timedelta(days=30))

    assert due_for_issue_warning(inside, NOW, 3, 6) is False
    assert due_for_issue_warning(boundary, NOW, 3, 6) is True
    assert due_for_issue_warning(long_after, NOW, 3, 6) is True


def test_issue_warning_accepts_naive_database_timestamps() -> None:
    """Naive timestamps read back from storage are treated as UTC."""
    issue = _issue(last_warning_at=(NOW - timedelta(hours=1)).replace(tzinfo=None))

    assert due_for_issue_warning(issue, NOW, 3, 6) is False


def test_critical_issue_immediate_alert() -> None:
    """Only CRITICAL impact triggers the immediate alert."""
    assert due_for_critical_issue_immediate(_issue(impact=IssueImpact.CRITICAL)) is True
    assert due_for_critical_issue_immediate(_issue(impact=IssueImpact.HIGH)) is False
