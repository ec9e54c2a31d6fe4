"""Notification eligibility predicates.

Each predicate is a pure function of its arguments. Calendar-day comparisons
use the configured local timezone so a 09:00 sweep and a 23:00 sweep on the
same local day agree.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from time_utils import coerce_utc, to_local
from tracker.enums import (
    IssueImpact,
    IssueStatus,
    LEAD_DAY_KINDS,
    MilestoneStatus,
    NotificationKind,
)
from tracker.states import IssueState, MilestoneState


def lead_notification_kind(lead_days: int) -> NotificationKind:
    """Return the notification kind tracking a lead-time reminder."""
    try:
        return LEAD_DAY_KINDS[lead_days]
    except KeyError as exc:
        raise ValueError(f"Unsupported milestone lead days: {lead_days}") from exc


def due_for_milestone_lead(milestone: MilestoneState, now: datetime, lead_days: int) -> bool:
    """Return True when a scheduled milestone is exactly ``lead_days`` away."""
    kind = lead_notification_kind(lead_days)
    if milestone.status != MilestoneStatus.SCHEDULED:
        return False
    if milestone.notified(kind):
        return False
    notify_day = to_local(now).date() + timedelta(days=lead_days)
    return milestone.target_date == notify_day


def due_for_milestone_delay(milestone: MilestoneState) -> bool:
    """Return True for a delayed milestone that has not been announced yet."""
    return (
        milestone.status == MilestoneStatus.DELAYED
        and not milestone.notified(NotificationKind.DELAYED)
    )


def due_for_issue_warning(
    issue: IssueState,
    now: datetime,
    unattended_days: int,
    cooldown_hours: int,
) -> bool:
    """Return True for an old OPEN issue outside its warning cooldown."""
    if issue.status != IssueStatus.OPEN:
        return False
    now_utc = coerce_utc(now)
    created_at = coerce_utc(issue.created_at)
    if now_utc - created_at < timedelta(days=unattended_days):
        return False
    last_warning_at = coerce_utc(issue.last_warning_at)
    if last_warning_at is None:
        return True
    return now_utc - last_warning_at >= timedelta(hours=cooldown_hours)


def due_for_critical_issue_immediate(issue: IssueState) -> bool:
    """Return True when a newly created issue needs an immediate alert."""
    return issue.impact == IssueImpact.CRITICAL


__all__ = [
    "due_for_critical_issue_immediate",
    "due_for_issue_warning",
    "due_for_milestone_delay",
    "due_for_milestone_lead",
    "lead_notification_kind",
]
