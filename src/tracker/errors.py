"""Error taxonomy surfaced by tracker operations."""

from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base error for tracker operations with a stable code and details."""

    code = "TRACKER_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Return a serializable representation for the command layer."""
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class NotFound(TrackerError):
    """Raised when a referenced entity id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} not found: {entity_id}",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(TrackerError):
    """Raised when a status change violates terminal-state or ordering rules."""

    code = "INVALID_TRANSITION"


class AlreadyCompleted(InvalidTransition):
    """Raised when completing something that is already completed."""

    code = "ALREADY_COMPLETED"


class OpenIssuesRemain(TrackerError):
    """Raised when a project completion is blocked by active issues."""

    code = "OPEN_ISSUES_REMAIN"

    def __init__(self, count: int) -> None:
        super().__init__(
            f"Project has {count} open issue(s) remaining.",
            {"count": count},
        )
        self.count = count


class ValidationFailed(TrackerError):
    """Raised when command input fails a field or range check."""

    code = "VALIDATION_FAILED"


class DeliveryFailure(TrackerError):
    """Raised when a notification could not be delivered."""

    code = "DELIVERY_FAILURE"


__all__ = [
    "AlreadyCompleted",
    "DeliveryFailure",
    "InvalidTransition",
    "NotFound",
    "OpenIssuesRemain",
    "TrackerError",
    "ValidationFailed",
]
