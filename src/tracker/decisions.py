"""Decision log records attached to projects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import json
import logging

from pydantic import HttpUrl, TypeAdapter, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Decision, Project
from time_utils import coerce_utc
from tracker.errors import ValidationFailed
from tracker.store import SessionRepository, check_length, fetch_or_raise, stamp

logger = logging.getLogger(__name__)

CONTENT_MAX_LENGTH = 2000
REASON_MAX_LENGTH = 2000
_URL_ADAPTER = TypeAdapter(HttpUrl)


@dataclass(frozen=True)
class DecisionCreateInput:
    """Input payload for recording a decision."""

    project_id: int
    content: str
    decider_id: str
    reason: str | None = None
    related_links: tuple[str, ...] = ()


@dataclass(frozen=True)
class DecisionRecord:
    """Snapshot of a recorded decision."""

    id: int
    project_id: int
    content: str
    decider_id: str
    created_at: datetime
    reason: str | None = None
    related_links: list[str] = field(default_factory=list)


class DecisionRepository(SessionRepository):
    """Repository and validation for project decisions."""

    def create(
        self,
        payload: DecisionCreateInput,
        *,
        now: datetime | None = None,
    ) -> DecisionRecord:
        """Validate and persist a decision."""
        check_length(payload.content, "content", CONTENT_MAX_LENGTH, required=True)
        check_length(payload.reason, "reason", REASON_MAX_LENGTH, required=False)
        links = [_validate_url(link) for link in payload.related_links]

        def handler(session: Session) -> DecisionRecord:
            fetch_or_raise(session, Project, payload.project_id, "Project")
            decision = Decision(
                project_id=payload.project_id,
                content=payload.content,
                reason=payload.reason,
                decider_id=payload.decider_id,
                related_links=json.dumps(links) if links else None,
                created_at=stamp(now),
            )
            session.add(decision)
            session.flush()
            return _to_record(decision)

        record = self._execute(handler)
        logger.info("decision_recorded decision_id=%s project_id=%s", record.id, record.project_id)
        return record

    def get(self, decision_id: int) -> DecisionRecord:
        """Return a decision or raise NotFound."""

        def handler(session: Session) -> DecisionRecord:
            return _to_record(fetch_or_raise(session, Decision, decision_id, "Decision"))

        return self._execute(handler)

    def list_for_project(self, project_id: int) -> list[DecisionRecord]:
        """List decisions of a project, newest first."""

        def handler(session: Session) -> list[DecisionRecord]:
            stmt = (
                select(Decision)
                .where(Decision.project_id == project_id)
                .order_by(Decision.created_at.desc(), Decision.id.desc())
            )
            return [_to_record(row) for row in session.scalars(stmt)]

        return self._execute(handler)

    def list_recent_for_guild(self, guild_id: str, *, limit: int = 10) -> list[DecisionRecord]:
        """List the most recent decisions across a guild's projects."""

        def handler(session: Session) -> list[DecisionRecord]:
            stmt = (
                select(Decision)
                .join(Project, Project.id == Decision.project_id)
                .where(Project.guild_id == guild_id)
                .order_by(Decision.created_at.desc(), Decision.id.desc())
                .limit(limit)
            )
            return [_to_record(row) for row in session.scalars(stmt)]

        return self._execute(handler)

    def count_for_project(self, project_id: int) -> int:
        """Count decisions recorded for a project."""

        def handler(session: Session) -> int:
            stmt = select(func.count(Decision.id)).where(Decision.project_id == project_id)
            return int(session.scalar(stmt) or 0)

        return self._execute(handler)

    def delete(self, decision_id: int) -> None:
        """Delete a decision by ID."""

        def handler(session: Session) -> None:
            session.delete(fetch_or_raise(session, Decision, decision_id, "Decision"))
            session.flush()
            return None

        self._execute(handler)


def parse_related_links(raw: str | None) -> list[str]:
    """Decode the stored JSON link list, tolerating empty or malformed values."""
    if not raw:
        return []
    try:
        links = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("decision_links_unparseable raw=%r", raw)
        return []
    if not isinstance(links, list):
        return []
    return [str(link) for link in links]


def _validate_url(value: str) -> str:
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid URL: {value}", {"url": value}) from exc
    return value


def _to_record(row: Decision) -> DecisionRecord:
    return DecisionRecord(
        id=row.id,
        project_id=row.project_id,
        content=row.content,
        decider_id=row.decider_id,
        created_at=coerce_utc(row.created_at),
        reason=row.reason,
        related_links=parse_related_links(row.related_links),
    )


__all__ = [
    "DecisionCreateInput",
    "DecisionRecord",
    "DecisionRepository",
    "parse_related_links",
]
