"""Document links registered against projects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging

from pydantic import HttpUrl, TypeAdapter, ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Document, Project
from time_utils import coerce_utc
from tracker.enums import DocumentType
from tracker.errors import ValidationFailed
from tracker.store import SessionRepository, check_length, fetch_or_raise, stamp

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 200
_URL_ADAPTER = TypeAdapter(HttpUrl)


@dataclass(frozen=True)
class DocumentCreateInput:
    """Input payload for registering a document."""

    project_id: int
    name: str
    url: str
    registrant_id: str
    type: DocumentType = DocumentType.OTHER


@dataclass(frozen=True)
class DocumentFilter:
    """Query filter for document listings."""

    project_id: int | None = None
    guild_id: str | None = None
    type: DocumentType | None = None


@dataclass(frozen=True)
class DocumentRecord:
    """Snapshot of a registered document."""

    id: int
    project_id: int
    name: str
    type: DocumentType
    url: str
    registrant_id: str
    created_at: datetime


class DocumentRepository(SessionRepository):
    """Repository and validation for project documents."""

    def create(
        self,
        payload: DocumentCreateInput,
        *,
        now: datetime | None = None,
    ) -> DocumentRecord:
        """Validate and persist a document link."""
        check_length(payload.name, "name", NAME_MAX_LENGTH, required=True)
        try:
            _URL_ADAPTER.validate_python(payload.url)
        except ValidationError as exc:
            raise ValidationFailed(f"Invalid URL: {payload.url}", {"url": payload.url}) from exc
        try:
            doc_type = DocumentType(payload.type)
        except ValueError as exc:
            raise ValidationFailed(
                f"Unsupported document type: {payload.type}", {"type": str(payload.type)}
            ) from exc

        def handler(session: Session) -> DocumentRecord:
            fetch_or_raise(session, Project, payload.project_id, "Project")
            document = Document(
                project_id=payload.project_id,
                name=payload.name,
                type=doc_type.value,
                url=payload.url,
                registrant_id=payload.registrant_id,
                created_at=stamp(now),
            )
            session.add(document)
            session.flush()
            return _to_record(document)

        record = self._execute(handler)
        logger.info(
            "document_registered document_id=%s project_id=%s type=%s",
            record.id,
            record.project_id,
            record.type.value,
        )
        return record

    def get(self, document_id: int) -> DocumentRecord:
        """Return a document or raise NotFound."""

        def handler(session: Session) -> DocumentRecord:
            return _to_record(fetch_or_raise(session, Document, document_id, "Document"))

        return self._execute(handler)

    def list(self, filters: DocumentFilter | None = None) -> list[DocumentRecord]:
        """List documents matching a filter, newest first."""
        filters = filters or DocumentFilter()

        def handler(session: Session) -> list[DocumentRecord]:
            stmt = select(Document)
            if filters.project_id is not None:
                stmt = stmt.where(Document.project_id == filters.project_id)
            if filters.guild_id is not None:
                stmt = stmt.join(Project, Project.id == Document.project_id).where(
                    Project.guild_id == filters.guild_id
                )
            if filters.type is not None:
                stmt = stmt.where(Document.type == DocumentType(filters.type).value)
            stmt = stmt.order_by(Document.created_at.desc(), Document.id.desc())
            return [_to_record(row) for row in session.scalars(stmt)]

        return self._execute(handler)

    def count_by_type(self, project_id: int) -> dict[DocumentType, int]:
        """Return document counts per type for a project."""

        def handler(session: Session) -> dict[DocumentType, int]:
            stmt = (
                select(Document.type, func.count(Document.id))
                .where(Document.project_id == project_id)
                .group_by(Document.type)
            )
            return {DocumentType(doc_type): int(total) for doc_type, total in session.execute(stmt)}

        return self._execute(handler)

    def delete(self, document_id: int) -> None:
        """Delete a document by ID."""

        def handler(session: Session) -> None:
            session.delete(fetch_or_raise(session, Document, document_id, "Document"))
            session.flush()
            return None

        self._execute(handler)


def _to_record(row: Document) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        project_id=row.project_id,
        name=row.name,
        type=DocumentType(row.type),
        url=row.url,
        registrant_id=row.registrant_id,
        created_at=coerce_utc(row.created_at),
    )


__all__ = [
    "DocumentCreateInput",
    "DocumentFilter",
    "DocumentRecord",
    "DocumentRepository",
]
