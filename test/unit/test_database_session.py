"""Unit tests for database session helpers and migrations."""

from __future__ import annotations

from sqlalchemy import create_engine, inspect

from config import settings
from services import database


def _reset_engine(monkeypatch, url: str) -> None:
    monkeypatch.setattr(settings.database, "url", url, raising=False)
    monkeypatch.setattr(database, "_sync_engine", None)
    monkeypatch.setattr(database, "_sync_session_factory", None)


def test_session_factory_is_cached(monkeypatch, tmp_path) -> None:
    """The engine and session factory are created once per process."""
    _reset_engine(monkeypatch, f"sqlite:///{tmp_path / 'nested' / 'saeop.db'}")

    first = database.get_session_factory()
    second = database.get_session_factory()

    assert first is second
    assert (tmp_path / "nested").is_dir()
    assert database.check_connection() is True


def test_migrations_create_tracker_tables(monkeypatch, tmp_path) -> None:
    """Running migrations to head creates every tracker table."""
    db_path = tmp_path / "migrated.db"
    _reset_engine(monkeypatch, f"sqlite:///{db_path}")

    database.run_migrations_sync()

    tables = set(inspect(create_engine(f"sqlite:///{db_path}")).get_table_names())
    assert {
        "projects",
        "milestones",
        "milestone_notifications",
        "issues",
        "guild_settings",
        "decisions",
        "documents",
    } <= tables
