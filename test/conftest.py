"""Pytest configuration for the Saeop test suite."""

import os
import sys
from pathlib import Path
from typing import Generator

import pytest


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("TZ_NAME", "Asia/Seoul")
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
    os.environ.setdefault("DISCORD_TOKEN", "test-token")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from models import Base  # noqa: E402


@pytest.fixture()
def sqlite_session_factory() -> Generator[sessionmaker, None, None]:
    """Provide an in-memory sqlite session factory shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    engine.dispose()


class RecordingNotifier:
    """Notifier stub that records deliveries and can fail per channel."""

    def __init__(self) -> None:
        """Initialize empty delivery tracking."""
        self.delivered: list[tuple[str, object]] = []
        self.reject_channels: set[str] = set()
        self.raise_channels: set[str] = set()
        self.reject_when = None

    def deliver(self, destination_key: str, message) -> bool:
        """Record a delivery, or fail when configured to."""
        if destination_key in self.raise_channels:
            raise RuntimeError(f"transport down for {destination_key}")
        if destination_key in self.reject_channels:
            return False
        if self.reject_when is not None and self.reject_when(message):
            return False
        self.delivered.append((destination_key, message))
        return True

    def contents(self) -> list[str]:
        """Return delivered message contents in order."""
        return [message.content for _, message in self.delivered]


@pytest.fixture()
def recording_notifier() -> RecordingNotifier:
    """Provide a recording notifier stub."""
    return RecordingNotifier()
