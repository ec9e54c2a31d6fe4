"""Database engine, session management, and migrations."""

import logging
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from alembic import command
from alembic.config import Config

from config import settings

logger = logging.getLogger(__name__)

_sync_engine = None
_sync_session_factory: sessionmaker | None = None


def _get_db_url() -> str:
    return settings.database.url


def get_sync_engine():
    global _sync_engine
    if _sync_engine is None:
        url = _get_db_url()
        if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
            Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)
        _sync_engine = create_engine(url, pool_pre_ping=True)
    return _sync_engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory."""
    global _sync_session_factory
    if _sync_session_factory is None:
        _sync_session_factory = sessionmaker(bind=get_sync_engine(), expire_on_commit=False)
    return _sync_session_factory


def _run_migrations() -> None:
    alembic_ini = Path(__file__).resolve().parents[2] / "alembic.ini"
    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("sqlalchemy.url", _get_db_url())
    command.upgrade(alembic_cfg, "head")


def run_migrations_sync() -> None:
    """Run database migrations synchronously."""
    _run_migrations()
    logger.info("Database migrations applied")


def check_connection() -> bool:
    """Check if database connection is working."""
    try:
        with get_sync_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
