"""Services module for the Saeop tracker bot."""

from services.database import check_connection, get_session_factory, run_migrations_sync
from services.discord import DiscordNotifier

__all__ = [
    "check_connection",
    "get_session_factory",
    "run_migrations_sync",
    "DiscordNotifier",
]
