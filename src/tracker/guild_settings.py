"""Per-guild settings persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import GuildSettings
from tracker.errors import ValidationFailed
from tracker.states import GuildSettingsState
from tracker.store import UNSET, SessionRepository, guild_settings_to_state, stamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuildSettingsUpdateInput:
    """Input payload for updating guild settings."""

    notification_channel_id: str | None | object = UNSET
    admin_role_id: str | None | object = UNSET
    pm_role_id: str | None | object = UNSET
    timezone: str | object = UNSET


class GuildSettingsRepository(SessionRepository):
    """Repository for the one-row-per-guild settings table."""

    def get(self, guild_id: str) -> GuildSettingsState | None:
        """Return settings for a guild, or None when never written."""

        def handler(session: Session) -> GuildSettingsState | None:
            row = _find(session, guild_id)
            return guild_settings_to_state(row) if row is not None else None

        return self._execute(handler)

    def upsert(
        self,
        guild_id: str,
        updates: GuildSettingsUpdateInput,
        *,
        now: datetime | None = None,
    ) -> GuildSettingsState:
        """Create the guild row on first write, then apply updates."""
        if updates.timezone is not UNSET:
            _validate_timezone(updates.timezone)

        def handler(session: Session) -> GuildSettingsState:
            timestamp = stamp(now)
            row = _find(session, guild_id)
            if row is None:
                row = GuildSettings(guild_id=guild_id, created_at=timestamp)
                session.add(row)
                logger.info("guild_settings_created guild_id=%s", guild_id)
            for name in GuildSettingsUpdateInput.__dataclass_fields__:
                value = getattr(updates, name)
                if value is not UNSET:
                    setattr(row, name, value)
            row.updated_at = timestamp
            session.flush()
            return guild_settings_to_state(row)

        return self._execute(handler)

    def set_notification_channel(self, guild_id: str, channel_id: str | None) -> GuildSettingsState:
        """Set (or clear) the channel that receives scheduled notifications."""
        return self.upsert(
            guild_id, GuildSettingsUpdateInput(notification_channel_id=channel_id or None)
        )

    def list_with_notification_channel(self) -> list[GuildSettingsState]:
        """Return every guild that has a notification channel configured."""

        def handler(session: Session) -> list[GuildSettingsState]:
            stmt = (
                select(GuildSettings)
                .where(GuildSettings.notification_channel_id.is_not(None))
                .where(GuildSettings.notification_channel_id != "")
                .order_by(GuildSettings.guild_id)
            )
            return [guild_settings_to_state(row) for row in session.scalars(stmt)]

        return self._execute(handler)


def _find(session: Session, guild_id: str) -> GuildSettings | None:
    stmt = select(GuildSettings).where(GuildSettings.guild_id == guild_id)
    return session.scalars(stmt).first()


def _validate_timezone(value: str) -> None:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationFailed(f"Invalid timezone: {value}", {"field": "timezone"}) from exc


__all__ = [
    "GuildSettingsRepository",
    "GuildSettingsUpdateInput",
]
