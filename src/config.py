"""Configuration management for the Saeop tracker bot."""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_REPO_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_CONFIG_PATH = _REPO_ROOT / "config" / "saeop.yml"
_USER_CONFIG_PATHS = [
    Path("~/.config/saeop/saeop.yml").expanduser(),
    Path("/config/saeop.yml"),
]
_USER_SECRETS_PATHS = [
    Path("~/.config/saeop/secrets.yml").expanduser(),
    Path("/config/secrets.yml"),
]

_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _yaml_settings_source(paths: list[Path]):
    """Create a Pydantic settings source for a list of YAML paths."""

    def source() -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in paths:
            merged.update(_load_yaml(path))
        return merged

    return source


def _set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a dotted-path value on a nested mapping, creating containers."""
    parts = path.split(".")
    cursor = target
    for key in parts[:-1]:
        node = cursor.get(key)
        if not isinstance(node, dict):
            node = {}
            cursor[key] = node
        cursor = node
    cursor[parts[-1]] = value


def _parse_env_value(raw: str, kind: str) -> Any:
    """Parse an environment value into the requested primitive type."""
    if kind == "int":
        return int(raw)
    if kind == "float":
        return float(raw)
    if kind == "json":
        return json.loads(raw)
    return raw


def _env_settings_source():
    """Create a settings source that maps environment variables to config keys."""
    mapping = {
        "DISCORD_TOKEN": ("discord.token", "str"),
        "DISCORD_API_URL": ("discord.api_url", "str"),
        "DISCORD_TIMEOUT": ("discord.timeout", "float"),
        "DATABASE_URL": ("database.url", "str"),
        "REDIS_URL": ("redis.url", "str"),
        "TZ_NAME": ("scheduler.timezone", "str"),
        "DEADLINE_SWEEP_TIME": ("scheduler.deadline_sweep_time", "str"),
        "ISSUE_WATCH_INTERVAL_HOURS": ("scheduler.issue_watch_interval_hours", "int"),
        "WEEKLY_REPORT_DAY": ("scheduler.weekly_report_day", "str"),
        "WEEKLY_REPORT_TIME": ("scheduler.weekly_report_time", "str"),
        "MILESTONE_LEAD_DAYS": ("tracker.milestone_lead_days", "json"),
        "ISSUE_UNATTENDED_DAYS": ("tracker.issue_unattended_days", "int"),
        "ISSUE_WARNING_COOLDOWN_HOURS": ("tracker.issue_warning_cooldown_hours", "int"),
        "LOG_LEVEL": ("log_level", "str"),
    }

    def source() -> dict[str, Any]:
        data: dict[str, Any] = {}
        for env_key, (path, kind) in mapping.items():
            raw = os.environ.get(env_key)
            if raw is None:
                continue
            _set_nested_value(data, path, _parse_env_value(raw, kind))
        return data

    return source


def _validate_hhmm(value: str, field_name: str) -> str:
    """Ensure a time value uses HH:MM 24-hour format."""
    try:
        datetime.strptime(value.strip(), "%H:%M")
    except ValueError as exc:
        raise ValueError(f"{field_name} must be HH:MM.") from exc
    return value.strip()


def parse_hhmm(value: str) -> tuple[int, int]:
    """Split a validated HH:MM string into hour and minute integers."""
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour, parsed.minute


def weekday_index(value: str) -> int:
    """Return the Python weekday index (Monday=0) for a weekday name."""
    return _WEEKDAYS.index(value.strip().lower())


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = "sqlite:///data/saeop.db"


class DiscordConfig(BaseModel):
    """Discord REST API connection settings."""

    token: str | None = None
    api_url: str = "https://discord.com/api/v10"
    timeout: float = 10.0

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure the HTTP timeout is positive."""
        if value <= 0:
            raise ValueError("discord.timeout must be > 0.")
        return value


class ServiceConfig(BaseModel):
    """Generic service URL wrapper."""

    url: str


class SchedulerConfig(BaseModel):
    """Sweep cadence configuration."""

    timezone: str = "Asia/Seoul"
    deadline_sweep_time: str = "09:00"
    issue_watch_interval_hours: int = 6
    weekly_report_day: str = "Monday"
    weekly_report_time: str = "09:00"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the configured timezone is valid."""
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"Invalid timezone: {value}") from exc
        return value

    @field_validator("deadline_sweep_time")
    @classmethod
    def validate_deadline_sweep_time(cls, value: str) -> str:
        """Ensure deadline_sweep_time uses HH:MM 24-hour format."""
        return _validate_hhmm(value, "scheduler.deadline_sweep_time")

    @field_validator("weekly_report_time")
    @classmethod
    def validate_weekly_report_time(cls, value: str) -> str:
        """Ensure weekly_report_time uses HH:MM 24-hour format."""
        return _validate_hhmm(value, "scheduler.weekly_report_time")

    @field_validator("issue_watch_interval_hours")
    @classmethod
    def validate_issue_watch_interval(cls, value: int) -> int:
        """Ensure the issue watch interval divides a day evenly."""
        if value < 1 or 24 % value != 0:
            raise ValueError("scheduler.issue_watch_interval_hours must divide 24.")
        return value

    @field_validator("weekly_report_day")
    @classmethod
    def validate_weekly_report_day(cls, value: str) -> str:
        """Ensure weekly_report_day is a supported weekday name."""
        if value.strip().lower() not in _WEEKDAYS:
            raise ValueError("scheduler.weekly_report_day must be a weekday name.")
        return value.strip()


class TrackerConfig(BaseModel):
    """Notification eligibility thresholds."""

    milestone_lead_days: list[int] = Field(default_factory=lambda: [7, 1])
    issue_unattended_days: int = 3
    issue_warning_cooldown_hours: int = 6

    @field_validator("milestone_lead_days")
    @classmethod
    def validate_milestone_lead_days(cls, value: list[int]) -> list[int]:
        """Ensure only supported lead-time reminders are configured."""
        unsupported = [day for day in value if day not in (7, 1)]
        if unsupported:
            raise ValueError("tracker.milestone_lead_days supports only 7 and 1.")
        return value

    @field_validator("issue_unattended_days")
    @classmethod
    def validate_issue_unattended_days(cls, value: int) -> int:
        """Ensure the unattended threshold is non-negative."""
        if value < 0:
            raise ValueError("tracker.issue_unattended_days must be >= 0.")
        return value

    @field_validator("issue_warning_cooldown_hours")
    @classmethod
    def validate_issue_warning_cooldown_hours(cls, value: int) -> int:
        """Ensure the warning cooldown is non-negative."""
        if value < 0:
            raise ValueError("tracker.issue_warning_cooldown_hours must be >= 0.")
        return value


class Settings(BaseSettings):
    """Application settings loaded from environment variables and YAML."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Layer settings sources in descending order of precedence."""
        return (
            init_settings,
            _env_settings_source(),
            _yaml_settings_source(_USER_SECRETS_PATHS),
            _yaml_settings_source(_USER_CONFIG_PATHS),
            _yaml_settings_source([_DEFAULT_CONFIG_PATH]),
        )

    # Logging
    log_level: str = "INFO"

    # Database Configuration
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Celery broker
    redis: ServiceConfig = Field(default_factory=lambda: ServiceConfig(url="redis://redis:6379"))

    # Discord
    discord: DiscordConfig = Field(default_factory=DiscordConfig)

    # Scheduler Configuration
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    # Notification Thresholds
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)

    @model_validator(mode="after")
    def normalize_log_level(self) -> "Settings":
        """Upper-case the log level so logging accepts it."""
        self.log_level = self.log_level.strip().upper()
        return self


# Global settings instance
settings = Settings()
