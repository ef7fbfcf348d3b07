"""KWOTD Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")

FEED_FORMATS = ("json", "rss")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FeedConfig:
    """Configuration for the remote word-of-the-day feed.

    Only one of the two endpoints is active; `format` selects it together
    with the matching payload parser.
    """

    format: str
    json_url: str
    rss_url: str
    max_payload_chars: int = 1024
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 30.0
    user_agent: str = "kwotd-notifier/1.0"
    headword_field: str = "kword"
    part_of_speech_field: str = "type"
    translation_field: str = "eword"

    @property
    def active_url(self) -> str:
        """URL of the endpoint matching the configured format."""
        return self.json_url if self.format == "json" else self.rss_url


@dataclass(frozen=True)
class NotificationConfig:
    """Text and link templates used to build the notification."""

    channel_name: str
    footer: str
    organization_name: str
    search_url_template: str
    small_icon: str = "ic_kwotd_notification"
    large_icon: str = "ic_ka"


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for the Telegram notification surface."""

    bot_token: str
    chat_id: str
    enable_commands: bool = True


@dataclass(frozen=True)
class ScheduleConfig:
    """When scheduled runs fire and how soon a failed run is retried."""

    daily_hour: int
    daily_minute: int
    retry_delay_minutes: int
    run_on_startup: bool = True
    timezone: str = "UTC"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    feed: FeedConfig
    notification: NotificationConfig
    telegram: TelegramConfig
    schedule: ScheduleConfig
    database_path: str
    log_level: str
    dictionary_path: Optional[str] = None


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all ${VAR_NAME} placeholders replaced
        by their environment variable values.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_feed_config(data: dict[str, Any]) -> FeedConfig:
    """Build a FeedConfig from the 'feed' section of settings.yaml.

    Raises:
        ValueError: If the feed format is not one of FEED_FORMATS.
    """
    _validate_keys(data, ["format", "json_url", "rss_url"], "feed")

    feed_format = str(data["format"]).lower()
    if feed_format not in FEED_FORMATS:
        raise ValueError(
            f"Unknown feed format '{data['format']}', expected one of {FEED_FORMATS}"
        )

    fields = data.get("fields", {})
    return FeedConfig(
        format=feed_format,
        json_url=data["json_url"],
        rss_url=data["rss_url"],
        max_payload_chars=int(data.get("max_payload_chars", 1024)),
        connect_timeout_seconds=float(data.get("connect_timeout_seconds", 10)),
        read_timeout_seconds=float(data.get("read_timeout_seconds", 30)),
        user_agent=data.get("user_agent", "kwotd-notifier/1.0"),
        headword_field=fields.get("headword", "kword"),
        part_of_speech_field=fields.get("part_of_speech", "type"),
        translation_field=fields.get("translation", "eword"),
    )


def _build_notification_config(data: dict[str, Any]) -> NotificationConfig:
    """Build a NotificationConfig from the 'notification' section."""
    required_keys = [
        "channel_name", "footer", "organization_name",
        "search_url_template",
    ]
    _validate_keys(data, required_keys, "notification")

    return NotificationConfig(
        channel_name=data["channel_name"],
        footer=data["footer"],
        organization_name=data["organization_name"],
        search_url_template=data["search_url_template"],
        small_icon=data.get("small_icon", "ic_kwotd_notification"),
        large_icon=data.get("large_icon", "ic_ka"),
    )


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section."""
    _validate_keys(data, ["bot_token", "chat_id"], "telegram")

    return TelegramConfig(
        bot_token=data["bot_token"],
        chat_id=str(data["chat_id"]),
        enable_commands=bool(data.get("enable_commands", True)),
    )


def _build_schedule_config(data: dict[str, Any]) -> ScheduleConfig:
    """Build a ScheduleConfig from the 'schedule' section.

    Raises:
        ValueError: If the daily time is out of range.
    """
    _validate_keys(data, ["daily_hour", "daily_minute", "retry_delay_minutes"], "schedule")

    hour, minute = int(data["daily_hour"]), int(data["daily_minute"])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid daily run time {hour}:{minute:02d}")

    return ScheduleConfig(
        daily_hour=hour,
        daily_minute=minute,
        retry_delay_minutes=int(data["retry_delay_minutes"]),
        run_on_startup=bool(data.get("run_on_startup", True)),
        timezone=data.get("timezone", "UTC"),
    )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads settings.yaml, resolves environment variables, validates all
    required fields, and returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings = _resolve_env_vars(_load_yaml(settings_path or SETTINGS_PATH))

    _validate_keys(
        settings,
        ["feed", "notification", "telegram", "schedule", "database", "logging"],
        "settings",
    )

    config = AppConfig(
        feed=_build_feed_config(settings["feed"]),
        notification=_build_notification_config(settings["notification"]),
        telegram=_build_telegram_config(settings["telegram"]),
        schedule=_build_schedule_config(settings["schedule"]),
        database_path=settings["database"]["path"],
        log_level=settings["logging"].get("level", "INFO"),
        dictionary_path=settings["database"].get("dictionary_path"),
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Feed format: %s (%s)", config.feed.format, config.feed.active_url)
    logger.debug("Database path: %s", config.database_path)
    return config
