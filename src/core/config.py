"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

from src.core.types import Severity

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

_TARGET_RE = re.compile(r"^[\w.-]+/[\w.-]+$")

# Channel names the dispatcher knows how to build.
KNOWN_SINKS = ("log", "slack", "discord")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"
    notification_log: str | None = None


class ErrorConfig(BaseModel):
    """Thresholds for windowed error alerting."""

    alert_threshold: int = Field(default=10, ge=1)
    window_minutes: int = Field(default=60, ge=1)
    silence_minutes: int = Field(default=15, ge=0)
    severity_filter: set[Severity] = {Severity.ERROR, Severity.CRITICAL}
    sinks: list[str] = ["log"]

    @field_validator("severity_filter", mode="before")
    @classmethod
    def _parse_filter(cls, v: Any) -> set[Severity]:
        return {Severity.parse(s) for s in v}


class StorageConfig(BaseModel):
    """Where persisted state lives."""

    data_dir: str = "data"
    max_events: int = Field(default=1000, ge=1)


class PollerConfig(BaseModel):
    """Poll cycle scheduling and timeout configuration."""

    interval_secs: float = 1800.0
    max_concurrency: int = Field(default=4, ge=1)
    target_timeout_secs: float = 300.0
    operation_timeout_secs: float = 60.0
    dependency_check_every: int = Field(default=4, ge=1)
    max_failed_runs_reported: int = 3


class AutoUpdatePolicy(BaseModel):
    """Which dependency bumps may be applied without review."""

    patch: bool = True
    minor: bool = True
    major: bool = False
    ignored_packages: list[str] = Field(default_factory=list)


class SlackConfig(BaseModel):
    """Slack incoming-webhook channel."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")
    channel: str = "#builds"
    username: str = "Repo Sentinel"


class DiscordConfig(BaseModel):
    """Discord webhook channel."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")
    username: str = "Repo Sentinel"


class NotificationsConfig(BaseModel):
    """Container for notification channel configurations."""

    slack: SlackConfig = SlackConfig()
    discord: DiscordConfig = DiscordConfig()


class NotifyOnConfig(BaseModel):
    """Which target conditions produce notifications."""

    build_failure: bool = True
    dependency_update: bool = True
    release_needed: bool = True


class Settings(BaseModel):
    """Root settings container."""

    targets: list[str] = Field(default_factory=list)
    errors: ErrorConfig = ErrorConfig()
    storage: StorageConfig = StorageConfig()
    poller: PollerConfig = PollerConfig()
    deps: AutoUpdatePolicy = AutoUpdatePolicy()
    notifications: NotificationsConfig = NotificationsConfig()
    notify_on: NotifyOnConfig = NotifyOnConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None


def validate_settings(settings: Settings) -> list[str]:
    """Return a list of problems that make *settings* unusable at startup."""
    errors: list[str] = []

    if not settings.targets:
        errors.append("targets is required (list of owner/repo)")

    for target in settings.targets:
        if not _TARGET_RE.match(target):
            errors.append(f"target {target!r} is not in owner/repo form")

    if len(set(settings.targets)) != len(settings.targets):
        errors.append("targets contains duplicates")

    for sink in settings.errors.sinks:
        if sink not in KNOWN_SINKS:
            errors.append(f"errors.sinks names unknown channel {sink!r}")

    slack = settings.notifications.slack
    if slack.enabled and not slack.webhook_url.get_secret_value():
        errors.append("notifications.slack is enabled without a webhook_url")

    discord = settings.notifications.discord
    if discord.enabled and not discord.webhook_url.get_secret_value():
        errors.append("notifications.discord is enabled without a webhook_url")

    return errors
