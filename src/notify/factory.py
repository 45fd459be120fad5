"""Convenience factory for wiring the notification stack."""

from __future__ import annotations

from src.core.config import NotificationsConfig
from src.notify.channels import (
    DiscordChannel,
    LogChannel,
    NotificationChannel,
    SlackChannel,
)
from src.notify.dispatcher import NotificationDispatcher


def create_dispatcher(config: NotificationsConfig) -> NotificationDispatcher:
    """Build a dispatcher with the log channel plus every enabled webhook."""
    channels: list[NotificationChannel] = [LogChannel()]

    if config.slack.enabled:
        channels.append(SlackChannel(config.slack))

    if config.discord.enabled:
        channels.append(DiscordChannel(config.discord))

    return NotificationDispatcher(channels=channels)
