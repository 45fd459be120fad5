"""Notification channels, formatting, and dispatch."""

from src.notify.channels import (
    DiscordChannel,
    LogChannel,
    NotificationChannel,
    SlackChannel,
)
from src.notify.dispatcher import NotificationDispatcher
from src.notify.factory import create_dispatcher
from src.notify.formatters import (
    format_build_failure,
    format_dependency_pr,
    format_error_alert,
    format_release_needed,
)
from src.notify.types import AlertMessage

__all__ = [
    "AlertMessage",
    "DiscordChannel",
    "LogChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SlackChannel",
    "create_dispatcher",
    "format_build_failure",
    "format_dependency_pr",
    "format_error_alert",
    "format_release_needed",
]
