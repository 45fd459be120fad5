"""Notification channels — structured log, Slack, and Discord delivery."""

from __future__ import annotations

import abc

import aiohttp
import structlog

from src.core.config import DiscordConfig, SlackConfig
from src.core.types import Severity
from src.notify.types import AlertMessage

logger = structlog.get_logger(__name__)

# Dedicated logger for the log channel so notifications can be routed apart.
notification_logger = structlog.get_logger("notifications")

# Discord embed colours keyed by severity.
_DISCORD_COLORS: dict[Severity, int] = {
    Severity.DEBUG: 0x95A5A6,     # grey
    Severity.INFO: 0x3498DB,      # blue
    Severity.WARNING: 0xF39C12,   # orange
    Severity.ERROR: 0xE67E22,     # dark orange
    Severity.CRITICAL: 0xE74C3C,  # red
}

_SLACK_EMOJI: dict[Severity, str] = {
    Severity.DEBUG: ":white_circle:",
    Severity.INFO: ":large_blue_circle:",
    Severity.WARNING: ":warning:",
    Severity.ERROR: ":x:",
    Severity.CRITICAL: ":rotating_light:",
}


class NotificationChannel(abc.ABC):
    """Base class for notification delivery channels."""

    name: str = ""
    # Local channels cannot fail, so they only confirm delivery when no
    # external channel was selected.
    local: bool = False

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> bool:
        """Send a message. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class LogChannel(NotificationChannel):
    """Writes notifications to the structured log. Always succeeds."""

    name = "log"
    local = True

    async def send(self, msg: AlertMessage) -> bool:
        notification_logger.warning(
            "notification",
            severity=msg.severity.label,
            title=msg.title,
            body=msg.body,
            source_event_type=msg.source_event_type,
            fields=msg.fields,
        )
        return True

    async def close(self) -> None:
        return None


class _WebhookChannel(NotificationChannel):
    """Shared aiohttp session handling for webhook-based channels."""

    _ok_statuses: tuple[int, ...] = (200,)

    def __init__(self, webhook_url: str, timeout_secs: float = 10.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    @abc.abstractmethod
    def _payload(self, msg: AlertMessage) -> dict:
        """Build the webhook JSON body."""

    async def send(self, msg: AlertMessage) -> bool:
        payload = self._payload(msg)
        try:
            session = self._get_session()
            async with session.post(self._webhook_url, json=payload) as resp:
                if resp.status in self._ok_statuses:
                    return True
                body = await resp.text()
                logger.warning(
                    "webhook_send_failed",
                    channel=self.name,
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception("webhook_send_error", channel=self.name)
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class SlackChannel(_WebhookChannel):
    """Delivers notifications via a Slack incoming webhook."""

    name = "slack"

    def __init__(self, config: SlackConfig) -> None:
        super().__init__(config.webhook_url.get_secret_value())
        self._channel = config.channel
        self._username = config.username

    def _payload(self, msg: AlertMessage) -> dict:
        emoji = _SLACK_EMOJI.get(msg.severity, ":white_circle:")
        text = f"{emoji} *[{msg.severity.name}] {msg.title}*"
        if msg.body:
            text += f"\n{msg.body}"
        payload: dict = {
            "text": text,
            "channel": self._channel,
            "username": self._username,
        }
        if msg.fields:
            payload["blocks"] = [
                {"type": "section", "text": {"type": "mrkdwn", "text": text}},
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*{k}:*\n{v}"}
                        for k, v in list(msg.fields.items())[:10]
                    ],
                },
            ]
        return payload


class DiscordChannel(_WebhookChannel):
    """Delivers notifications via a Discord webhook with colour-coded embeds."""

    name = "discord"
    _ok_statuses = (200, 204)

    def __init__(self, config: DiscordConfig) -> None:
        super().__init__(config.webhook_url.get_secret_value())
        self._username = config.username

    def _payload(self, msg: AlertMessage) -> dict:
        color = _DISCORD_COLORS.get(msg.severity, 0x95A5A6)
        embed_fields = [
            {"name": k, "value": v, "inline": True}
            for k, v in msg.fields.items()
        ]
        embed: dict = {
            "title": f"[{msg.severity.name}] {msg.title}",
            "color": color,
        }
        if msg.body:
            embed["description"] = msg.body
        if embed_fields:
            embed["fields"] = embed_fields

        return {"username": self._username, "embeds": [embed]}
