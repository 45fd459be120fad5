"""Central notification dispatcher — routes messages to named channels."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from src.notify.channels import NotificationChannel
from src.notify.types import AlertMessage

# Dedicated structured logger for dispatch decisions.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """Sends an AlertMessage to all channels, or to a named subset.

    - Every dispatch decision is logged via *decision_logger*.
    - ``dispatch`` reports delivery: True when at least one selected channel
      accepted the message. When any external channel (Slack, Discord) is
      selected, only an external acceptance counts; the log channel alone
      confirms delivery only when it is all that was selected. Selecting no
      channels counts as a failure.
    - Channel exceptions are logged and treated as that channel failing.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: list[NotificationChannel] = channels or []

    @property
    def channel_names(self) -> list[str]:
        return [ch.name for ch in self._channels]

    def _select(self, sinks: Iterable[str] | None) -> list[NotificationChannel]:
        if sinks is None:
            return list(self._channels)
        wanted = set(sinks)
        return [ch for ch in self._channels if ch.name in wanted]

    async def dispatch(
        self,
        msg: AlertMessage,
        sinks: Iterable[str] | None = None,
    ) -> bool:
        """Deliver *msg*; returns whether any selected channel accepted it."""
        channels = self._select(sinks)
        self._log_decision(msg, [ch.name for ch in channels])

        if not channels:
            logger.warning(
                "dispatch_no_channels",
                title=msg.title,
                sinks=list(sinks) if sinks is not None else None,
            )
            return False

        external = any(not ch.local for ch in channels)
        delivered = 0
        for ch in channels:
            try:
                if await ch.send(msg) and (not external or not ch.local):
                    delivered += 1
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=ch.name,
                    title=msg.title,
                )

        if delivered == 0:
            logger.warning("dispatch_failed", title=msg.title, channels=len(channels))
        return delivered > 0

    def _log_decision(self, msg: AlertMessage, channels: list[str]) -> None:
        decision_logger.info(
            "decision",
            severity=msg.severity.label,
            title=msg.title,
            body=msg.body,
            source_event_type=msg.source_event_type,
            fields=msg.fields,
            channels=channels,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.name)
