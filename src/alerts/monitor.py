"""ErrorMonitor — records errors and consults the alert gate on every record."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog

from src.alerts.gate import AlertGate
from src.core.exceptions import PersistenceError
from src.core.types import Event, FiredAlert, Severity, Summary
from src.events.aggregator import summarize
from src.events.store import EventStore

logger = structlog.get_logger(__name__)


class ErrorMonitor:
    """Facade over EventStore + AlertGate.

    Recording never fails because of storage: a write failure is logged and
    the gate still evaluates the in-memory log.
    """

    def __init__(
        self,
        store: EventStore,
        gate: AlertGate,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._gate = gate
        self._clock = clock

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def gate(self) -> AlertGate:
        return self._gate

    async def log_error(
        self,
        message: str,
        source: str = "unknown",
        severity: Severity | str = Severity.ERROR,
        context: dict[str, Any] | None = None,
        stack: str | None = None,
    ) -> Event:
        """Build an event from the arguments and ``record`` it."""
        event = Event(
            message=message,
            source=source,
            severity=Severity.parse(severity),
            context=context or {},
            stack=stack,
        )
        return await self.record(event)

    async def record(self, event: Event) -> Event:
        """Store *event*, then fire any alert its arrival makes due."""
        stored = self._store.prepare(event)
        try:
            self._store.record(stored)
        except PersistenceError:
            logger.exception("event_persist_failed", event_id=stored.id)
        await self.check()
        return stored

    async def check(self, now: float | None = None) -> list[FiredAlert]:
        """Evaluate the gate over the current trailing window."""
        now = self._clock() if now is None else now
        since = now - self._gate.config.window_minutes * 60.0
        return await self._gate.evaluate(self._store.query(since=since), now=now)

    def summary(
        self,
        hours: float = 24,
        severity: Severity | str | None = None,
        source: str | None = None,
    ) -> Summary:
        """Counts over the last *hours*, optionally narrowed by severity / source."""
        now = self._clock()
        events = self._store.query(
            since=now - hours * 3600.0,
            severity=severity,
            source=source,
        )
        return summarize(events, window_minutes=hours * 60.0, severity_filter=None, now=now)

    def acknowledge(self, event_id: str) -> Event | None:
        try:
            return self._store.acknowledge(event_id)
        except PersistenceError:
            logger.exception("event_ack_persist_failed", event_id=event_id)
            return next(
                (e for e in self._store.query() if e.id == event_id),
                None,
            )

    def unacknowledged(
        self,
        severity: Severity | str | None = None,
        limit: int = 20,
    ) -> list[Event]:
        return self._store.unacknowledged(severity=severity, limit=limit)
