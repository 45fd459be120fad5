"""EventStore — append-only, size-bounded, persisted log of observed events."""

from __future__ import annotations

import secrets
import threading
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.core.exceptions import PersistenceError
from src.core.types import Event, Severity
from src.events.aggregator import fingerprint
from src.storage.json_file import JsonFile

logger = structlog.get_logger(__name__)

DEFAULT_MAX_EVENTS = 1000


def new_event_id(now: float) -> str:
    """Time-ordered id: hex milliseconds plus a short random suffix."""
    return f"{int(now * 1000):x}{secrets.token_hex(2)}"


class EventStore:
    """Keeps the most recent *max_events* events in insertion (= time) order.

    Every mutating call rewrites the whole bounded log. When that write
    fails the in-memory log still holds the change and ``PersistenceError``
    is raised, leaving the caller to decide whether to carry on.

    Usage::

        store = EventStore("data/events.json")
        ev = store.record(Event(source="api", message="timeout"))
        recent = store.query(since=time.time() - 3600)
    """

    def __init__(
        self,
        path: str | Path,
        max_events: int = DEFAULT_MAX_EVENTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._file = JsonFile(path)
        self._max_events = max_events
        self._clock = clock
        self._events: deque[Event] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._load()

    @property
    def max_events(self) -> int:
        return self._max_events

    def __len__(self) -> int:
        return len(self._events)

    def _load(self) -> None:
        raw = self._file.read(default=[])
        if not isinstance(raw, list):
            raise PersistenceError(f"{self._file.path} does not hold an event list")
        try:
            self._events.extend(Event.model_validate(item) for item in raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt event in {self._file.path}: {e}") from e
        if raw:
            logger.info("events_loaded", path=str(self._file.path), count=len(self._events))

    def _persist(self) -> None:
        self._file.write([e.model_dump(mode="json") for e in self._events])

    # ── Mutations ───────────────────────────────────────────────

    def prepare(self, event: Event) -> Event:
        """Return a copy of *event* with id / timestamp / fingerprint filled in."""
        stored = event.model_copy(deep=True)
        if not stored.timestamp:
            stored.timestamp = self._clock()
        if not stored.id:
            stored.id = new_event_id(stored.timestamp)
        if not stored.fingerprint:
            stored.fingerprint = fingerprint(stored.source, stored.message, stored.severity)
        return stored

    def record(self, event: Event) -> Event:
        """Complete *event* (see ``prepare``), append, truncate, persist."""
        stored = self.prepare(event)
        with self._lock:
            self._events.append(stored)
            self._persist()
        return stored.model_copy()

    def acknowledge(self, event_id: str) -> Event | None:
        """Mark one event acknowledged. Returns None when the id is unknown."""
        with self._lock:
            for event in self._events:
                if event.id == event_id:
                    if not event.acknowledged:
                        event.acknowledged = True
                        event.acknowledged_at = self._clock()
                        self._persist()
                    return event.model_copy()
        return None

    # ── Queries ─────────────────────────────────────────────────

    def query(
        self,
        since: float | None = None,
        severity: Severity | str | None = None,
        source: str | None = None,
    ) -> list[Event]:
        """Matching events in chronological order."""
        sev = Severity.parse(severity) if severity is not None else None
        with self._lock:
            return [
                e.model_copy() for e in self._events
                if (since is None or e.timestamp >= since)
                and (sev is None or e.severity == sev)
                and (source is None or e.source == source)
            ]

    def unacknowledged(
        self,
        severity: Severity | str | None = None,
        limit: int = 20,
    ) -> list[Event]:
        """The most recent *limit* unacknowledged events, oldest first."""
        if limit <= 0:
            return []
        sev = Severity.parse(severity) if severity is not None else None
        with self._lock:
            pending = [
                e.model_copy() for e in self._events
                if not e.acknowledged and (sev is None or e.severity == sev)
            ]
        return pending[-limit:]
