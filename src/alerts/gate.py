"""AlertGate — the one place windowed thresholds and silence periods are decided.

Per fingerprint the gate is conceptually ``Quiet -> Alerting -> Quiet``
within a single call: it never keeps an "alerting" flag between calls.
Whether a fingerprint may fire again is decided solely from the persisted
AlertRecord timestamp, so any poll cycle (or a freshly restarted process)
can consult the same gate without session state.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import Counter
from collections.abc import AsyncIterator, Callable, Iterable

import structlog

from src.alerts.records import AlertRecordStore
from src.core.config import ErrorConfig
from src.core.exceptions import PersistenceError
from src.core.types import Event, FiredAlert
from src.events.aggregator import events_in_window, rank_fingerprints
from src.notify.dispatcher import NotificationDispatcher
from src.notify.formatters import format_error_alert

logger = structlog.get_logger(__name__)


class AlertGate:
    """Fires at most one alert per fingerprint per silence period.

    Usage::

        gate = AlertGate(config, AlertRecordStore("data/alert_records.json"), dispatcher)
        fired = await gate.evaluate(event_store.query())
    """

    def __init__(
        self,
        config: ErrorConfig,
        records: AlertRecordStore,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], float] = time.time,
        dispatch_timeout_secs: float = 60.0,
    ) -> None:
        self._config = config
        self._records = records
        self._dispatcher = dispatcher
        self._clock = clock
        self._dispatch_timeout_secs = dispatch_timeout_secs
        # Held only while some evaluation is working on the fingerprint.
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @property
    def config(self) -> ErrorConfig:
        return self._config

    @property
    def records(self) -> AlertRecordStore:
        return self._records

    def reconfigure(self, config: ErrorConfig) -> None:
        """Replace thresholds; takes effect on the next evaluation."""
        self._config = config
        logger.info(
            "alert_gate_reconfigured",
            alert_threshold=config.alert_threshold,
            window_minutes=config.window_minutes,
            silence_minutes=config.silence_minutes,
        )

    # ── Decision ─────────────────────────────────────────────────

    def should_fire(
        self,
        fingerprint: str,
        count: int,
        now: float,
        config: ErrorConfig | None = None,
    ) -> bool:
        """True when *count* meets the threshold and the silence period has passed."""
        cfg = config or self._config
        if count < cfg.alert_threshold:
            return False
        last = self._records.get(fingerprint)
        if last is None:
            return True
        return now - last > cfg.silence_minutes * 60.0

    # ── Evaluation ───────────────────────────────────────────────

    async def evaluate(
        self,
        events: Iterable[Event],
        now: float | None = None,
    ) -> list[FiredAlert]:
        """Fire every eligible fingerprint, highest count first.

        A fingerprint whose notification fails is not recorded, so it is
        eligible again on the next evaluation.
        """
        cfg = self._config
        now = self._clock() if now is None else now
        window = events_in_window(
            events, cfg.window_minutes, now, cfg.severity_filter,
        )

        fired: list[FiredAlert] = []
        for entry in rank_fingerprints(window):
            if entry.count < cfg.alert_threshold:
                break  # ranked by count; nothing further can qualify
            async with self._fingerprint_lock(entry.fingerprint):
                # Re-check under the lock: a concurrent caller may have fired.
                if not self.should_fire(entry.fingerprint, entry.count, now, cfg):
                    continue
                alert = FiredAlert(
                    fingerprint=entry.fingerprint,
                    count=entry.count,
                    fired_at=now,
                    events=[e for e in window if e.fingerprint == entry.fingerprint],
                )
                if not await self._deliver(alert, cfg):
                    continue
                try:
                    self._records.set(entry.fingerprint, now)
                except PersistenceError:
                    logger.exception(
                        "alert_record_persist_failed",
                        fingerprint=entry.fingerprint,
                    )
                fired.append(alert)
                logger.info(
                    "alert_fired",
                    fingerprint=entry.fingerprint,
                    count=entry.count,
                    window_minutes=cfg.window_minutes,
                )
        return fired

    @contextlib.asynccontextmanager
    async def _fingerprint_lock(self, fingerprint: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(fingerprint, asyncio.Lock())
        self._lock_users[fingerprint] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[fingerprint] -= 1
            if self._lock_users[fingerprint] == 0:
                del self._lock_users[fingerprint]
                del self._locks[fingerprint]

    async def _deliver(self, alert: FiredAlert, cfg: ErrorConfig) -> bool:
        if self._dispatcher is None:
            return True
        msg = format_error_alert(alert, cfg.window_minutes)
        try:
            delivered = await asyncio.wait_for(
                self._dispatcher.dispatch(msg, sinks=cfg.sinks),
                timeout=self._dispatch_timeout_secs,
            )
        except TimeoutError:
            logger.warning("alert_dispatch_timeout", fingerprint=alert.fingerprint)
            return False
        if not delivered:
            logger.warning("alert_dispatch_failed", fingerprint=alert.fingerprint)
        return delivered
