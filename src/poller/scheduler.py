"""Recurring poll timer."""

from __future__ import annotations

import asyncio

import structlog

from src.poller.orchestrator import PollCycleOrchestrator

logger = structlog.get_logger(__name__)


class PollScheduler:
    """Background task that starts a poll cycle every ``interval_secs``.

    A tick that finds the previous cycle still running is skipped. Stopping
    lets the in-flight cycle finish its started targets rather than
    cancelling it mid-side-effect.

    Usage::

        scheduler = PollScheduler(orchestrator, interval_secs=1800)
        await scheduler.start()
        # ...
        await scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: PollCycleOrchestrator,
        interval_secs: float = 1800,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None
        self._cycle_task: asyncio.Task[object] | None = None
        self._running = False
        self._tick_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("poll_scheduler_started", interval_secs=self._interval_secs)

    async def stop(self) -> None:
        self._running = False
        self._orchestrator.request_stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        cycle = self._cycle_task
        self._cycle_task = None
        if cycle is not None and not cycle.done():
            logger.info("poll_scheduler_draining")
            try:
                await cycle
            except Exception:
                logger.exception("poll_cycle_error")
        logger.info("poll_scheduler_stopped", ticks=self._tick_count)

    def tick(self) -> bool:
        """Launch a cycle now unless one is in flight. Returns True if launched."""
        self._tick_count += 1
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.warning("poll_tick_skipped", tick=self._tick_count)
            return False
        self._cycle_task = asyncio.create_task(self._orchestrator.run_cycle())
        self._cycle_task.add_done_callback(_log_cycle_failure)
        return True

    # ── Internal loop ───────────────────────────────────────────

    async def _loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception:
                logger.exception("poll_scheduler_tick_error")
            await asyncio.sleep(self._interval_secs)


def _log_cycle_failure(task: asyncio.Task[object]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("poll_cycle_error", error=repr(exc))
