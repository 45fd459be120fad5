"""PollCycleOrchestrator — one pass over all targets, side effects exactly once.

Per target the pipeline is::

    fetch (snapshot, readiness, [dependency updates])
      -> diff against stored TargetState
      -> one side effect per new condition
      -> commit the next state

A condition whose side effect fails keeps its previous stored value, so the
next cycle sees it as new again. A target whose fetch fails is skipped with
its stored state untouched. Nothing that goes wrong in one target affects
another.

``target_timeout_secs`` bounds the fetch phase only. Once a side effect may
have happened the target runs through to its commit, with each individual
call bounded by ``operation_timeout_secs``.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.alerts.monitor import ErrorMonitor
from src.core.config import AutoUpdatePolicy, NotifyOnConfig, PollerConfig
from src.core.exceptions import DispatchError, FetchError, PersistenceError
from src.core.types import (
    ConditionKind,
    CycleReport,
    DependencyUpdate,
    ObservedSnapshot,
    ReleaseReadiness,
    RepoSnapshot,
    Severity,
    TargetOutcome,
    TargetReport,
    TargetState,
)
from src.notify.dispatcher import NotificationDispatcher
from src.notify.formatters import (
    format_build_failure,
    format_dependency_pr,
    format_release_needed,
)
from src.notify.types import AlertMessage
from src.poller.collaborator import Collaborator
from src.tracking.tracker import TargetStateTracker, diff
from src.tracking.versions import eligible_updates

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Side effects run in this order within a target.
_CONDITION_ORDER = (
    ConditionKind.BUILD_FAILURE,
    ConditionKind.DEPENDENCY_UPDATE,
    ConditionKind.RELEASE_NEEDED,
)


class PollCycleOrchestrator:
    """Drives poll cycles over a fixed list of targets.

    Usage::

        orch = PollCycleOrchestrator(
            targets=settings.targets,
            collaborator=collaborator,
            tracker=TargetStateTracker(TargetStateStore(path)),
            dispatcher=dispatcher,
            errors=error_monitor,
            config=settings.poller,
        )
        report = await orch.run_cycle()
    """

    def __init__(
        self,
        targets: list[str],
        collaborator: Collaborator,
        tracker: TargetStateTracker,
        dispatcher: NotificationDispatcher,
        errors: ErrorMonitor | None = None,
        config: PollerConfig | None = None,
        policy: AutoUpdatePolicy | None = None,
        notify_on: NotifyOnConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._targets = list(targets)
        self._collaborator = collaborator
        self._tracker = tracker
        self._dispatcher = dispatcher
        self._errors = errors
        self._config = config or PollerConfig()
        self._policy = policy or AutoUpdatePolicy()
        self._notify_on = notify_on or NotifyOnConfig()
        self._clock = clock
        self._target_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._running = False
        self._stopping = False
        self._cycle_count = 0
        self._last_report: CycleReport | None = None

    # ── Properties ────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        """Whether a cycle is in progress."""
        return self._running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    @property
    def targets(self) -> list[str]:
        return list(self._targets)

    # ── Lifecycle ─────────────────────────────────────────────────

    def request_stop(self) -> None:
        """Let in-flight targets finish; targets not yet started are skipped."""
        self._stopping = True

    async def run_cycle(self) -> CycleReport | None:
        """Run one pass over all targets. Returns None if a cycle is already running."""
        if self._running:
            logger.warning("cycle_skipped_still_running", cycle=self._cycle_count)
            return None
        if self._stopping:
            logger.info("cycle_skipped_stopping")
            return None

        self._running = True
        try:
            self._cycle_count += 1
            cycle = self._cycle_count
            report = CycleReport(cycle=cycle, started_at=self._clock())
            logger.info("cycle_started", cycle=cycle, targets=len(self._targets))

            semaphore = asyncio.Semaphore(self._config.max_concurrency)

            async def _bounded(target: str) -> TargetReport:
                async with semaphore:
                    if self._stopping:
                        return TargetReport(
                            target=target,
                            outcome=TargetOutcome.SKIPPED,
                            detail="shutdown requested",
                        )
                    return await self._run_target(target, cycle)

            report.targets = list(
                await asyncio.gather(*(_bounded(t) for t in self._targets))
            )
            report.finished_at = self._clock()
            self._last_report = report
            logger.info(
                "cycle_complete",
                cycle=cycle,
                elapsed_secs=round(report.finished_at - report.started_at, 3),
                ok=report.ok_count,
                total=len(report.targets),
            )
            return report
        finally:
            self._running = False

    # ── External reset hooks ──────────────────────────────────────

    async def clear_pending_pr(self, target: str) -> bool:
        """Forget *target*'s open update PR (call once it is merged or closed)."""
        async with self._target_locks[target]:
            return self._tracker.clear_pending_pr(target)

    async def on_release_published(self, target: str) -> bool:
        """Re-arm *target*'s release-needed notification."""
        async with self._target_locks[target]:
            return self._tracker.on_release_published(target)

    # ── Target boundary ───────────────────────────────────────────

    async def _run_target(self, target: str, cycle: int) -> TargetReport:
        """Process one target, converting every failure into a report."""
        log = logger.bind(target=target, cycle=cycle)
        try:
            return await self.process_target(target, cycle)
        except TimeoutError:
            log.warning("target_timeout", timeout_secs=self._config.target_timeout_secs)
            await self._record_error(target, "target processing timed out")
            return TargetReport(target=target, outcome=TargetOutcome.TIMED_OUT)
        except FetchError as e:
            log.warning("target_fetch_failed", error=str(e))
            await self._record_error(target, f"fetch failed: {e}")
            return TargetReport(
                target=target, outcome=TargetOutcome.FETCH_FAILED, detail=str(e),
            )
        except PersistenceError as e:
            log.error("target_state_persist_failed", error=str(e))
            await self._record_error(target, f"state not saved: {e}", Severity.CRITICAL)
            return TargetReport(
                target=target, outcome=TargetOutcome.PERSIST_FAILED, detail=str(e),
            )
        except Exception as e:
            log.exception("target_unexpected_error")
            await self._record_error(target, f"unexpected error: {e!r}")
            return TargetReport(target=target, outcome=TargetOutcome.ERROR, detail=repr(e))

    async def process_target(self, target: str, cycle: int) -> TargetReport:
        """Fetch, diff, act, and commit for one target (serialized per target)."""
        async with self._target_locks[target]:
            snapshot, readiness, updates = await asyncio.wait_for(
                self._observe(target, cycle),
                timeout=self._config.target_timeout_secs,
            )

            observed = ObservedSnapshot(
                failed_build_count=snapshot.failed_build_count,
                eligible_updates=updates,
                release_needed=readiness.needed,
            )
            previous = self._tracker.get(target)
            result = diff(previous, observed)
            state = result.next_state.model_copy()
            prev = previous or TargetState()

            report = TargetReport(
                target=target,
                outcome=TargetOutcome.COMMITTED,
                new_conditions=[k for k in _CONDITION_ORDER if k in result.new_conditions],
            )
            for kind in report.new_conditions:
                try:
                    await self._act(kind, target, state, snapshot, readiness, updates)
                    report.actioned.append(kind)
                except DispatchError as e:
                    _rollback(kind, state, prev)
                    report.failed.append(kind)
                    logger.warning(
                        "condition_action_failed",
                        target=target,
                        condition=kind.value,
                        error=str(e),
                    )
                    await self._record_error(target, f"{kind.value} action failed: {e}")

            self._tracker.commit(target, state)
            logger.debug(
                "target_committed",
                target=target,
                new=[k.value for k in report.new_conditions],
                failed=[k.value for k in report.failed],
            )
            return report

    async def _observe(
        self,
        target: str,
        cycle: int,
    ) -> tuple[RepoSnapshot, ReleaseReadiness, list[DependencyUpdate]]:
        snapshot = await self._fetch(
            self._collaborator.fetch_repo_snapshot(target), "fetch_repo_snapshot",
        )
        readiness = await self._fetch(
            self._collaborator.fetch_release_readiness(target), "fetch_release_readiness",
        )
        updates: list[DependencyUpdate] = []
        if self._dependencies_due(cycle):
            available = await self._fetch(
                self._collaborator.fetch_dependency_updates(target),
                "fetch_dependency_updates",
            )
            updates = eligible_updates(available, self._policy)
        return snapshot, readiness, updates

    # ── Side effects ──────────────────────────────────────────────

    async def _act(
        self,
        kind: ConditionKind,
        target: str,
        state: TargetState,
        snapshot: RepoSnapshot,
        readiness: ReleaseReadiness,
        updates: list[DependencyUpdate],
    ) -> None:
        """Perform the side effect for *kind*; raises DispatchError on failure."""
        if kind == ConditionKind.BUILD_FAILURE:
            if not self._notify_on.build_failure:
                _log_skip(target, kind, "notify_on.build_failure disabled")
                return
            runs = snapshot.failed_runs[: self._config.max_failed_runs_reported]
            await self._notify(format_build_failure(target, snapshot.failed_build_count, runs))

        elif kind == ConditionKind.DEPENDENCY_UPDATE:
            pr_id = await self._open_pr(target, updates)
            # Recorded before notifying so a failed notification never opens a second PR.
            state.pending_update_pr = pr_id
            logger.info("update_pr_opened", target=target, pr=pr_id, packages=len(updates))
            if not self._notify_on.dependency_update:
                _log_skip(target, kind, "notify_on.dependency_update disabled")
                return
            try:
                await self._notify(format_dependency_pr(target, pr_id, updates))
            except DispatchError as e:
                logger.warning("update_pr_notify_failed", target=target, pr=pr_id, error=str(e))

        elif kind == ConditionKind.RELEASE_NEEDED:
            if not self._notify_on.release_needed:
                _log_skip(target, kind, "notify_on.release_needed disabled")
                return
            await self._notify(format_release_needed(target, readiness.reason))

    async def _notify(self, msg: AlertMessage) -> None:
        try:
            delivered = await asyncio.wait_for(
                self._dispatcher.dispatch(msg),
                timeout=self._config.operation_timeout_secs,
            )
        except TimeoutError:
            raise DispatchError(f"notification {msg.title!r} timed out") from None
        if not delivered:
            raise DispatchError(f"notification {msg.title!r} was not delivered")

    async def _open_pr(self, target: str, updates: list[DependencyUpdate]) -> str:
        try:
            pr_id = await asyncio.wait_for(
                self._collaborator.open_update_pr(target, updates),
                timeout=self._config.operation_timeout_secs,
            )
        except TimeoutError:
            raise DispatchError("open_update_pr timed out") from None
        except Exception as e:
            raise DispatchError(f"open_update_pr failed: {e}") from e
        if not pr_id:
            raise DispatchError("open_update_pr returned no PR")
        return str(pr_id)

    # ── Helpers ───────────────────────────────────────────────────

    def _dependencies_due(self, cycle: int) -> bool:
        return (cycle - 1) % self._config.dependency_check_every == 0

    async def _fetch(self, call: Awaitable[T], op: str) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._config.operation_timeout_secs)
        except TimeoutError:
            raise FetchError(f"{op} timed out") from None

    async def _record_error(
        self,
        target: str,
        message: str,
        severity: Severity = Severity.ERROR,
    ) -> None:
        """Feed a pipeline failure into the error monitor; never raises."""
        if self._errors is None:
            return
        try:
            await self._errors.log_error(
                message=message,
                source=target,
                severity=severity,
                context={"component": "poller", "cycle": self._cycle_count},
            )
        except Exception:
            logger.exception("error_record_failed", target=target)


def _rollback(kind: ConditionKind, state: TargetState, prev: TargetState) -> None:
    """Restore the field for *kind* so the condition is seen as new next cycle."""
    if kind == ConditionKind.BUILD_FAILURE:
        state.failed_build_count = prev.failed_build_count
    elif kind == ConditionKind.DEPENDENCY_UPDATE:
        state.pending_update_pr = prev.pending_update_pr
    elif kind == ConditionKind.RELEASE_NEEDED:
        state.release_notified = prev.release_notified


def _log_skip(target: str, kind: ConditionKind, reason: str) -> None:
    logger.info("condition_skipped", target=target, condition=kind.value, reason=reason)
