"""Target state diffing — separates new conditions from ones already acted upon."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from src.core.types import ConditionKind, ObservedSnapshot, TargetState
from src.tracking.state_store import TargetStateStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DiffResult:
    """Outcome of comparing one observation against the stored state.

    ``next_state`` assumes every side effect for ``new_conditions`` succeeds;
    the orchestrator rolls individual fields back for the ones that fail.
    """

    next_state: TargetState
    new_conditions: frozenset[ConditionKind] = field(default_factory=frozenset)


def diff(previous: TargetState | None, current: ObservedSnapshot) -> DiffResult:
    """Apply the per-condition rules independently.

    - Build failure: nonzero count that differs from the previous count.
    - Dependency update: eligible updates exist and no update PR is pending.
    - Release needed: needed now and not already notified.

    With no previous state every nonzero / true value counts as new once.
    """
    prev = previous if previous is not None else TargetState()
    new: set[ConditionKind] = set()
    nxt = prev.model_copy()

    count = current.failed_build_count
    if count > 0 and count != prev.failed_build_count:
        new.add(ConditionKind.BUILD_FAILURE)
    nxt.failed_build_count = count

    if current.eligible_updates and prev.pending_update_pr is None:
        new.add(ConditionKind.DEPENDENCY_UPDATE)

    if current.release_needed and not prev.release_notified:
        new.add(ConditionKind.RELEASE_NEEDED)
        nxt.release_notified = True

    return DiffResult(next_state=nxt, new_conditions=frozenset(new))


class TargetStateTracker:
    """Per-target state over a TargetStateStore, plus the external reset hooks."""

    def __init__(self, store: TargetStateStore) -> None:
        self._store = store

    @property
    def store(self) -> TargetStateStore:
        return self._store

    def get(self, target: str) -> TargetState | None:
        return self._store.get(target)

    def diff(self, target: str, current: ObservedSnapshot) -> DiffResult:
        return diff(self._store.get(target), current)

    def commit(self, target: str, state: TargetState) -> None:
        self._store.put(target, state)

    def targets(self) -> list[str]:
        return self._store.targets()

    def clear_pending_pr(self, target: str) -> bool:
        """Forget the open update PR so a new one may be opened.

        Returns False when nothing was pending.
        """
        state = self._store.get(target)
        if state is None or state.pending_update_pr is None:
            return False
        logger.info("pending_pr_cleared", target=target, pr=state.pending_update_pr)
        state.pending_update_pr = None
        self._store.put(target, state)
        return True

    def on_release_published(self, target: str) -> bool:
        """Re-arm the release-needed notification after a release ships.

        Returns False when no release notification was outstanding.
        """
        state = self._store.get(target)
        if state is None or not state.release_notified:
            return False
        logger.info("release_notified_reset", target=target)
        state.release_notified = False
        self._store.put(target, state)
        return True
