"""Tests for state diffing and the tracker's reset hooks."""

from __future__ import annotations

from pathlib import Path

from src.core.types import (
    ConditionKind,
    DependencyUpdate,
    ObservedSnapshot,
    TargetState,
)
from src.tracking.state_store import TargetStateStore
from src.tracking.tracker import TargetStateTracker, diff


# ── Helpers ─────────────────────────────────────────────────────


def _obs(**kw: object) -> ObservedSnapshot:
    return ObservedSnapshot(**kw)  # type: ignore[arg-type]


def _update() -> DependencyUpdate:
    return DependencyUpdate(
        name="left-pad",
        current_version="1.0.0",
        latest_version="1.0.1",
        auto_eligible=True,
    )


def _tracker(tmp_path: Path) -> TargetStateTracker:
    return TargetStateTracker(TargetStateStore(tmp_path / "target_states.json"))


# ── Build failures ──────────────────────────────────────────────


class TestBuildFailureDiff:
    def test_sequence_three_three_seven(self) -> None:
        state = None
        results = []
        for count in (3, 3, 7):
            result = diff(state, _obs(failed_build_count=count))
            results.append(ConditionKind.BUILD_FAILURE in result.new_conditions)
            state = result.next_state
        assert results == [True, False, True]
        assert state is not None and state.failed_build_count == 7

    def test_zero_never_new(self) -> None:
        result = diff(TargetState(failed_build_count=4), _obs(failed_build_count=0))
        assert result.new_conditions == frozenset()
        assert result.next_state.failed_build_count == 0

    def test_recurrence_after_recovery(self) -> None:
        state = diff(None, _obs(failed_build_count=2)).next_state
        state = diff(state, _obs(failed_build_count=0)).next_state
        result = diff(state, _obs(failed_build_count=2))
        assert ConditionKind.BUILD_FAILURE in result.new_conditions


# ── Dependency updates ──────────────────────────────────────────


class TestDependencyDiff:
    def test_new_when_no_pending_pr(self) -> None:
        result = diff(None, _obs(eligible_updates=[_update()]))
        assert result.new_conditions == {ConditionKind.DEPENDENCY_UPDATE}

    def test_suppressed_while_pr_pending(self) -> None:
        prev = TargetState(pending_update_pr="17")
        result = diff(prev, _obs(eligible_updates=[_update()]))
        assert result.new_conditions == frozenset()
        assert result.next_state.pending_update_pr == "17"

    def test_no_updates_not_new(self) -> None:
        assert diff(None, _obs()).new_conditions == frozenset()


# ── Release needed ──────────────────────────────────────────────


class TestReleaseDiff:
    def test_new_once(self) -> None:
        first = diff(None, _obs(release_needed=True))
        assert first.new_conditions == {ConditionKind.RELEASE_NEEDED}
        assert first.next_state.release_notified is True

        second = diff(first.next_state, _obs(release_needed=True))
        assert second.new_conditions == frozenset()

    def test_flag_sticky_when_no_longer_needed(self) -> None:
        prev = TargetState(release_notified=True)
        result = diff(prev, _obs(release_needed=False))
        assert result.next_state.release_notified is True


# ── Independence / idempotence ─────────────────────────────────


class TestDiffProperties:
    def test_conditions_independent(self) -> None:
        result = diff(
            None,
            _obs(failed_build_count=1, eligible_updates=[_update()], release_needed=True),
        )
        assert result.new_conditions == {
            ConditionKind.BUILD_FAILURE,
            ConditionKind.DEPENDENCY_UPDATE,
            ConditionKind.RELEASE_NEEDED,
        }

    def test_previous_not_mutated(self) -> None:
        prev = TargetState()
        diff(prev, _obs(failed_build_count=5, release_needed=True))
        assert prev == TargetState()

    def test_replay_is_idempotent(self) -> None:
        snapshot = _obs(failed_build_count=2, release_needed=True)
        state = diff(None, snapshot).next_state
        for _ in range(3):
            result = diff(state, snapshot)
            assert result.new_conditions == frozenset()
            assert result.next_state == state
            state = result.next_state


# ── Tracker hooks ───────────────────────────────────────────────


class TestTracker:
    def test_commit_and_get(self, tmp_path: Path) -> None:
        tracker = _tracker(tmp_path)
        result = tracker.diff("acme/api", _obs(failed_build_count=1))
        tracker.commit("acme/api", result.next_state)
        assert tracker.get("acme/api") == TargetState(failed_build_count=1)
        assert tracker.targets() == ["acme/api"]

    def test_clear_pending_pr(self, tmp_path: Path) -> None:
        tracker = _tracker(tmp_path)
        tracker.commit("acme/api", TargetState(pending_update_pr="9"))
        assert tracker.clear_pending_pr("acme/api") is True
        state = tracker.get("acme/api")
        assert state is not None and state.pending_update_pr is None
        assert tracker.clear_pending_pr("acme/api") is False
        assert tracker.clear_pending_pr("acme/unknown") is False

    def test_clear_pending_pr_allows_new_pr(self, tmp_path: Path) -> None:
        tracker = _tracker(tmp_path)
        tracker.commit("acme/api", TargetState(pending_update_pr="9"))
        tracker.clear_pending_pr("acme/api")
        result = tracker.diff("acme/api", _obs(eligible_updates=[_update()]))
        assert ConditionKind.DEPENDENCY_UPDATE in result.new_conditions

    def test_on_release_published_rearms(self, tmp_path: Path) -> None:
        tracker = _tracker(tmp_path)
        tracker.commit("acme/api", TargetState(release_notified=True))
        assert tracker.on_release_published("acme/api") is True
        result = tracker.diff("acme/api", _obs(release_needed=True))
        assert ConditionKind.RELEASE_NEEDED in result.new_conditions
        assert tracker.on_release_published("acme/unknown") is False
