"""Tests for dependency update classification and auto-update eligibility."""

from __future__ import annotations

import pytest

from src.core.config import AutoUpdatePolicy
from src.core.types import DependencyUpdate, UpdateType
from src.tracking.versions import (
    classify_update,
    coerce_version,
    eligible_updates,
    resolve_update,
)


def _upd(name: str, current: str, latest: str, **kw: object) -> DependencyUpdate:
    return DependencyUpdate(
        name=name, current_version=current, latest_version=latest, **kw,  # type: ignore[arg-type]
    )


class TestCoerce:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.2.3", (1, 2, 3)),
            ("^4.17", (4, 17, 0)),
            ("v3", (3, 0, 0)),
            ("~2.0.1-beta.4", (2, 0, 1)),
            ("latest", None),
            ("", None),
        ],
    )
    def test_coerce(self, raw: str, expected: tuple[int, int, int] | None) -> None:
        assert coerce_version(raw) == expected


class TestClassify:
    @pytest.mark.parametrize(
        ("current", "latest", "expected"),
        [
            ("1.2.3", "2.0.0", UpdateType.MAJOR),
            ("1.2.3", "1.3.0", UpdateType.MINOR),
            ("1.2.3", "1.2.4", UpdateType.PATCH),
            ("1.2.3", "1.2.3", UpdateType.NONE),
            ("2.0.0", "1.9.9", UpdateType.NONE),
            ("^1.2.0", "1.2.9", UpdateType.PATCH),
            ("1.2.3", "next", UpdateType.UNKNOWN),
        ],
    )
    def test_classify(self, current: str, latest: str, expected: UpdateType) -> None:
        assert classify_update(current, latest) == expected


class TestEligibility:
    def test_default_policy(self) -> None:
        policy = AutoUpdatePolicy()
        updates = [
            _upd("left-pad", "1.0.0", "1.0.1"),
            _upd("react", "17.0.2", "18.2.0"),
            _upd("lodash", "4.16.0", "4.17.21"),
        ]
        assert [u.name for u in eligible_updates(updates, policy)] == ["left-pad", "lodash"]

    def test_major_allowed_by_policy(self) -> None:
        policy = AutoUpdatePolicy(major=True)
        assert eligible_updates([_upd("react", "17.0.0", "18.0.0")], policy)

    def test_ignored_package_never_eligible(self) -> None:
        policy = AutoUpdatePolicy(ignored_packages=["typescript"])
        upd = _upd("typescript", "5.0.0", "5.0.1", auto_eligible=True)
        assert eligible_updates([upd], policy) == []

    def test_collaborator_verdict_respected(self) -> None:
        policy = AutoUpdatePolicy()
        upd = _upd("left-pad", "1.0.0", "1.0.1", auto_eligible=False)
        assert eligible_updates([upd], policy) == []

    def test_resolve_fills_type(self) -> None:
        resolved = resolve_update(_upd("x", "1.0.0", "1.1.0"), AutoUpdatePolicy())
        assert resolved.update_type == UpdateType.MINOR
        assert resolved.auto_eligible is True

    def test_unknown_never_eligible(self) -> None:
        resolved = resolve_update(_upd("x", "main", "dev"), AutoUpdatePolicy())
        assert resolved.auto_eligible is False
