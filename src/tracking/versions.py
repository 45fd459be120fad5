"""Dependency update classification and auto-update eligibility."""

from __future__ import annotations

import re

from src.core.config import AutoUpdatePolicy
from src.core.types import DependencyUpdate, UpdateType

# First "major[.minor[.patch]]" run in a version string or range ("^1.2", "v3").
_VERSION_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def coerce_version(version: str) -> tuple[int, int, int] | None:
    """Loose semver coercion: missing components default to zero."""
    match = _VERSION_RE.search(version or "")
    if match is None:
        return None
    return tuple(int(part) if part else 0 for part in match.groups())  # type: ignore[return-value]


def classify_update(current: str, latest: str) -> UpdateType:
    """Classify the bump from *current* to *latest* as major / minor / patch."""
    cur = coerce_version(current)
    new = coerce_version(latest)
    if cur is None or new is None:
        return UpdateType.UNKNOWN
    if new[0] > cur[0]:
        return UpdateType.MAJOR
    if new[0] == cur[0] and new[1] > cur[1]:
        return UpdateType.MINOR
    if new[:2] == cur[:2] and new[2] > cur[2]:
        return UpdateType.PATCH
    return UpdateType.NONE


def resolve_update(update: DependencyUpdate, policy: AutoUpdatePolicy) -> DependencyUpdate:
    """Fill in ``update_type`` and ``auto_eligible`` when the collaborator left them out.

    Ignored packages are never eligible, whatever the collaborator says.
    """
    update_type = update.update_type or classify_update(
        update.current_version, update.latest_version,
    )
    if update.name in policy.ignored_packages:
        eligible = False
    elif update.auto_eligible is not None:
        eligible = update.auto_eligible
    else:
        eligible = {
            UpdateType.PATCH: policy.patch,
            UpdateType.MINOR: policy.minor,
            UpdateType.MAJOR: policy.major,
        }.get(update_type, False)
    return update.model_copy(update={"update_type": update_type, "auto_eligible": eligible})


def eligible_updates(
    updates: list[DependencyUpdate],
    policy: AutoUpdatePolicy,
) -> list[DependencyUpdate]:
    """The subset of *updates* that may be applied without review."""
    resolved = (resolve_update(u, policy) for u in updates)
    return [u for u in resolved if u.auto_eligible]
