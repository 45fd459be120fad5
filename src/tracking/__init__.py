"""Per-target condition tracking across poll cycles."""

from src.tracking.state_store import TargetStateStore
from src.tracking.tracker import DiffResult, TargetStateTracker, diff
from src.tracking.versions import (
    classify_update,
    coerce_version,
    eligible_updates,
    resolve_update,
)

__all__ = [
    "DiffResult",
    "TargetStateStore",
    "TargetStateTracker",
    "classify_update",
    "coerce_version",
    "diff",
    "eligible_updates",
    "resolve_update",
]
