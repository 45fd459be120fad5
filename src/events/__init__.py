"""Event log and windowed aggregation."""

from src.events.aggregator import (
    events_in_window,
    fingerprint,
    rank_fingerprints,
    summarize,
)
from src.events.store import EventStore

__all__ = [
    "EventStore",
    "events_in_window",
    "fingerprint",
    "rank_fingerprints",
    "summarize",
]
