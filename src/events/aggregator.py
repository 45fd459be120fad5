"""Window aggregation — pure functions over an explicit event slice and clock.

Nothing here reads the wall clock; callers pass ``now`` so results are
reproducible.
"""

from __future__ import annotations

import base64
from collections import Counter
from collections.abc import Collection, Iterable

from src.core.types import Event, FingerprintCount, Severity, Summary

FINGERPRINT_LENGTH = 16
MESSAGE_PREFIX_CHARS = 100
TOP_FINGERPRINTS = 5


def fingerprint(source: str, message: str, severity: Severity | int | str) -> str:
    """Coarse dedup key for near-identical events.

    Not a digest: the base64 text is truncated, so only the leading bytes of
    ``source|message|severity`` participate.
    """
    label = Severity.parse(severity).label
    raw = "|".join([source or "", (message or "")[:MESSAGE_PREFIX_CHARS], label])
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")[:FINGERPRINT_LENGTH]


def events_in_window(
    events: Iterable[Event],
    window_minutes: float,
    now: float,
    severity_filter: Collection[Severity] | None = None,
) -> list[Event]:
    """Return events with ``now - window <= timestamp <= now``, in input order.

    An empty or missing *severity_filter* admits every severity.
    """
    start = now - window_minutes * 60.0
    return [
        e for e in events
        if start <= e.timestamp <= now
        and (not severity_filter or e.severity in severity_filter)
    ]


def rank_fingerprints(events: Iterable[Event]) -> list[FingerprintCount]:
    """Count events per fingerprint, count-descending, most recent first on ties.

    The sample of each entry is its most recent event; among events with
    equal timestamps the later one in *events* wins.
    """
    counts: Counter[str] = Counter()
    latest: dict[str, tuple[float, int]] = {}
    samples: dict[str, Event] = {}

    for pos, event in enumerate(events):
        counts[event.fingerprint] += 1
        key = (event.timestamp, pos)
        if event.fingerprint not in latest or key >= latest[event.fingerprint]:
            latest[event.fingerprint] = key
            samples[event.fingerprint] = event

    ranked = sorted(
        counts,
        key=lambda fp: (-counts[fp], -latest[fp][0], -latest[fp][1]),
    )
    return [
        FingerprintCount(
            fingerprint=fp,
            count=counts[fp],
            last_seen=latest[fp][0],
            sample=samples[fp],
        )
        for fp in ranked
    ]


def summarize(
    events: Iterable[Event],
    window_minutes: float,
    severity_filter: Collection[Severity] | None,
    now: float,
) -> Summary:
    """Aggregate counts over the trailing window ending at *now*."""
    window = events_in_window(events, window_minutes, now, severity_filter)

    by_severity: Counter[str] = Counter(e.severity.label for e in window)
    by_source: Counter[str] = Counter(e.source for e in window)
    ranked = rank_fingerprints(window)

    return Summary(
        total_count=len(window),
        count_by_severity=dict(by_severity),
        count_by_source=dict(by_source),
        count_by_fingerprint={fc.fingerprint: fc.count for fc in ranked},
        top_fingerprints=ranked[:TOP_FINGERPRINTS],
        window_start=now - window_minutes * 60.0,
        window_end=now,
    )
