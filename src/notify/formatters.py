"""Pure functions that convert alert and target conditions into AlertMessage objects."""

from __future__ import annotations

from src.core.types import (
    ConditionKind,
    DependencyUpdate,
    FiredAlert,
    Severity,
    WorkflowRun,
)
from src.notify.types import AlertMessage

ERROR_ALERT = "ERROR_ALERT"

# Most events listed in the body of an error alert.
_MAX_LISTED_EVENTS = 5


def format_error_alert(alert: FiredAlert, window_minutes: int) -> AlertMessage:
    """One message bundling every in-window event sharing a fingerprint."""
    sample = alert.events[-1] if alert.events else None
    severity = max((e.severity for e in alert.events), default=Severity.ERROR)
    source = sample.source if sample else "unknown"
    message = sample.message if sample else ""

    lines = [
        f"{e.source}: {e.message[:120]}"
        for e in alert.events[-_MAX_LISTED_EVENTS:]
    ]
    if len(alert.events) > _MAX_LISTED_EVENTS:
        lines.insert(0, f"... {len(alert.events) - _MAX_LISTED_EVENTS} earlier")

    return AlertMessage(
        severity=severity,
        title=f"{alert.count}x {source}: {message[:80]}",
        body="\n".join(lines),
        fields={
            "fingerprint": alert.fingerprint,
            "count": str(alert.count),
            "window_minutes": str(window_minutes),
            "source": source,
        },
        source_event_type=ERROR_ALERT,
        timestamp=alert.fired_at,
        raw={"event_ids": [e.id for e in alert.events]},
    )


def format_build_failure(
    target: str,
    failed_count: int,
    runs: list[WorkflowRun],
) -> AlertMessage:
    """Build failures detected (or their count changed) on *target*."""
    fields = {"repository": target, "failed_builds": str(failed_count)}
    lines = []
    for run in runs:
        line = f"{run.name or run.id} on {run.branch or '?'}"
        if run.commit:
            line += f" @ {run.commit[:7]}"
        if run.url:
            line += f" ({run.url})"
        lines.append(line)

    return AlertMessage(
        severity=Severity.ERROR,
        title=f"Build failed: {target}",
        body="\n".join(lines),
        fields=fields,
        source_event_type=ConditionKind.BUILD_FAILURE.value,
        raw={"runs": [r.model_dump() for r in runs]},
    )


def format_dependency_pr(
    target: str,
    pr_id: str,
    updates: list[DependencyUpdate],
) -> AlertMessage:
    """A dependency update PR was opened for *target*."""
    lines = [
        f"{u.name}: {u.current_version} -> {u.latest_version}"
        + (f" ({u.update_type.value})" if u.update_type else "")
        for u in updates
    ]
    return AlertMessage(
        severity=Severity.INFO,
        title=f"Dependency update PR opened: {target}",
        body="\n".join(lines),
        fields={
            "repository": target,
            "pull_request": pr_id,
            "packages": str(len(updates)),
        },
        source_event_type=ConditionKind.DEPENDENCY_UPDATE.value,
    )


def format_release_needed(target: str, reason: str) -> AlertMessage:
    """*target* has unreleased changes worth shipping."""
    return AlertMessage(
        severity=Severity.INFO,
        title=f"Release may be needed: {target}",
        body=reason,
        fields={"repository": target},
        source_event_type=ConditionKind.RELEASE_NEEDED.value,
    )
