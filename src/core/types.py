"""Domain types shared by the event, alert, and tracking subsystems."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Severity(IntEnum):
    """Event severity — ordered by urgency so comparisons work naturally."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Severity | int | str) -> Severity:
        """Accept a member, its integer value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None


# ── Events ───────────────────────────────────────────────────────


class Event(BaseModel):
    """One observed error / failure occurrence."""

    id: str = ""
    timestamp: float = 0.0
    severity: Severity = Severity.ERROR
    source: str = "unknown"
    message: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    stack: str | None = None
    fingerprint: str = ""
    acknowledged: bool = False
    acknowledged_at: float | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, v: Any) -> Severity:
        return Severity.parse(v)


class FingerprintCount(BaseModel):
    """One entry of a summary's top-fingerprint list."""

    fingerprint: str
    count: int
    last_seen: float
    sample: Event


class Summary(BaseModel):
    """Windowed statistics over a slice of events."""

    total_count: int = 0
    count_by_severity: dict[str, int] = Field(default_factory=dict)
    count_by_source: dict[str, int] = Field(default_factory=dict)
    count_by_fingerprint: dict[str, int] = Field(default_factory=dict)
    top_fingerprints: list[FingerprintCount] = Field(default_factory=list)
    window_start: float = 0.0
    window_end: float = 0.0


class FiredAlert(BaseModel):
    """Result of the alert gate firing for one fingerprint."""

    fingerprint: str
    count: int
    fired_at: float
    events: list[Event] = Field(default_factory=list)


# ── Targets ──────────────────────────────────────────────────────


class ConditionKind(StrEnum):
    """Categories of noteworthy per-target change."""

    BUILD_FAILURE = "build_failure"
    DEPENDENCY_UPDATE = "dependency_update"
    RELEASE_NEEDED = "release_needed"


class UpdateType(StrEnum):
    """Classification of a dependency version delta."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NONE = "none"
    UNKNOWN = "unknown"


class TargetState(BaseModel):
    """Last-observed values per condition kind for one monitored target."""

    failed_build_count: int = 0
    pending_update_pr: str | None = None
    release_notified: bool = False


class WorkflowRun(BaseModel):
    """A failed CI run, carried along to enrich build-failure notifications."""

    id: str
    name: str = ""
    branch: str = ""
    commit: str = ""
    url: str = ""


class RepoSnapshot(BaseModel):
    """Repository status as reported by the collaborator."""

    failed_build_count: int = 0
    open_prs: list[str] = Field(default_factory=list)
    default_branch: str = "main"
    last_push: float | None = None
    failed_runs: list[WorkflowRun] = Field(default_factory=list)


class DependencyUpdate(BaseModel):
    """An available version bump for one dependency."""

    name: str
    current_version: str
    latest_version: str
    update_type: UpdateType | None = None
    auto_eligible: bool | None = None
    is_dev: bool = False


class ReleaseReadiness(BaseModel):
    """Whether the target has unreleased meaningful changes."""

    needed: bool = False
    reason: str = ""


class ObservedSnapshot(BaseModel):
    """Everything the tracker needs from one poll of a target."""

    failed_build_count: int = 0
    eligible_updates: list[DependencyUpdate] = Field(default_factory=list)
    release_needed: bool = False


class TargetOutcome(StrEnum):
    """How one target's pass through a cycle ended."""

    COMMITTED = "committed"
    FETCH_FAILED = "fetch_failed"
    PERSIST_FAILED = "persist_failed"
    TIMED_OUT = "timed_out"
    ERROR = "error"
    SKIPPED = "skipped"


class TargetReport(BaseModel):
    """Per-target result of a poll cycle."""

    target: str
    outcome: TargetOutcome
    new_conditions: list[ConditionKind] = Field(default_factory=list)
    actioned: list[ConditionKind] = Field(default_factory=list)
    failed: list[ConditionKind] = Field(default_factory=list)
    detail: str = ""


class CycleReport(BaseModel):
    """Result of one full poll cycle."""

    cycle: int
    started_at: float
    finished_at: float = 0.0
    targets: list[TargetReport] = Field(default_factory=list)

    @property
    def ok_count(self) -> int:
        return sum(1 for t in self.targets if t.outcome == TargetOutcome.COMMITTED)
