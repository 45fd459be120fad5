"""TargetStateStore — per-target condition state, persisted as one mapping."""

from __future__ import annotations

import threading
from pathlib import Path

import structlog
from pydantic import ValidationError

from src.core.exceptions import PersistenceError
from src.core.types import TargetState
from src.storage.json_file import JsonFile

logger = structlog.get_logger(__name__)


class TargetStateStore:
    """Mapping of target id → TargetState.

    ``put`` writes the new mapping to disk before swapping it in, so a
    failed write leaves both the file and the in-memory view at the
    previous state.
    """

    def __init__(self, path: str | Path) -> None:
        self._file = JsonFile(path)
        self._states: dict[str, TargetState] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        raw = self._file.read(default={})
        if not isinstance(raw, dict):
            raise PersistenceError(f"{self._file.path} does not hold a target mapping")
        try:
            self._states = {
                target: TargetState.model_validate(state)
                for target, state in raw.items()
            }
        except ValidationError as e:
            raise PersistenceError(f"Corrupt target state in {self._file.path}: {e}") from e
        if self._states:
            logger.info(
                "target_states_loaded",
                path=str(self._file.path),
                count=len(self._states),
            )

    def get(self, target: str) -> TargetState | None:
        with self._lock:
            state = self._states.get(target)
            return state.model_copy() if state is not None else None

    def put(self, target: str, state: TargetState) -> None:
        """Persist *state* for *target*; raises PersistenceError without applying it."""
        with self._lock:
            updated = dict(self._states)
            updated[target] = state.model_copy()
            self._file.write({t: s.model_dump(mode="json") for t, s in updated.items()})
            self._states = updated

    def targets(self) -> list[str]:
        with self._lock:
            return list(self._states)

    def all(self) -> dict[str, TargetState]:
        with self._lock:
            return {t: s.model_copy() for t, s in self._states.items()}
