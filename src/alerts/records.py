"""AlertRecordStore — fingerprint → time of the last fired alert, persisted."""

from __future__ import annotations

import threading
from pathlib import Path

import structlog

from src.core.exceptions import PersistenceError
from src.storage.json_file import JsonFile

logger = structlog.get_logger(__name__)


class AlertRecordStore:
    """At most one timestamp per fingerprint, overwritten on every fire.

    Kept in its own file so a truncated or reset event log never causes the
    gate to forget when it last fired.
    """

    def __init__(self, path: str | Path) -> None:
        self._file = JsonFile(path)
        self._records: dict[str, float] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        raw = self._file.read(default={})
        if not isinstance(raw, dict):
            raise PersistenceError(f"{self._file.path} does not hold an alert mapping")
        try:
            self._records = {str(fp): float(ts) for fp, ts in raw.items()}
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Corrupt alert record in {self._file.path}: {e}") from e
        if self._records:
            logger.info(
                "alert_records_loaded",
                path=str(self._file.path),
                count=len(self._records),
            )

    def get(self, fingerprint: str) -> float | None:
        with self._lock:
            return self._records.get(fingerprint)

    def set(self, fingerprint: str, fired_at: float) -> None:
        """Record a fire. The in-memory entry survives a failed write."""
        with self._lock:
            self._records[fingerprint] = fired_at
            self._file.write(dict(self._records))

    def all(self) -> dict[str, float]:
        with self._lock:
            return dict(self._records)

    def __len__(self) -> int:
        return len(self._records)
