"""Atomic JSON file persistence shared by the event, alert, and target stores.

File layout: ``{data_dir}/{name}.json``. Writes go to a sibling temp file
and are moved into place with ``os.replace`` so a crash mid-write never
leaves a truncated document behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from src.core.exceptions import PersistenceError


class JsonFile:
    """A single JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def read(self, default: Any = None) -> Any:
        """Return the parsed document, or *default* when the file is absent.

        Raises:
            PersistenceError: The file exists but cannot be read or parsed.
        """
        if not self._path.exists():
            return default
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot load {self._path}: {e}") from e

    def write(self, data: Any) -> None:
        """Replace the document with *data*.

        Raises:
            PersistenceError: The directory or file is not writable.
        """
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {self._path}: {e}") from e
