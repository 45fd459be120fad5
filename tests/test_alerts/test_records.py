"""Tests for AlertRecordStore — persistence of last-fired timestamps."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.alerts.records import AlertRecordStore
from src.core.exceptions import PersistenceError


class TestAlertRecordStore:
    def test_empty(self, tmp_path: Path) -> None:
        store = AlertRecordStore(tmp_path / "alert_records.json")
        assert store.get("fp") is None
        assert len(store) == 0

    def test_set_overwrites(self, tmp_path: Path) -> None:
        store = AlertRecordStore(tmp_path / "alert_records.json")
        store.set("fp", 100.0)
        store.set("fp", 200.0)
        assert store.get("fp") == 200.0
        assert store.all() == {"fp": 200.0}

    def test_survives_restart(self, tmp_path: Path) -> None:
        path = tmp_path / "alert_records.json"
        AlertRecordStore(path).set("fp", 123.5)
        assert AlertRecordStore(path).get("fp") == 123.5

    def test_failed_write_raises_but_keeps_memory(self, tmp_path: Path) -> None:
        store = AlertRecordStore(tmp_path / "alert_records.json")
        with patch.object(store._file, "write", side_effect=PersistenceError("ro")):
            with pytest.raises(PersistenceError):
                store.set("fp", 1.0)
        assert store.get("fp") == 1.0

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "alert_records.json"
        path.write_text(json.dumps({"fp": "yesterday"}))
        with pytest.raises(PersistenceError):
            AlertRecordStore(path)

    def test_wrong_shape_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "alert_records.json"
        path.write_text(json.dumps([1, 2]))
        with pytest.raises(PersistenceError):
            AlertRecordStore(path)
