"""Windowed error alerting — alert records, gate, and monitor facade."""

from src.alerts.gate import AlertGate
from src.alerts.monitor import ErrorMonitor
from src.alerts.records import AlertRecordStore

__all__ = [
    "AlertGate",
    "AlertRecordStore",
    "ErrorMonitor",
]
