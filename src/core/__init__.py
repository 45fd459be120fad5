"""Core module — config, types, logging, exceptions."""

from src.core.config import (
    Settings,
    get_settings,
    load_settings,
    reset_settings,
    validate_settings,
)
from src.core.exceptions import (
    ConfigError,
    DispatchError,
    FetchError,
    PersistenceError,
    SentinelError,
)
from src.core.logging import setup_logging
from src.core.types import (
    ConditionKind,
    Event,
    Severity,
    Summary,
    TargetState,
    UpdateType,
)

__all__ = [
    "ConditionKind",
    "ConfigError",
    "DispatchError",
    "Event",
    "FetchError",
    "PersistenceError",
    "SentinelError",
    "Settings",
    "Severity",
    "Summary",
    "TargetState",
    "UpdateType",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
    "validate_settings",
]
