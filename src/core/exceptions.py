"""Exception hierarchy for polling, persistence, and notification failures."""

from __future__ import annotations


class SentinelError(Exception):
    """Base exception for all repo sentinel errors."""


class FetchError(SentinelError):
    """A collaborator was unreachable or returned an error."""


class PersistenceError(SentinelError):
    """Local state could not be read or written."""


class DispatchError(SentinelError):
    """A notification or side-effecting action did not go through."""


class ConfigError(SentinelError):
    """Configuration is unusable; raised at startup only."""
