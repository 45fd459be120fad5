"""Contract for the external collaborator that talks to the code host."""

from __future__ import annotations

import abc
import importlib
from typing import Any

from src.core.exceptions import ConfigError
from src.core.types import DependencyUpdate, ReleaseReadiness, RepoSnapshot


class Collaborator(abc.ABC):
    """Fetches target state and performs the one write action (opening a PR).

    Implementations raise ``FetchError`` when the remote is unreachable or
    answers with an error; the orchestrator bounds every call with a timeout.
    """

    @abc.abstractmethod
    async def fetch_repo_snapshot(self, target: str) -> RepoSnapshot:
        """Build status, open PRs, default branch, last push."""

    @abc.abstractmethod
    async def fetch_dependency_updates(self, target: str) -> list[DependencyUpdate]:
        """Dependencies with a newer version available."""

    @abc.abstractmethod
    async def fetch_release_readiness(self, target: str) -> ReleaseReadiness:
        """Whether unreleased feature / fix commits exist."""

    @abc.abstractmethod
    async def open_update_pr(
        self,
        target: str,
        updates: list[DependencyUpdate],
    ) -> str | None:
        """Open a PR applying *updates*. Returns its id, or None if none was opened."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


def load_collaborator(path: str, **kwargs: Any) -> Collaborator:
    """Instantiate a collaborator from a ``package.module:factory`` path.

    The factory is called with *kwargs* and must return a Collaborator.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Collaborator path {path!r} is not in module:factory form")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot import collaborator {path!r}: {e}") from e

    collaborator = factory(**kwargs)
    if not isinstance(collaborator, Collaborator):
        raise ConfigError(f"{path!r} did not produce a Collaborator")
    return collaborator
