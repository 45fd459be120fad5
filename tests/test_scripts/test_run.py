"""Tests for the daemon entrypoint's startup and shutdown order."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from unittest.mock import patch

import yaml

from scripts import run as entrypoint
from src.core.config import reset_settings
from src.core.types import DependencyUpdate, ReleaseReadiness, RepoSnapshot
from src.poller.collaborator import Collaborator


class IdleCollaborator(Collaborator):
    async def fetch_repo_snapshot(self, target: str) -> RepoSnapshot:
        return RepoSnapshot()

    async def fetch_dependency_updates(self, target: str) -> list[DependencyUpdate]:
        return []

    async def fetch_release_readiness(self, target: str) -> ReleaseReadiness:
        return ReleaseReadiness()

    async def open_update_pr(
        self,
        target: str,
        updates: list[DependencyUpdate],
    ) -> str | None:
        return None


MODULE = __name__


class RecordingScheduler:
    """Stands in for PollScheduler; fires the first installed signal handler on start."""

    def __init__(self, order: list[str], handlers: list) -> None:
        self.order = order
        self.handlers = handlers

    async def start(self) -> None:
        self.order.append("start")
        if self.handlers:
            asyncio.get_running_loop().call_soon(self.handlers[0])

    async def stop(self) -> None:
        self.order.append("stop")


def _args(tmp_path: Path) -> argparse.Namespace:
    config = tmp_path / "settings.yaml"
    config.write_text(yaml.dump({
        "targets": ["example-org/api"],
        "storage": {"data_dir": str(tmp_path / "data")},
    }))
    return argparse.Namespace(
        config=str(config),
        log_level=None,
        collaborator=f"{MODULE}:IdleCollaborator",
    )


class TestRun:
    async def test_signal_handlers_installed_before_scheduler_starts(self, tmp_path: Path) -> None:
        order: list[str] = []
        handlers: list = []

        def add_signal_handler(sig: int, callback: object) -> None:
            order.append("signal")
            handlers.append(callback)

        loop = asyncio.get_running_loop()
        scheduler = RecordingScheduler(order, handlers)
        try:
            with (
                patch.object(loop, "add_signal_handler", side_effect=add_signal_handler),
                patch.object(entrypoint, "PollScheduler", return_value=scheduler),
                patch.object(entrypoint, "setup_logging"),
            ):
                code = await asyncio.wait_for(entrypoint.run(_args(tmp_path)), timeout=5)
        finally:
            reset_settings()

        assert code == 0
        assert order == ["signal", "signal", "start", "stop"]

    async def test_invalid_config_exits_before_starting(self, tmp_path: Path) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text(yaml.dump({"targets": ["not-a-repo"]}))
        args = argparse.Namespace(
            config=str(config),
            log_level=None,
            collaborator=f"{MODULE}:IdleCollaborator",
        )
        with (
            patch.object(entrypoint, "PollScheduler") as scheduler_cls,
            patch.object(entrypoint, "setup_logging"),
        ):
            code = await entrypoint.run(args)
        reset_settings()

        assert code == 1
        scheduler_cls.assert_not_called()
