#!/usr/bin/env python3
"""Daemon entrypoint — wires the stores, alerting and poller, then runs until stopped.

Usage::

    # Run with default config and a collaborator factory
    python scripts/run.py --collaborator mypkg.github:create_collaborator

    # Custom config file
    python scripts/run.py --config config/settings.yaml --collaborator ...

    # Override log level
    python scripts/run.py --log-level DEBUG --collaborator ...
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.alerts.gate import AlertGate
from src.alerts.monitor import ErrorMonitor
from src.alerts.records import AlertRecordStore
from src.core.config import load_settings, validate_settings
from src.core.exceptions import ConfigError, PersistenceError
from src.core.logging import setup_logging
from src.events.store import EventStore
from src.notify.factory import create_dispatcher
from src.poller.collaborator import load_collaborator
from src.poller.orchestrator import PollCycleOrchestrator
from src.poller.scheduler import PollScheduler
from src.tracking.state_store import TargetStateStore
from src.tracking.tracker import TargetStateTracker

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start all components and run until interrupted."""
    try:
        settings = load_settings(args.config)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    setup_logging(level=args.log_level)

    problems = validate_settings(settings)
    if problems:
        for problem in problems:
            logger.error("config_invalid", problem=problem)
            print(f"Config error: {problem}", file=sys.stderr)
        return 1

    # ── Persistent stores ────────────────────────────────────────
    data_dir = Path(settings.storage.data_dir)
    try:
        events = EventStore(
            data_dir / "events.json",
            max_events=settings.storage.max_events,
        )
        records = AlertRecordStore(data_dir / "alert_records.json")
        states = TargetStateStore(data_dir / "target_states.json")
    except PersistenceError as e:
        logger.error("state_load_failed", error=str(e))
        print(f"Cannot load persisted state: {e}", file=sys.stderr)
        return 1

    # ── Collaborator ─────────────────────────────────────────────
    try:
        collaborator = load_collaborator(args.collaborator)
    except ConfigError as e:
        logger.error("collaborator_load_failed", error=str(e))
        print(str(e), file=sys.stderr)
        return 1

    # ── Notifications + error alerting ───────────────────────────
    dispatcher = create_dispatcher(settings.notifications)
    gate = AlertGate(
        config=settings.errors,
        records=records,
        dispatcher=dispatcher,
        dispatch_timeout_secs=settings.poller.operation_timeout_secs,
    )
    error_monitor = ErrorMonitor(store=events, gate=gate)

    # ── Poller ───────────────────────────────────────────────────
    orchestrator = PollCycleOrchestrator(
        targets=settings.targets,
        collaborator=collaborator,
        tracker=TargetStateTracker(states),
        dispatcher=dispatcher,
        errors=error_monitor,
        config=settings.poller,
        policy=settings.deps,
        notify_on=settings.notify_on,
    )
    scheduler = PollScheduler(orchestrator, interval_secs=settings.poller.interval_secs)

    logger.info(
        "sentinel_starting",
        targets=len(settings.targets),
        channels=dispatcher.channel_names,
        interval_secs=settings.poller.interval_secs,
        data_dir=str(data_dir),
        events_loaded=len(events),
        states_loaded=len(states.targets()),
    )

    # ── Shutdown signal, installed before the first cycle can start ──
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    await scheduler.start()
    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("sentinel_shutting_down")

    await scheduler.stop()
    try:
        await collaborator.close()
    except Exception:
        logger.exception("collaborator_close_error")
    await dispatcher.close()

    last = orchestrator.last_report
    logger.info(
        "sentinel_stopped",
        cycles=orchestrator.cycle_count,
        last_cycle_ok=last.ok_count if last else 0,
        events=len(events),
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Watch repositories for build failures, dependency updates and pending releases.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--collaborator",
        required=True,
        help="Code-host collaborator factory as module:callable",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
