"""Structured logging setup using structlog.

Everything goes to stderr. The ``notifications`` logger (what the log
channel delivered) and the ``decision_log`` logger (every dispatch
decision) can additionally be written as JSON lines to
``logging.notification_log``, giving an audit trail of what was sent.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

from src.core.config import get_settings

# stdlib logger names used by src.notify.
NOTIFICATION_LOGGERS = ("notifications", "decision_log")

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _formatter(renderer: structlog.types.Processor) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _route_notifications(path: Path) -> None:
    """Attach one JSON-lines file handler to every notification logger."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    for name in NOTIFICATION_LOGGERS:
        audit = logging.getLogger(name)
        for old in list(audit.handlers):
            audit.removeHandler(old)
            old.close()
        audit.addHandler(handler)
        audit.setLevel(logging.INFO)


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    notification_log: str | Path | None = None,
) -> None:
    """Configure structlog with JSON or console renderer.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer format override ("json" or "console"). Uses config if None.
        notification_log: File for the notification audit trail. Uses config
            if None; no file when neither is set.
    """
    cfg = get_settings().logging
    log_level = getattr(logging, (level or cfg.level).upper(), logging.INFO)
    log_format = fmt or cfg.format
    audit_path = notification_log or cfg.notification_log

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(renderer))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if audit_path:
        _route_notifications(Path(audit_path))
