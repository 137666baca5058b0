"""Daemon logging setup.

Every module logs through a child of the "ctproxy" logger
(``logging.getLogger(f"{APP_NAME}.<area>")``), so one call to
configure_daemon_logging() routes registry, engine, service and daemon
entries to the same two handlers: a short console line on stderr and a
JSONL record in the system log.
"""

from __future__ import annotations

__all__ = [
    "configure_daemon_logging",
    "log_event",
]

import logging
from pathlib import Path

from ctproxy.config import ServiceConfig, get_system_log_path
from ctproxy.constants import APP_NAME
from ctproxy.models import SystemEvent
from ctproxy.utils.logging.iso_formatter import ISO8601Formatter

_daemon_logger = logging.getLogger(f"{APP_NAME}.daemon")


class _ConsoleFormatter(logging.Formatter):
    """``LEVEL: message`` lines; dict records show their message or event."""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            text = record.msg.get("message") or record.msg.get("event", "")
        else:
            text = record.getMessage()
        return f"{record.levelname}: {text}"


def configure_daemon_logging(config: ServiceConfig) -> Path | None:
    """Install the console and system log handlers on the ctproxy logger.

    Replaces whatever handlers a previous call installed, so calling it
    again (e.g. after a config reload) never duplicates output.

    Args:
        config: Service configuration; log_level gates the console handler.

    Returns:
        Path of the system log, or None if it could not be opened (the
        console handler is still installed).
    """
    root = logging.getLogger(APP_NAME)
    root.propagate = False
    console_level = getattr(logging, config.log_level)
    root.setLevel(min(console_level, logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(_ConsoleFormatter())
    root.addHandler(console)

    log_path = get_system_log_path(config)
    try:
        log_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        system_log = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="file_logging_failed",
                message=f"System log unavailable, logging to stderr only: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return None

    system_log.setLevel(logging.INFO)
    system_log.setFormatter(ISO8601Formatter())
    root.addHandler(system_log)
    return log_path


def log_event(level: int, event: SystemEvent) -> None:
    """Log a SystemEvent (None fields dropped) on the daemon logger."""
    _daemon_logger.log(level, event.model_dump(exclude_none=True))
