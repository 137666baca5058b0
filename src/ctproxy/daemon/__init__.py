"""ctproxy daemon: process entry point, PID file handling and logging setup."""

from __future__ import annotations

__all__ = [
    "build_service",
    "get_daemon_pid",
    "is_daemon_running",
    "run_daemon",
    "stop_daemon",
]

from .pidfile import get_daemon_pid, is_daemon_running, stop_daemon
from .server import build_service, run_daemon
