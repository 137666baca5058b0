"""Daemon PID file.

The daemon claims the PID file before it binds the control API port and
releases it on shutdown. CLI commands read it to find and signal the
running daemon.
"""

from __future__ import annotations

__all__ = [
    "PidFile",
    "api_port_open",
    "get_daemon_pid",
    "is_daemon_running",
    "stop_daemon",
]

import logging
import os
import signal
import socket
from pathlib import Path

from ctproxy.constants import API_HOST, APP_NAME, DAEMON_PID_PATH

_logger = logging.getLogger(f"{APP_NAME}.daemon")


class PidFile:
    """PID file of the one daemon allowed per user.

    Args:
        path: File location. Defaults to DAEMON_PID_PATH.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else DAEMON_PID_PATH

    def live_pid(self) -> int | None:
        """PID recorded in the file, if that process still exists."""
        try:
            pid = int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return None
        except PermissionError:
            pass  # alive, owned by another user
        return pid

    def claim(self) -> None:
        """Record the current process, replacing a stale file.

        Raises:
            RuntimeError: If another live daemon holds the file.
        """
        pid = self.live_pid()
        if pid is not None and pid != os.getpid():
            raise RuntimeError(f"Daemon is already running (pid: {pid})")

        if self.path.exists():
            self.path.unlink(missing_ok=True)
            _logger.info(
                {
                    "event": "stale_pid_removed",
                    "message": f"Removed stale PID file: {self.path}",
                }
            )

        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as e:
            raise RuntimeError(f"Daemon PID file appeared while starting: {self.path}") from e
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))

    def release(self) -> None:
        """Delete the file if it still names this process."""
        if self.live_pid() == os.getpid():
            self.path.unlink(missing_ok=True)

    def send(self, signum: int = signal.SIGTERM) -> bool:
        """Signal the recorded daemon. False when none is running."""
        pid = self.live_pid()
        if pid is None:
            return False
        try:
            os.kill(pid, signum)
        except OSError:
            return False
        return True


def api_port_open(port: int) -> bool:
    """Whether something accepts TCP connections on the control API port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((API_HOST, port)) == 0


def get_daemon_pid() -> int | None:
    """PID of the running daemon, or None."""
    return PidFile().live_pid()


def is_daemon_running(port: int) -> bool:
    """True when the PID file names a live process and the API port answers."""
    return get_daemon_pid() is not None and api_port_open(port)


def stop_daemon() -> bool:
    """Send SIGTERM to the daemon. False if it was not running."""
    return PidFile().send(signal.SIGTERM)
