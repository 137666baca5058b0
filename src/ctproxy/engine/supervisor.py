"""Process supervisor for the external proxy engine.

Owns at most one engine process. start()/stop() are serialized by a lock;
is_running(), last_error() and pid are unsynchronized point-in-time reads.
A crash between polls is only observed on the next is_running() call.

Engine command line:
    <engine_path> -c <runtime_config_path> -format=json
with the working directory set to the engine binary's directory.
"""

from __future__ import annotations

__all__ = ["EngineState", "ProcessSupervisor"]

import logging
import os
import shutil
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import IO

from ctproxy.constants import (
    APP_NAME,
    DEFAULT_ENGINE_START_TIMEOUT_SECONDS,
    DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS,
    ENGINE_KILL_TIMEOUT_SECONDS,
)
from ctproxy.exceptions import (
    BinaryNotFoundError,
    ConfigNotFoundError,
    LaunchFailedError,
)

_logger = logging.getLogger(f"{APP_NAME}.engine")


class EngineState(str, Enum):
    """Supervisor states. There is no persisted Starting state."""

    STOPPED = "stopped"
    RUNNING = "running"


class ProcessSupervisor:
    """Lifecycle of a single engine process.

    Args:
        engine_path: Absolute path or bare command name (resolved via PATH).
        log_path: File that receives the engine's stdout/stderr. None discards it.
        start_timeout_seconds: How long a new process must stay alive to
            count as started.
        stop_timeout_seconds: Grace period between SIGTERM and SIGKILL.
    """

    def __init__(
        self,
        engine_path: str,
        log_path: Path | None = None,
        start_timeout_seconds: float = DEFAULT_ENGINE_START_TIMEOUT_SECONDS,
        stop_timeout_seconds: float = DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS,
    ) -> None:
        self._engine_path = engine_path
        self._log_path = log_path
        self._start_timeout = start_timeout_seconds
        self._stop_timeout = stop_timeout_seconds
        self._lock = threading.Lock()
        self._process: subprocess.Popen[bytes] | None = None
        self._last_error: str | None = None

    # -------------------------------------------------------------------------
    # Status (unsynchronized)
    # -------------------------------------------------------------------------

    def is_running(self) -> bool:
        """Whether the owned process exists and is alive right now.

        Records an abnormal exit in last_error().
        """
        process = self._process
        if process is None:
            return False
        returncode = process.poll()
        if returncode is None:
            return True
        if returncode != 0:
            message = f"Engine exited unexpectedly with code {returncode}"
            if self._last_error != message:
                self._last_error = message
                _logger.warning(
                    {
                        "event": "engine_exited",
                        "message": message,
                        "pid": process.pid,
                        "returncode": returncode,
                    }
                )
        return False

    @property
    def state(self) -> EngineState:
        """Current state, as polled."""
        return EngineState.RUNNING if self.is_running() else EngineState.STOPPED

    @property
    def pid(self) -> int | None:
        """Pid of the live engine process, or None."""
        process = self._process
        if process is None or process.poll() is not None:
            return None
        return process.pid

    def last_error(self) -> str | None:
        """Most recent error tied to the engine process, if any."""
        return self._last_error

    def record_error(self, message: str) -> None:
        """Record an error raised outside the supervisor (e.g. a failed restart)."""
        self._last_error = message

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, runtime_config_path: Path) -> None:
        """Start the engine against a runtime config.

        No-op if already running.

        Raises:
            BinaryNotFoundError: Engine executable is absent.
            ConfigNotFoundError: runtime_config_path does not exist.
            LaunchFailedError: Spawn failed or the process exited during
                the startup wait. No handle is kept.
        """
        with self._lock:
            if self.is_running():
                return
            # Reap a handle left behind by a crashed engine
            self._process = None

            try:
                binary = self._resolve_binary()
                if not Path(runtime_config_path).is_file():
                    raise ConfigNotFoundError(str(runtime_config_path))
                process = self._spawn(binary, Path(runtime_config_path))
            except (BinaryNotFoundError, ConfigNotFoundError, LaunchFailedError) as e:
                self._last_error = str(e)
                _logger.error(
                    {
                        "event": "engine_start_failed",
                        "message": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                raise

            self._process = process
            self._last_error = None
            _logger.info(
                {
                    "event": "engine_started",
                    "message": f"Engine started (pid: {process.pid})",
                    "pid": process.pid,
                    "config_path": str(runtime_config_path),
                }
            )

    def stop(self) -> None:
        """Stop the engine: SIGTERM, grace period, then SIGKILL.

        Never raises. Always leaves the supervisor stopped.
        """
        with self._lock:
            process = self._process
            if process is None:
                return

            try:
                if process.poll() is None:
                    process.terminate()
                    try:
                        process.wait(timeout=self._stop_timeout)
                    except subprocess.TimeoutExpired:
                        _logger.warning(
                            {
                                "event": "engine_kill",
                                "message": "Engine ignored SIGTERM, killing",
                                "pid": process.pid,
                            }
                        )
                        process.kill()
                        process.wait(timeout=ENGINE_KILL_TIMEOUT_SECONDS)
            except (OSError, subprocess.SubprocessError) as e:
                self._last_error = f"Engine stop failed: {e}"
                _logger.error(
                    {
                        "event": "engine_stop_failed",
                        "message": self._last_error,
                        "pid": process.pid,
                        "error_type": type(e).__name__,
                    }
                )
            finally:
                self._process = None

            _logger.info(
                {
                    "event": "engine_stopped",
                    "message": f"Engine stopped (pid: {process.pid})",
                    "pid": process.pid,
                    "returncode": process.returncode,
                }
            )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve_binary(self) -> Path:
        path = Path(self._engine_path).expanduser()
        if path.is_absolute() or os.sep in self._engine_path:
            if path.is_file():
                return path
            raise BinaryNotFoundError(self._engine_path)

        found = shutil.which(self._engine_path)
        if found is None:
            raise BinaryNotFoundError(self._engine_path)
        return Path(found)

    def _open_log(self) -> IO[bytes] | None:
        if self._log_path is None:
            return None
        try:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            return self._log_path.open("ab")
        except OSError as e:
            _logger.warning(
                {
                    "event": "engine_log_unavailable",
                    "message": f"Cannot open engine log, discarding output: {e}",
                    "details": {"path": str(self._log_path)},
                }
            )
            return None

    def _spawn(self, binary: Path, config_path: Path) -> subprocess.Popen[bytes]:
        """Spawn the engine and wait out the startup window."""
        log_file = self._open_log()
        sink: IO[bytes] | int = log_file if log_file is not None else subprocess.DEVNULL
        try:
            process = subprocess.Popen(
                [str(binary), "-c", str(config_path), "-format=json"],
                cwd=str(binary.parent),
                stdin=subprocess.DEVNULL,
                stdout=sink,
                stderr=sink,
            )
        except OSError as e:
            raise LaunchFailedError(str(e)) from e
        finally:
            # The child holds its own descriptor
            if log_file is not None:
                log_file.close()

        try:
            returncode = process.wait(timeout=self._start_timeout)
        except subprocess.TimeoutExpired:
            return process

        raise LaunchFailedError(f"engine exited during startup with code {returncode}")
