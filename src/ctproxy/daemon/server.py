"""Daemon orchestrator (run_daemon entry point).

Builds the service objects once, serves the control API with uvicorn,
and tears everything down on SIGTERM/SIGINT: the engine is stopped and
the PID file removed.
"""

from __future__ import annotations

__all__ = [
    "build_service",
    "run_daemon",
]

import asyncio
import errno
import logging
import os
import signal
import socket

import uvicorn

from ctproxy.api import create_api_app
from ctproxy.config import (
    ServiceConfig,
    get_data_dir,
    get_engine_log_path,
    load_service_config_strict,
)
from ctproxy.constants import (
    API_HOST,
    API_SERVER_SHUTDOWN_TIMEOUT_SECONDS,
    RUNTIME_DIR,
)
from ctproxy.engine import ProcessSupervisor
from ctproxy.models import SystemEvent
from ctproxy.registry import ConfigRegistry
from ctproxy.service import ActivationCoordinator, EventHub, StatusIndicator

from .log_config import configure_daemon_logging, log_event
from .pidfile import PidFile, api_port_open

# HTTP server backlog (number of pending connections)
HTTP_LISTEN_BACKLOG = 100


def build_service(
    config: ServiceConfig,
    api_port: int,
) -> tuple[ActivationCoordinator, StatusIndicator]:
    """Construct the registry, supervisor, coordinator and indicator.

    Args:
        config: Service configuration.
        api_port: Port shown by the status indicator.

    Returns:
        (coordinator, indicator)

    Raises:
        StorageError: If the registry document cannot be loaded.
    """
    registry = ConfigRegistry(get_data_dir(config))
    supervisor = ProcessSupervisor(
        config.engine_path,
        log_path=get_engine_log_path(config),
        start_timeout_seconds=config.engine_start_timeout_seconds,
        stop_timeout_seconds=config.engine_stop_timeout_seconds,
    )
    coordinator = ActivationCoordinator(
        registry,
        supervisor,
        events=EventHub(),
        autostart_engine=config.autostart_engine,
    )
    indicator = StatusIndicator(coordinator, api_port)
    return coordinator, indicator


async def run_daemon(port: int | None = None) -> None:
    """Run the ctproxy daemon.

    This is the main entry point for the daemon process.

    Args:
        port: Control API port. If None, uses config value (default: 49490).

    Raises:
        ConfigurationError: If the service config is invalid.
        StorageError: If the registry cannot be loaded.
        RuntimeError: If the daemon is already running or the port is in use.
    """
    # Load configuration (strict: fails on invalid config)
    config = load_service_config_strict()

    system_log_path = configure_daemon_logging(config)

    effective_port = port if port is not None else config.api_port

    # Suppress uvicorn's logging (we use our own)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)

    RUNTIME_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Replaces a PID file left by a crashed daemon
    pid_file = PidFile()
    pid_file.claim()
    try:
        if api_port_open(effective_port):
            raise RuntimeError(
                f"Port {effective_port} is already in use.\n"
                f"Another process is using this port. "
                f"Use --port to specify a different port."
            )
        coordinator, indicator = build_service(config, effective_port)
    except Exception:
        pid_file.release()
        raise

    log_event(
        logging.INFO,
        SystemEvent(
            event="daemon_starting",
            message=f"Daemon starting: port={effective_port}, pid={os.getpid()}",
            pid=os.getpid(),
            details={
                "port": effective_port,
                "data_dir": str(get_data_dir(config)),
                "engine_path": config.engine_path,
                "system_log": str(system_log_path) if system_log_path else None,
            },
        ),
    )

    shutdown_event = asyncio.Event()

    def signal_handler(signum: int, frame: object) -> None:
        """Handle shutdown signals (SIGTERM, SIGINT)."""
        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_signal_received",
                message=f"Received signal {signum}, initiating shutdown",
                details={"signal": signum},
            ),
        )
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    http_app = create_api_app(coordinator, indicator)

    http_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    http_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        http_socket.bind((API_HOST, effective_port))
    except OSError as e:
        pid_file.release()
        if e.errno == errno.EADDRINUSE:
            raise RuntimeError(
                f"Port {effective_port} is already in use.\n"
                f"Another process is using this port. "
                f"Use --port to specify a different port."
            ) from e
        raise
    http_socket.listen(HTTP_LISTEN_BACKLOG)
    http_socket.setblocking(False)

    http_config = uvicorn.Config(
        http_app,
        fd=http_socket.fileno(),
        log_config=None,
        ws="none",  # We use SSE, not WebSockets
    )
    http_server = uvicorn.Server(http_config)

    async def run_server() -> None:
        try:
            await http_server._serve()
        except asyncio.CancelledError:
            pass

    server_task = asyncio.create_task(run_server())

    # Autostart runs off the event loop: it waits out the engine start window
    await asyncio.to_thread(coordinator.startup)

    log_event(
        logging.INFO,
        SystemEvent(
            event="daemon_started",
            message="Daemon started successfully",
            details={"active_id": coordinator.registry.active_id},
        ),
    )

    try:
        await shutdown_event.wait()
    finally:
        log_event(
            logging.INFO,
            SystemEvent(
                event="daemon_shutting_down",
                message="Daemon shutting down",
            ),
        )

        # Graceful shutdown
        http_server.should_exit = True
        try:
            await asyncio.wait_for(server_task, timeout=API_SERVER_SHUTDOWN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="shutdown_timeout",
                    message="Server shutdown timed out, cancelling",
                ),
            )
            server_task.cancel()
        except asyncio.CancelledError:
            pass

        await asyncio.to_thread(coordinator.shutdown)
        indicator.close()

        try:
            http_socket.close()
        except OSError:
            pass  # Non-critical cleanup

        pid_file.release()

        log_event(
            logging.INFO,
            SystemEvent(
                event="daemon_stopped",
                message="Daemon shutdown complete",
            ),
        )
