"""Daemon command group for ctproxy CLI.

Provides commands to control the daemon:
- start: Start the daemon (detached, or --foreground)
- stop: Stop the daemon
- status: Show daemon status
"""

from __future__ import annotations

__all__ = ["daemon"]

import asyncio
import json
import shutil
import subprocess
import sys

import click

from ctproxy.config import get_data_dir, get_log_dir, load_service_config
from ctproxy.constants import API_HOST, DAEMON_PID_PATH, DEFAULT_API_PORT, RUNTIME_DIR
from ctproxy.daemon import get_daemon_pid, is_daemon_running, run_daemon, stop_daemon
from ctproxy.exceptions import CtproxyError
from ctproxy.utils.polling import wait_for_condition

from ..styling import style_error, style_label, style_success, style_warning

# Timeout for daemon to become ready after start (seconds)
DAEMON_STARTUP_TIMEOUT_SECONDS = 5.0

# Timeout for daemon to stop after SIGTERM (seconds); covers the engine stop
DAEMON_STOP_TIMEOUT_SECONDS = 10.0


@click.group()
def daemon() -> None:
    """Daemon commands.

    The daemon owns the config registry and the engine process and serves
    the control API on 127.0.0.1.
    """
    pass


@daemon.command("start")
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help=f"Control API port (default: {DEFAULT_API_PORT} or config value)",
)
@click.option(
    "--foreground",
    "-f",
    is_flag=True,
    help="Run in foreground (don't daemonize)",
)
def start(port: int | None, foreground: bool) -> None:
    """Start the daemon.

    By default, it runs as a background daemon. Use --foreground to run in
    the current terminal (useful for debugging).
    """
    config = load_service_config()
    effective_port = port if port is not None else config.api_port

    if is_daemon_running(effective_port):
        pid = get_daemon_pid()
        click.echo(style_warning(f"Daemon is already running (pid: {pid})"))
        click.echo(f"  API: http://{API_HOST}:{effective_port}")
        sys.exit(0)

    if foreground:
        click.echo(style_label("Starting daemon in foreground..."))
        click.echo(f"  Port: {effective_port}")
        click.echo(f"  Data: {get_data_dir(config)}")
        click.echo()
        click.echo("Press Ctrl+C to stop")
        click.echo()
        try:
            asyncio.run(run_daemon(port=effective_port))
        except KeyboardInterrupt:
            click.echo()
            click.echo("Daemon stopped.")
        except (RuntimeError, CtproxyError) as e:
            click.echo(style_error(f"Failed to start: {e}"), err=True)
            sys.exit(1)
        return

    click.echo(style_label("Starting daemon..."))

    RUNTIME_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Prefer the installed entry point; fall back to the module
    ctproxy_path = shutil.which("ctproxy")
    if ctproxy_path is None:
        ctproxy_cmd = [sys.executable, "-m", "ctproxy.cli"]
    else:
        ctproxy_cmd = [ctproxy_path]

    # The internal _run command avoids recursive daemonization
    spawn_args = ["daemon", "_run", "--port", str(effective_port)]

    try:
        process = subprocess.Popen(
            ctproxy_cmd + spawn_args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        click.echo(style_error(f"Failed to spawn daemon: {e}"), err=True)
        sys.exit(1)

    if wait_for_condition(lambda: is_daemon_running(effective_port), DAEMON_STARTUP_TIMEOUT_SECONDS):
        pid = get_daemon_pid()
        click.echo(style_success(f"Daemon started (pid: {pid})"))
        click.echo(f"  API: http://{API_HOST}:{effective_port}")
        click.echo()
        click.echo("To stop: ctproxy daemon stop")
        sys.exit(0)

    if process.poll() is not None:
        click.echo(style_error("Daemon process exited unexpectedly"), err=True)
        click.echo(f"  Check logs in: {get_log_dir(config)}", err=True)
        sys.exit(1)

    click.echo(style_warning("Daemon started but not responding yet"))
    click.echo("  Check logs or try: ctproxy daemon status")
    sys.exit(0)


@daemon.command("_run", hidden=True)
@click.option("--port", "-p", type=int, default=None)
def _run(port: int | None) -> None:
    """Internal command to run the daemon (called by daemonized start)."""
    try:
        asyncio.run(run_daemon(port=port))
    except (RuntimeError, CtproxyError) as e:
        # Lost in daemon mode, but helpful for debugging
        click.echo(f"Daemon error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)


@daemon.command("stop")
def stop() -> None:
    """Stop the daemon (the engine is stopped with it)."""
    config = load_service_config()
    if not is_daemon_running(config.api_port) and get_daemon_pid() is None:
        click.echo(style_warning("Daemon is not running"))
        sys.exit(0)

    pid = get_daemon_pid()
    click.echo(f"Stopping daemon (pid: {pid})...")

    if stop_daemon():
        if wait_for_condition(lambda: get_daemon_pid() is None, DAEMON_STOP_TIMEOUT_SECONDS):
            click.echo(style_success("Daemon stopped"))
            sys.exit(0)

        click.echo(style_warning("Daemon stop signal sent but process still running"))
        click.echo(f"  You may need to kill it manually: kill {pid}")
        sys.exit(1)
    else:
        click.echo(style_error("Failed to stop daemon"), err=True)
        sys.exit(1)


@daemon.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show daemon status."""
    config = load_service_config()
    running = is_daemon_running(config.api_port)
    pid = get_daemon_pid()

    result = {
        "running": running,
        "pid": pid,
        "api_url": f"http://{API_HOST}:{config.api_port}" if running else None,
        "pid_file": str(DAEMON_PID_PATH),
        "data_dir": str(get_data_dir(config)),
        "log_dir": str(get_log_dir(config)),
    }

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.echo()
    if running:
        click.echo(style_success("Daemon: Running") + f" (pid: {pid})")
        click.echo(f"  API: {result['api_url']}")
    else:
        click.echo(style_warning("Daemon: Not running"))
        click.echo()
        click.echo("  Start with: ctproxy daemon start")
    click.echo(f"  Data: {result['data_dir']}")
    click.echo(f"  Logs: {result['log_dir']}")
    click.echo()
