"""Unit tests for the daemon command group.

Process control is patched out; these tests check what the commands
decide and print.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ctproxy.cli import cli
from ctproxy.config import ServiceConfig

MODULE = "ctproxy.cli.commands.daemon"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def service_config(tmp_path: Path):
    """Patch load_service_config with a config under tmp_path."""
    config = ServiceConfig(api_port=50123, data_dir=str(tmp_path / "data"), log_dir=str(tmp_path / "logs"))
    with patch(f"{MODULE}.load_service_config", return_value=config):
        yield config


class TestStatus:
    """Tests for daemon status."""

    def test_running_json(self, runner: CliRunner, service_config: ServiceConfig, tmp_path: Path) -> None:
        """--json reports pid, API url and directories."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=True),
            patch(f"{MODULE}.get_daemon_pid", return_value=999),
        ):
            result = runner.invoke(cli, ["daemon", "status", "--json"])

        data = json.loads(result.output)
        assert data["running"] is True
        assert data["pid"] == 999
        assert data["api_url"] == "http://127.0.0.1:50123"
        assert data["data_dir"] == str(tmp_path / "data")
        assert data["log_dir"] == str(tmp_path / "logs" / "ctproxy")

    def test_not_running(self, runner: CliRunner, service_config: ServiceConfig) -> None:
        """A stopped daemon suggests how to start it."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=False),
            patch(f"{MODULE}.get_daemon_pid", return_value=None),
        ):
            result = runner.invoke(cli, ["daemon", "status"])

        assert result.exit_code == 0
        assert "Not running" in result.output
        assert "ctproxy daemon start" in result.output


class TestStart:
    """Tests for daemon start."""

    def test_already_running(self, runner: CliRunner, service_config: ServiceConfig) -> None:
        """Starting a running daemon is a warning, not an error."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=True),
            patch(f"{MODULE}.get_daemon_pid", return_value=999),
            patch(f"{MODULE}.subprocess.Popen") as popen,
        ):
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 0
        assert "already running" in result.output
        popen.assert_not_called()

    def test_spawns_detached_run(self, runner: CliRunner, service_config: ServiceConfig, tmp_path: Path) -> None:
        """start spawns the hidden _run command in a new session."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=False),
            patch(f"{MODULE}.get_daemon_pid", return_value=1234),
            patch(f"{MODULE}.RUNTIME_DIR", tmp_path / "run"),
            patch(f"{MODULE}.shutil.which", return_value="/usr/bin/ctproxy"),
            patch(f"{MODULE}.wait_for_condition", return_value=True),
            patch(f"{MODULE}.subprocess.Popen") as popen,
        ):
            result = runner.invoke(cli, ["daemon", "start", "--port", "50555"])

        assert result.exit_code == 0
        assert "Daemon started (pid: 1234)" in result.output
        args, kwargs = popen.call_args
        assert args[0] == ["/usr/bin/ctproxy", "daemon", "_run", "--port", "50555"]
        assert kwargs["start_new_session"] is True

    def test_spawned_process_exits(self, runner: CliRunner, service_config: ServiceConfig, tmp_path: Path) -> None:
        """A daemon that dies during startup is an error."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=False),
            patch(f"{MODULE}.RUNTIME_DIR", tmp_path / "run"),
            patch(f"{MODULE}.shutil.which", return_value=None),
            patch(f"{MODULE}.wait_for_condition", return_value=False),
            patch(f"{MODULE}.subprocess.Popen") as popen,
        ):
            popen.return_value.poll.return_value = 1
            result = runner.invoke(cli, ["daemon", "start"])

        assert result.exit_code == 1
        assert "exited unexpectedly" in result.output
        assert popen.call_args.args[0][1:3] == ["-m", "ctproxy.cli"]


class TestStop:
    """Tests for daemon stop."""

    def test_not_running(self, runner: CliRunner, service_config: ServiceConfig) -> None:
        """Stopping a stopped daemon is a no-op."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=False),
            patch(f"{MODULE}.get_daemon_pid", return_value=None),
            patch(f"{MODULE}.stop_daemon") as stop_daemon,
        ):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0
        assert "not running" in result.output
        stop_daemon.assert_not_called()

    def test_stops(self, runner: CliRunner, service_config: ServiceConfig) -> None:
        """A signalled daemon that exits is reported stopped."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=True),
            patch(f"{MODULE}.get_daemon_pid", return_value=999),
            patch(f"{MODULE}.stop_daemon", return_value=True),
            patch(f"{MODULE}.wait_for_condition", return_value=True),
        ):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 0
        assert "Daemon stopped" in result.output

    def test_signal_failed(self, runner: CliRunner, service_config: ServiceConfig) -> None:
        """A failed stop exits non-zero."""
        with (
            patch(f"{MODULE}.is_daemon_running", return_value=True),
            patch(f"{MODULE}.get_daemon_pid", return_value=999),
            patch(f"{MODULE}.stop_daemon", return_value=False),
        ):
            result = runner.invoke(cli, ["daemon", "stop"])

        assert result.exit_code == 1
