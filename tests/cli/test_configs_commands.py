"""Unit tests for the configs command group.

The daemon is replaced by a patched api_request, so these tests check
which requests are sent and how responses are rendered.
Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ctproxy.cli import cli
from ctproxy.cli.api_client import DaemonAPIError, DaemonNotRunningError

API_REQUEST = "ctproxy.cli.commands.configs.api_request"

RECORD_A = {
    "id": "aaaaaaaa-1111",
    "serialized": "vless://...",
    "scheme": "vless",
    "label": "Home",
    "created_at": "2026-01-01T00:00:00.000Z",
    "last_used_at": "2026-01-02T00:00:00.000Z",
    "is_active": True,
}
RECORD_B = {**RECORD_A, "id": "bbbbbbbb-2222", "scheme": "trojan", "label": "Office", "is_active": False}


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


class TestList:
    """Tests for configs list."""

    def test_lists_with_active_marker(self, runner: CliRunner) -> None:
        """Stored configs are listed, the active one starred."""
        # Arrange
        payload = {"configs": {RECORD_A["id"]: RECORD_A, RECORD_B["id"]: RECORD_B}, "active_id": RECORD_A["id"]}

        # Act
        with patch(API_REQUEST, return_value=payload) as api:
            result = runner.invoke(cli, ["configs", "list"])

        # Assert
        assert result.exit_code == 0
        assert "Configs: 2" in result.output
        assert "  * aaaaaaaa-1111" in result.output
        assert "Office" in result.output
        api.assert_called_once_with("GET", "/api/v1/configs", params=None)

    def test_empty(self, runner: CliRunner) -> None:
        """An empty registry says so."""
        with patch(API_REQUEST, return_value={"configs": {}, "active_id": None}):
            result = runner.invoke(cli, ["configs", "list"])

        assert "No configs stored." in result.output

    def test_uuid_filter_joined(self, runner: CliRunner) -> None:
        """Repeated --uuid options become one comma-separated parameter."""
        payload = {"configs": {"a": None, "b": None}, "active_id": None}
        with patch(API_REQUEST, return_value=payload) as api:
            result = runner.invoke(cli, ["configs", "list", "--uuid", "a", "--uuid", "b"])

        assert api.call_args.kwargs["params"] == {"uuid": "a,b"}
        assert "(not found)" in result.output

    def test_json_output(self, runner: CliRunner) -> None:
        """--json prints the raw response."""
        payload = {"configs": {}, "active_id": None}
        with patch(API_REQUEST, return_value=payload):
            result = runner.invoke(cli, ["configs", "list", "--json"])

        assert json.loads(result.output) == payload


class TestAddAndReplace:
    """Tests for configs add and configs replace."""

    def test_add_reports_items(self, runner: CliRunner) -> None:
        """Created, duplicate and invalid items are all reported."""
        payload = {
            "changed": True,
            "message": "Added 1 config(s), 1 duplicate(s) skipped, 1 invalid",
            "created_ids": ["new-id"],
            "duplicates": [{"index": 1, "existing_id": "old-id"}],
            "errors": [{"index": 2, "scheme": None, "reason": "Unsupported scheme"}],
            "active_id": "new-id",
        }

        with patch(API_REQUEST, return_value=payload) as api:
            result = runner.invoke(cli, ["configs", "add", "vless://a", "vless://b", "http://c"])

        assert result.exit_code == 0
        assert "+ new-id" in result.output
        assert "already stored as old-id" in result.output
        assert "#2: Unsupported scheme" in result.output
        assert "Active: new-id" in result.output
        api.assert_called_once_with(
            "POST", "/api/v1/configs", json_data={"configs": ["vless://a", "vless://b", "http://c"]}
        )

    def test_add_requires_links(self, runner: CliRunner) -> None:
        """At least one link is required."""
        result = runner.invoke(cli, ["configs", "add"])

        assert result.exit_code == 2

    def test_replace_requires_confirmation(self, runner: CliRunner) -> None:
        """Declining the prompt sends nothing."""
        with patch(API_REQUEST) as api:
            result = runner.invoke(cli, ["configs", "replace", "vless://a"], input="n\n")

        assert result.exit_code == 1
        api.assert_not_called()

    def test_replace_with_yes(self, runner: CliRunner) -> None:
        """--yes skips the prompt and sends PUT."""
        payload = {"changed": True, "message": "Replaced configs with 1 config(s)", "created_ids": ["x"]}
        with patch(API_REQUEST, return_value=payload) as api:
            result = runner.invoke(cli, ["configs", "replace", "--yes", "vless://a"])

        assert result.exit_code == 0
        assert api.call_args.args == ("PUT", "/api/v1/configs")


class TestActivation:
    """Tests for remove, activate, deactivate and active."""

    def test_remove(self, runner: CliRunner) -> None:
        """remove sends DELETE with the id and shows the new active config."""
        payload = {"message": "Config a removed", "removed_id": "a", "active_id": "b"}
        with patch(API_REQUEST, return_value=payload) as api:
            result = runner.invoke(cli, ["configs", "remove", "a"])

        api.assert_called_once_with("DELETE", "/api/v1/configs", params={"uuid": "a"})
        assert "Active: b" in result.output

    def test_activate(self, runner: CliRunner) -> None:
        """activate sends PUT /configs/activate."""
        with patch(API_REQUEST, return_value={"message": "Config b activated", "active_id": "b"}) as api:
            result = runner.invoke(cli, ["configs", "activate", "b"])

        api.assert_called_once_with("PUT", "/api/v1/configs/activate", params={"uuid": "b"})
        assert "Config b activated" in result.output

    def test_deactivate(self, runner: CliRunner) -> None:
        """deactivate sends DELETE /configs/active."""
        with patch(API_REQUEST, return_value={"message": "Active config cleared"}) as api:
            result = runner.invoke(cli, ["configs", "deactivate"])

        api.assert_called_once_with("DELETE", "/api/v1/configs/active")
        assert "Active config cleared" in result.output

    def test_active(self, runner: CliRunner) -> None:
        """active shows the active record."""
        with patch(API_REQUEST, return_value=RECORD_A):
            result = runner.invoke(cli, ["configs", "active"])

        assert "aaaaaaaa-1111" in result.output
        assert "Home" in result.output

    def test_unknown_id_error(self, runner: CliRunner) -> None:
        """API errors exit non-zero with the message."""
        error = DaemonAPIError("Config 'x' not found", status_code=404, code="CONFIG_NOT_FOUND")
        with patch(API_REQUEST, side_effect=error):
            result = runner.invoke(cli, ["configs", "activate", "x"])

        assert result.exit_code == 1
        assert "CONFIG_NOT_FOUND" in result.output

    def test_daemon_not_running(self, runner: CliRunner) -> None:
        """A stopped daemon is reported with a hint."""
        with patch(API_REQUEST, side_effect=DaemonNotRunningError(49490)):
            result = runner.invoke(cli, ["configs", "list"])

        assert result.exit_code == 1
        assert "ctproxy daemon start" in result.output
