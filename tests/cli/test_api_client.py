"""Unit tests for the CLI API client.

Tests the loopback HTTP client used by CLI commands to talk to the daemon.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import click
import httpx
import pytest

from ctproxy.cli.api_client import DaemonAPIError, DaemonNotRunningError, api_request


class TestDaemonNotRunningError:
    """Tests for DaemonNotRunningError."""

    def test_has_helpful_message(self) -> None:
        """Error message names the port and how to start the daemon."""
        error = DaemonNotRunningError(49490)

        assert "not running" in str(error)
        assert "49490" in str(error)
        assert "ctproxy daemon start" in str(error)

    def test_is_click_exception(self) -> None:
        """Exception inherits from ClickException."""
        assert isinstance(DaemonNotRunningError(1), click.ClickException)


class TestDaemonAPIError:
    """Tests for DaemonAPIError."""

    def test_includes_status_and_code(self) -> None:
        """Message carries the status code and structured error code."""
        error = DaemonAPIError("Config 'x' not found", status_code=404, code="CONFIG_NOT_FOUND")

        assert "404" in str(error)
        assert "CONFIG_NOT_FOUND" in str(error)
        assert error.code == "CONFIG_NOT_FOUND"

    def test_without_status_code(self) -> None:
        """Works without a response."""
        error = DaemonAPIError("timed out")

        assert error.status_code is None
        assert str(error) == "API error: timed out"


def _response(status_code: int, payload: object) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.is_error = status_code >= 400
    response.json.return_value = payload
    response.reason_phrase = "Error"
    return response


class TestApiRequest:
    """Tests for api_request()."""

    @pytest.fixture
    def mock_client(self):
        """Patch httpx.Client; yields (client class mock, client instance mock)."""
        with patch("ctproxy.cli.api_client.httpx.Client") as client_cls:
            instance = MagicMock()
            client_cls.return_value.__enter__.return_value = instance
            yield client_cls, instance

    def test_returns_json(self, mock_client) -> None:
        """A successful response is returned as a dict."""
        client_cls, instance = mock_client
        instance.request.return_value = _response(200, {"running": True})

        result = api_request("GET", "/api/v1/ping", port=50000)

        assert result == {"running": True}
        assert client_cls.call_args.kwargs["base_url"] == "http://127.0.0.1:50000"

    def test_forwards_body_and_params(self, mock_client) -> None:
        """JSON body and query parameters reach the request."""
        _, instance = mock_client
        instance.request.return_value = _response(200, {})

        api_request("PUT", "/api/v1/configs/activate", port=50000, params={"uuid": "a"}, json_data={"x": 1})

        instance.request.assert_called_once_with(
            "PUT", "/api/v1/configs/activate", json={"x": 1}, params={"uuid": "a"}
        )

    def test_default_port_from_config(self, mock_client) -> None:
        """Without an explicit port the configured api_port is used."""
        client_cls, instance = mock_client
        instance.request.return_value = _response(200, {})

        with patch("ctproxy.cli.api_client.load_service_config") as load:
            load.return_value.api_port = 41234
            api_request("GET", "/api/v1/ping")

        assert client_cls.call_args.kwargs["base_url"] == "http://127.0.0.1:41234"

    def test_structured_error(self, mock_client) -> None:
        """Error responses raise DaemonAPIError with the structured code."""
        _, instance = mock_client
        instance.request.return_value = _response(
            404, {"detail": {"code": "CONFIG_NOT_FOUND", "message": "Config 'a' not found"}}
        )

        with pytest.raises(DaemonAPIError) as exc_info:
            api_request("DELETE", "/api/v1/configs", port=50000, params={"uuid": "a"})

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "CONFIG_NOT_FOUND"
        assert "Config 'a' not found" in str(exc_info.value)

    def test_non_dict_json_is_wrapped(self, mock_client) -> None:
        """A JSON array is wrapped in {"value": ...}."""
        _, instance = mock_client
        instance.request.return_value = _response(200, [1, 2])

        assert api_request("GET", "/x", port=50000) == {"value": [1, 2]}

    def test_connection_refused_retries_then_fails(self, mock_client) -> None:
        """Refused connections are retried, then reported as daemon not running."""
        _, instance = mock_client
        instance.request.side_effect = httpx.ConnectError("refused")

        with patch("ctproxy.cli.api_client.time.sleep") as sleep:
            with pytest.raises(DaemonNotRunningError):
                api_request("GET", "/api/v1/ping", port=50000, max_retries=3)

        assert instance.request.call_count == 3
        assert sleep.call_count == 2

    def test_other_http_errors_not_retried(self, mock_client) -> None:
        """Timeouts fail immediately."""
        _, instance = mock_client
        instance.request.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(DaemonAPIError):
            api_request("GET", "/api/v1/ping", port=50000)

        assert instance.request.call_count == 1
