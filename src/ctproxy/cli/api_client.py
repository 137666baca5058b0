"""API client helper for CLI commands that talk to the running daemon.

The daemon's control API only listens on 127.0.0.1, so there is no
authentication: anyone who can reach the loopback port is local.
"""

from __future__ import annotations

__all__ = [
    "DaemonAPIError",
    "DaemonNotRunningError",
    "api_request",
]

import json
import time
from typing import Any

import click
import httpx

from ctproxy.config import load_service_config
from ctproxy.constants import API_HOST, DEFAULT_HTTP_TIMEOUT_SECONDS


class DaemonNotRunningError(click.ClickException):
    """Raised when the daemon does not accept connections."""

    def __init__(self, port: int) -> None:
        super().__init__(
            f"ctproxy daemon is not running on port {port}.\n" "Start it with: ctproxy daemon start"
        )
        self.port = port


class DaemonAPIError(click.ClickException):
    """Raised when an API request fails.

    Attributes:
        status_code: HTTP status, if a response was received.
        code: Structured error code from the response, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        if status_code:
            prefix = f"API error ({status_code}{', ' + code if code else ''})"
            super().__init__(f"{prefix}: {message}")
        else:
            super().__init__(f"API error: {message}")
        self.status_code = status_code
        self.code = code


def _error_from_response(response: httpx.Response) -> DaemonAPIError:
    """Build a DaemonAPIError from a structured error response."""
    try:
        detail = response.json().get("detail")
    except (json.JSONDecodeError, AttributeError):
        detail = None

    if isinstance(detail, dict):
        return DaemonAPIError(
            str(detail.get("message", response.reason_phrase)),
            response.status_code,
            detail.get("code"),
        )
    return DaemonAPIError(str(detail or response.text or response.reason_phrase), response.status_code)


def api_request(
    method: str,
    endpoint: str,
    *,
    port: int | None = None,
    json_data: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    max_retries: int = 3,
    backoff_ms: int = 100,
) -> dict[str, Any]:
    """Make an API request to the running daemon.

    Includes retry logic with exponential backoff for startup race conditions
    (when the CLI runs immediately after 'ctproxy daemon start').

    Args:
        method: HTTP method (GET, POST, PUT, DELETE).
        endpoint: API endpoint path (e.g., "/api/v1/ping").
        port: Control API port. Defaults to the configured api_port.
        json_data: Optional JSON body for POST/PUT requests.
        params: Optional query parameters.
        timeout: Request timeout in seconds.
        max_retries: Maximum connection attempts (default 3).
        backoff_ms: Initial backoff in milliseconds (doubles each retry).

    Returns:
        Parsed JSON response.

    Raises:
        DaemonNotRunningError: If the daemon refuses connections.
        DaemonAPIError: If the request fails or returns an error status.
    """
    effective_port = port if port is not None else load_service_config().api_port
    base_url = f"http://{API_HOST}:{effective_port}"
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            with httpx.Client(base_url=base_url, timeout=timeout) as client:
                response = client.request(method, endpoint, json=json_data, params=params)
        except httpx.ConnectError as e:
            # Connection refused - retry with backoff
            last_error = e
            if attempt < max_retries - 1:
                # Exponential backoff: 100ms, 200ms, 400ms
                time.sleep(backoff_ms / 1000 * (2**attempt))
            continue
        except httpx.HTTPError as e:
            # Other HTTP errors - don't retry
            raise DaemonAPIError(str(e)) from e

        if response.is_error:
            # API returned error status - don't retry, it's a real error
            raise _error_from_response(response)

        if response.status_code == 204:
            return {}

        try:
            result = response.json()
        except json.JSONDecodeError as e:
            raise DaemonAPIError(f"Invalid JSON response: {e}", response.status_code) from e
        if isinstance(result, dict):
            return result
        # Unexpected JSON type - wrap in dict
        return {"value": result}

    # All retries exhausted
    raise DaemonNotRunningError(effective_port) from last_error
