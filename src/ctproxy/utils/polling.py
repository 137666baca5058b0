"""Polling helpers shared by CLI commands."""

from __future__ import annotations

__all__ = ["DEFAULT_POLL_INTERVAL_SECONDS", "wait_for_condition"]

import time
from collections.abc import Callable

DEFAULT_POLL_INTERVAL_SECONDS = 0.1


def wait_for_condition(
    condition_fn: Callable[[], bool],
    timeout_seconds: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> bool:
    """Wait for a condition to become true.

    Polls the condition function until it returns True or timeout is reached.

    Args:
        condition_fn: Function that returns True when condition is met.
        timeout_seconds: Maximum time to wait.
        poll_interval: Time between condition checks.

    Returns:
        True if condition was met within timeout, False otherwise.
    """
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout_seconds:
        if condition_fn():
            return True
        time.sleep(poll_interval)
    return False
