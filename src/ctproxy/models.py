"""Pydantic models shared by the daemon and its logging.

Logging Models:
- SystemEvent: System log entries for the daemon (<log_dir>/ctproxy/system.jsonl)
"""

from __future__ import annotations

__all__ = ["SystemEvent"]

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SystemEvent(BaseModel):
    """One daemon system log entry.

    Used for INFO, WARNING, ERROR, and CRITICAL events related to daemon
    lifecycle, registry commits and engine supervision.

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: Optional[str] = Field(
        None,
        description="Machine-friendly event name, e.g. 'daemon_started', 'engine_restart_failed'",
    )
    message: str = Field(description="Human-readable log message")

    # --- registry context ---
    config_id: Optional[str] = Field(
        None,
        description="Id of the affected config record",
    )

    # --- engine context ---
    pid: Optional[int] = Field(
        None,
        description="Engine or daemon process id",
    )

    # --- API context ---
    path: Optional[str] = Field(
        None,
        description="API request path, e.g. '/api/v1/configs'",
    )
    status_code: Optional[int] = Field(
        None,
        description="HTTP response status code (for error responses)",
    )

    # --- error details ---
    error_type: Optional[str] = Field(
        None,
        description="Exception class name, e.g. 'StorageError'",
    )
    error_message: Optional[str] = Field(
        None,
        description="Short error message",
    )

    # --- additional context ---
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional structured details",
    )

    model_config = ConfigDict(extra="allow")
