"""Custom exceptions for ctproxy.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Registry Errors (the mutation is aborted, registry unchanged):
    - NotFoundError: Unknown record id
    - DecodeError: Malformed or unsupported profile string
    - StorageError: Reading or writing a persisted artifact failed

Engine Errors (reported, never retried):
    - BinaryNotFoundError: Engine executable is absent
    - ConfigNotFoundError: Runtime config file is absent
    - LaunchFailedError: Engine could not be spawned or died during startup

Startup Errors:
    - ConfigurationError: Daemon configuration is invalid

Usage:
    from ctproxy.exceptions import DecodeError, NotFoundError
"""

from __future__ import annotations

__all__ = [
    "BinaryNotFoundError",
    "ConfigNotFoundError",
    "ConfigurationError",
    "CtproxyError",
    "DecodeError",
    "EngineError",
    "LaunchFailedError",
    "NotFoundError",
    "StorageError",
]


class CtproxyError(Exception):
    """Base class for all ctproxy errors."""


# =============================================================================
# Registry Errors
# =============================================================================


class NotFoundError(CtproxyError):
    """No record exists with the given id.

    Attributes:
        record_id: The id that was looked up.
    """

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Config '{record_id}' not found")


class DecodeError(CtproxyError):
    """A serialized profile could not be decoded.

    Raised for strings that match no recognized scheme prefix and for
    strings that match a prefix but are syntactically invalid.

    Attributes:
        reason: Human-readable cause.
        scheme: Detected scheme tag, or None if no prefix matched.
    """

    def __init__(self, reason: str, scheme: str | None = None) -> None:
        self.reason = reason
        self.scheme = scheme
        if scheme:
            super().__init__(f"Invalid {scheme} profile: {reason}")
        else:
            super().__init__(reason)


class StorageError(CtproxyError):
    """Reading or writing the registry document or runtime config failed.

    Also raised when the registry document exists but has an unexpected
    shape. Fatal for the call; never retried automatically.
    """


# =============================================================================
# Engine Errors
# =============================================================================


class EngineError(CtproxyError):
    """Base class for engine start failures."""


class BinaryNotFoundError(EngineError):
    """The engine executable does not exist."""

    def __init__(self, engine_path: str) -> None:
        self.engine_path = engine_path
        super().__init__(f"Engine binary not found: {engine_path}")


class ConfigNotFoundError(EngineError):
    """The runtime config file the engine should load does not exist."""

    def __init__(self, config_path: str) -> None:
        self.config_path = config_path
        super().__init__(f"Runtime config not found: {config_path}")


class LaunchFailedError(EngineError):
    """The engine could not be spawned or exited during the startup wait.

    Attributes:
        detail: OS error text or exit description.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Engine launch failed: {detail}")


# =============================================================================
# Startup Errors
# =============================================================================


class ConfigurationError(CtproxyError):
    """Daemon configuration is invalid or unreadable.

    Raised when:
    - Config file contains invalid JSON
    - Config file fails Pydantic validation
    - Config file cannot be read
    """
