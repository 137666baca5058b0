"""Service configuration for ctproxy.

Defines the configuration model for the daemon.
Config is stored at the OS-appropriate application directory.

Example usage:
    # Load from config file (defaults if not exists)
    config = load_service_config()

    # Save configuration
    save_service_config(config)
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_LOG_DIR",
    "ServiceConfig",
    "get_config_path",
    "get_data_dir",
    "get_engine_log_path",
    "get_log_dir",
    "get_registry_path",
    "get_runtime_config_path",
    "get_system_log_path",
    "load_service_config",
    "load_service_config_strict",
    "save_service_config",
]

import json
import logging
import sys
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from ctproxy.constants import (
    APP_NAME,
    DEFAULT_API_PORT,
    DEFAULT_ENGINE_PATH,
    DEFAULT_ENGINE_START_TIMEOUT_SECONDS,
    DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS,
    ENGINE_LOG_FILENAME,
    REGISTRY_FILENAME,
    RUNTIME_CONFIG_FILENAME,
)
from ctproxy.exceptions import ConfigurationError
from ctproxy.utils.file_helpers import get_app_dir, set_secure_permissions

_logger = logging.getLogger(f"{APP_NAME}.config")


def _get_platform_log_dir() -> str:
    """Get platform-appropriate base log directory following OS conventions.

    Returns:
        Platform-specific base log directory path (unexpanded).
        ctproxy logs go in <base>/ctproxy/.

    Platform conventions:
        - macOS: ~/Library/Logs (Apple standard, integrates with Console.app)
        - Linux: ~/.local/state (XDG Base Directory Specification for logs/state)
        - Windows: ~/AppData/Local (standard for app data)
    """
    if sys.platform == "darwin":
        return "~/Library/Logs"
    elif sys.platform == "win32":
        return "~/AppData/Local"
    else:
        # Linux/Unix: XDG_STATE_HOME is for logs, history, state
        import os

        return os.environ.get("XDG_STATE_HOME", "~/.local/state")


DEFAULT_LOG_DIR = _get_platform_log_dir()


class ServiceConfig(BaseModel):
    """Daemon configuration.

    Attributes:
        api_port: Loopback HTTP port for the control API (default: 49490).
        engine_path: Engine executable, absolute or resolved through PATH.
        data_dir: Directory holding the registry document and runtime config.
            None means <app_dir>/xray_configs.
        log_dir: Base directory for logs. Logs stored in <log_dir>/ctproxy/.
        log_level: Minimum level for the stderr handler.
        engine_start_timeout_seconds: How long a new engine must survive
            before it counts as started.
        engine_stop_timeout_seconds: Grace period between SIGTERM and SIGKILL.
        autostart_engine: Start the engine at daemon startup when an
            active config exists.
    """

    api_port: int = Field(
        default=DEFAULT_API_PORT,
        ge=1024,
        le=65535,
        description="Loopback HTTP port for the control API",
    )
    engine_path: str = Field(
        default=DEFAULT_ENGINE_PATH,
        min_length=1,
        description="Engine executable path or command name",
    )
    data_dir: str | None = Field(
        default=None,
        description="Directory for configs_info.json and active_config.json",
    )
    log_dir: str = Field(
        default=DEFAULT_LOG_DIR,
        min_length=1,
        description="Base directory for daemon and engine logs",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    engine_start_timeout_seconds: float = Field(
        default=DEFAULT_ENGINE_START_TIMEOUT_SECONDS,
        gt=0,
        le=30,
    )
    engine_stop_timeout_seconds: float = Field(
        default=DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS,
        gt=0,
        le=60,
    )
    autostart_engine: bool = True

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat


def get_config_path() -> Path:
    """Get the full path to the service config file.

    Returns:
        Path to ctproxy.json in the application directory.
    """
    return get_app_dir() / "ctproxy.json"


def get_data_dir(config: ServiceConfig) -> Path:
    """Get the registry data directory.

    Args:
        config: Service configuration.

    Returns:
        Path: Configured data_dir, or <app_dir>/xray_configs.
    """
    if config.data_dir:
        return Path(config.data_dir).expanduser()
    return get_app_dir() / "xray_configs"


def get_registry_path(config: ServiceConfig) -> Path:
    """Get path to the registry document (configs_info.json)."""
    return get_data_dir(config) / REGISTRY_FILENAME


def get_runtime_config_path(config: ServiceConfig) -> Path:
    """Get path to the runtime config the engine loads (active_config.json)."""
    return get_data_dir(config) / RUNTIME_CONFIG_FILENAME


def get_log_dir(config: ServiceConfig) -> Path:
    """Get log directory.

    Args:
        config: Service configuration.

    Returns:
        Path: Log directory path (<log_dir>/ctproxy/).
    """
    return Path(config.log_dir).expanduser() / APP_NAME


def get_system_log_path(config: ServiceConfig) -> Path:
    """Get full path to the daemon system log file (<log_dir>/ctproxy/system.jsonl)."""
    return get_log_dir(config) / "system.jsonl"


def get_engine_log_path(config: ServiceConfig) -> Path:
    """Get full path to the engine output log (<log_dir>/ctproxy/engine.log)."""
    return get_log_dir(config) / ENGINE_LOG_FILENAME


def load_service_config() -> ServiceConfig:
    """Load service configuration from file.

    If the config file doesn't exist, returns default configuration.
    Invalid JSON or validation errors return default config with a warning.

    Returns:
        ServiceConfig: Loaded or default configuration.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return ServiceConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
        return ServiceConfig.model_validate(data)
    except json.JSONDecodeError as e:
        _logger.warning(
            {
                "event": "config_invalid_json",
                "message": f"Invalid JSON in service config, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return ServiceConfig()
    except ValidationError as e:
        _logger.warning(
            {
                "event": "config_validation_failed",
                "message": f"Invalid service config values, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return ServiceConfig()
    except OSError as e:
        # Covers all file I/O errors including PermissionError (subclass of OSError)
        _logger.warning(
            {
                "event": "config_read_failed",
                "message": f"Failed to read service config file, using defaults: {e}",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"config_path": str(config_path)},
            }
        )
        return ServiceConfig()


def load_service_config_strict() -> ServiceConfig:
    """Load service configuration, raising on invalid content.

    Unlike load_service_config(), this function raises ConfigurationError
    for invalid JSON, unreadable files, or validation errors. A missing
    file still yields the defaults. Used by the daemon at startup.

    Returns:
        ServiceConfig: Validated configuration.

    Raises:
        ConfigurationError: If config is unreadable or invalid.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return ServiceConfig()

    try:
        with config_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {config_path}: {e}") from e


def save_service_config(config: ServiceConfig) -> None:
    """Save service configuration to file.

    Creates the config directory if it doesn't exist.
    Sets secure file permissions (0600).

    Args:
        config: Service configuration to save.

    Raises:
        OSError: If unable to write config file.
    """
    config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with config_path.open("w", encoding="utf-8") as f:
        json.dump(config.model_dump(), f, indent=2)
        f.write("\n")

    set_secure_permissions(config_path)
