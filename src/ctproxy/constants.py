"""Application-wide constants for ctproxy.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Control API server
    "DEFAULT_API_PORT",
    "API_HOST",
    "API_PREFIX",
    "API_SERVER_SHUTDOWN_TIMEOUT_SECONDS",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    # Runtime directory
    "RUNTIME_DIR",
    "DAEMON_PID_PATH",
    # Registry storage
    "REGISTRY_FILENAME",
    "RUNTIME_CONFIG_FILENAME",
    "REGISTRY_SCHEMA_VERSION",
    # Local inbound injected into every runtime config
    "LOCAL_INBOUND_LISTEN",
    "LOCAL_INBOUND_PORT",
    "LOCAL_INBOUND_PROTOCOL",
    # Engine process
    "DEFAULT_ENGINE_PATH",
    "ENGINE_LOG_FILENAME",
    "DEFAULT_ENGINE_START_TIMEOUT_SECONDS",
    "DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS",
    "ENGINE_KILL_TIMEOUT_SECONDS",
]

from pathlib import Path

from platformdirs import user_runtime_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "ctproxy"

# ============================================================================
# Control API Server
# ============================================================================

DEFAULT_API_PORT: int = 49490

# The control API only ever binds to loopback
API_HOST: str = "127.0.0.1"

API_PREFIX: str = "/api/v1"

API_SERVER_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

# Timeout for CLI -> daemon HTTP requests
DEFAULT_HTTP_TIMEOUT_SECONDS: float = 10.0

# ============================================================================
# Runtime Directory (PID file)
# ============================================================================

# Platform-specific:
#   - macOS: ~/Library/Caches/TemporaryItems/ctproxy/
#   - Linux: $XDG_RUNTIME_DIR/ctproxy/ (auto-cleaned on logout)
RUNTIME_DIR: Path = Path(user_runtime_dir(APP_NAME))
DAEMON_PID_PATH: Path = RUNTIME_DIR / "ctproxy.pid"

# ============================================================================
# Registry Storage
# ============================================================================

REGISTRY_FILENAME: str = "configs_info.json"
RUNTIME_CONFIG_FILENAME: str = "active_config.json"
REGISTRY_SCHEMA_VERSION: int = 1

# ============================================================================
# Local Inbound
# ============================================================================

# Every runtime config gets exactly this SOCKS inbound, replacing any
# inbounds the profile carried.
LOCAL_INBOUND_LISTEN: str = "127.0.0.1"
LOCAL_INBOUND_PORT: int = 10808
LOCAL_INBOUND_PROTOCOL: str = "socks"

# ============================================================================
# Engine Process
# ============================================================================

# Bare names are resolved through PATH
DEFAULT_ENGINE_PATH: str = "xray"
ENGINE_LOG_FILENAME: str = "engine.log"

# How long a freshly spawned engine must stay alive to count as started
DEFAULT_ENGINE_START_TIMEOUT_SECONDS: float = 0.5

# Grace period between SIGTERM and SIGKILL
DEFAULT_ENGINE_STOP_TIMEOUT_SECONDS: float = 3.0

# Bounded wait for the kernel to reap a SIGKILLed engine
ENGINE_KILL_TIMEOUT_SECONDS: float = 3.0
