"""Activation coordinator.

Sequences registry mutations with engine restarts and emits change
notifications. This is the single service object the API, the status
indicator and the daemon share; it is constructed once at startup.

Restart rule (applied to add, remove, activate and replace_all):
    If the mutation commits, the engine was running, and the mutation
    changed the active profile, stop the engine and start it against the
    new runtime config. If nothing is active afterwards, leave it stopped.
    A failed restart does not fail the mutation; it is recorded in
    last_error() and published as engine_restart_failed.
"""

from __future__ import annotations

__all__ = ["ActivationCoordinator", "ActivationResult", "ConfigListing", "EngineStatus"]

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from ctproxy.constants import APP_NAME
from ctproxy.engine.supervisor import EngineState
from ctproxy.exceptions import EngineError, StorageError
from ctproxy.registry import AddResult, ConfigRegistry, ProfileRecord
from ctproxy.registry.runtime import runtime_socks_port
from ctproxy.service.events import EventHub, ServiceEventType
from ctproxy.utils.logging.iso_formatter import utc_timestamp

_logger = logging.getLogger(f"{APP_NAME}.service")


class Supervisor(Protocol):
    """Process control surface the coordinator depends on."""

    def start(self, runtime_config_path: Path) -> None: ...

    def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    def last_error(self) -> str | None: ...

    def record_error(self, message: str) -> None: ...

    @property
    def pid(self) -> int | None: ...


@dataclass(frozen=True)
class EngineStatus:
    """Point-in-time engine status.

    Attributes:
        running: Whether the engine process is alive.
        state: running or stopped.
        pid: Engine pid when running.
        port: Local SOCKS port of the active runtime config.
        last_error: Most recent engine error.
        timestamp: ISO 8601 UTC time of the poll.
    """

    running: bool
    state: EngineState
    pid: int | None = None
    port: int | None = None
    last_error: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass(frozen=True)
class ConfigListing:
    """Records and the active id, read together."""

    records: dict[str, ProfileRecord | None]
    active_id: str | None


@dataclass(frozen=True)
class ActivationResult:
    """Outcome of an activate or remove call.

    Attributes:
        active_id: Active id right after the call, read under the
            coordinator lock.
        changed: Whether the active pointer changed.
    """

    active_id: str | None
    changed: bool


class ActivationCoordinator:
    """Facade over the registry and the engine supervisor.

    A coordinator lock serializes each mutation together with its restart,
    so every restart sees the runtime config its own mutation committed.

    Args:
        registry: Config registry.
        supervisor: Engine process supervisor.
        events: Event hub for observers. A private one is created if None.
        autostart_engine: Start the engine in startup() when a config is active.
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        supervisor: Supervisor,
        events: EventHub | None = None,
        autostart_engine: bool = True,
    ) -> None:
        self._registry = registry
        self._supervisor = supervisor
        self._events = events or EventHub()
        self._autostart = autostart_engine
        self._lock = threading.Lock()

    @property
    def events(self) -> EventHub:
        """Event hub observers subscribe to."""
        return self._events

    @property
    def registry(self) -> ConfigRegistry:
        """Underlying registry (read access for observers)."""
        return self._registry

    # =========================================================================
    # Queries
    # =========================================================================

    def list_configs(self, ids: list[str] | None = None) -> ConfigListing:
        """All records keyed by id, or the requested ids (unknown ids map to None)."""
        records, active_id = self._registry.listing(ids or None)
        return ConfigListing(records=records, active_id=active_id)

    def get_active_config(self) -> ProfileRecord | None:
        """The active record, or None."""
        return self._registry.get_active()

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_configs(self, serialized_list: list[str]) -> AddResult:
        """Add profiles; restart the engine if the active profile changed."""
        with self._lock:
            result = self._registry.add(serialized_list)
            if result.changed:
                self._after_mutation("add", active_changed=result.active_changed)
            return result

    def remove_config(self, record_id: str) -> ActivationResult:
        """Remove a record; restart the engine if it was the active one."""
        with self._lock:
            was_active = self._registry.remove(record_id)
            active_id = self._after_mutation("remove", active_changed=was_active)
            return ActivationResult(active_id=active_id, changed=was_active)

    def activate_config(self, record_id: str | None) -> ActivationResult:
        """Activate a record, or clear the active pointer for an empty id.

        Clearing when nothing is active changes nothing and publishes nothing.
        """
        with self._lock:
            if not self._registry.activate(record_id):
                return ActivationResult(active_id=self._registry.active_id, changed=False)
            active_id = self._after_mutation("activate", active_changed=True)
            return ActivationResult(active_id=active_id, changed=True)

    def replace_all_configs(self, serialized_list: list[str]) -> AddResult:
        """Replace every record with the given profiles.

        Raises:
            StorageError: If a commit fails. When the clear was already
                committed, the engine is stopped and the change published
                before the error propagates.
        """
        with self._lock:
            had_records = bool(self._registry.get_all())
            try:
                result = self._registry.replace_all(serialized_list)
            except StorageError:
                if had_records and not self._registry.get_all():
                    self._after_mutation("replace", active_changed=True)
                raise
            self._after_mutation("replace", active_changed=True)
            return result

    # =========================================================================
    # Engine control
    # =========================================================================

    def engine_up(self) -> EngineStatus:
        """Start the engine against the active runtime config.

        Raises:
            BinaryNotFoundError: Engine executable is absent.
            ConfigNotFoundError: No runtime config (nothing active).
            LaunchFailedError: Engine failed to start.
        """
        with self._lock:
            was_running = self._supervisor.is_running()
            self._supervisor.start(self._registry.runtime_config_path)
            if not was_running:
                self._events.publish(ServiceEventType.ENGINE_STARTED, {"pid": self._supervisor.pid})
            return self.ping()

    def engine_down(self) -> EngineStatus:
        """Stop the engine. Stopping a stopped engine is a no-op."""
        with self._lock:
            was_running = self._supervisor.is_running()
            self._supervisor.stop()
            if was_running:
                self._events.publish(ServiceEventType.ENGINE_STOPPED, {})
            return self.ping()

    def ping(self) -> EngineStatus:
        """Poll engine status. Does not take the coordinator lock."""
        running = self._supervisor.is_running()
        return EngineStatus(
            running=running,
            state=EngineState.RUNNING if running else EngineState.STOPPED,
            pid=self._supervisor.pid if running else None,
            port=runtime_socks_port(self._registry.read_runtime_config()),
            last_error=self._supervisor.last_error(),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def startup(self) -> None:
        """Autostart the engine when configured and a config is active.

        Start failures are logged and recorded, never raised.
        """
        if not self._autostart or self._registry.active_id is None:
            return
        try:
            self.engine_up()
        except EngineError as e:
            _logger.error(
                {
                    "event": "engine_autostart_failed",
                    "message": f"Engine autostart failed: {e}",
                    "error_type": type(e).__name__,
                }
            )

    def shutdown(self) -> None:
        """Stop the engine."""
        self.engine_down()

    # =========================================================================
    # Internals (caller holds the coordinator lock)
    # =========================================================================

    def _after_mutation(self, operation: str, *, active_changed: bool) -> str | None:
        """Restart if needed and publish configs_changed; returns the active id."""
        restart: dict[str, Any] | None = None
        if active_changed and self._supervisor.is_running():
            restart = self._restart()

        active_id = self._registry.active_id
        self._events.publish(
            ServiceEventType.CONFIGS_CHANGED,
            {
                "operation": operation,
                "active_id": active_id,
                "restart": restart,
            },
        )
        return active_id

    def _restart(self) -> dict[str, Any]:
        self._supervisor.stop()
        self._events.publish(ServiceEventType.ENGINE_STOPPED, {"reason": "active_config_changed"})

        if self._registry.active_id is None:
            _logger.info(
                {
                    "event": "engine_left_stopped",
                    "message": "No active config after change, engine left stopped",
                }
            )
            return {"restarted": False, "error": None}

        try:
            self._supervisor.start(self._registry.runtime_config_path)
        except EngineError as e:
            message = f"Engine restart failed: {e}"
            self._supervisor.record_error(message)
            _logger.error(
                {
                    "event": "engine_restart_failed",
                    "message": message,
                    "error_type": type(e).__name__,
                }
            )
            self._events.publish(ServiceEventType.ENGINE_RESTART_FAILED, {"error": message})
            return {"restarted": False, "error": message}

        self._events.publish(
            ServiceEventType.ENGINE_STARTED,
            {"pid": self._supervisor.pid, "reason": "active_config_changed"},
        )
        return {"restarted": True, "error": None}
