"""Headless status indicator.

The tray-menu model of the service: a status line, a ports line, the list
of configs with the active one checked, and the last error. It refreshes
itself from the coordinator whenever an event is published, so readers
never poll the registry directly.
"""

from __future__ import annotations

__all__ = ["IndicatorItem", "IndicatorSnapshot", "StatusIndicator"]

import logging
import threading
from dataclasses import dataclass, field

from ctproxy.constants import APP_NAME
from ctproxy.service.coordinator import ActivationCoordinator
from ctproxy.service.events import ServiceEvent

_logger = logging.getLogger(f"{APP_NAME}.service.indicator")


@dataclass(frozen=True)
class IndicatorItem:
    """One entry in the config list."""

    id: str
    name: str
    checked: bool


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Rendered indicator state.

    Attributes:
        active: Whether the engine is running.
        status_line: "Status: Active", "Status: Inactive" or "Error: <msg>".
        ports_line: "Ports: Xray: <socks>, HttpApi: <api>" whenever a runtime
            config exists (running or not), otherwise "Ports: -".
        tooltip: Short summary for a tray tooltip.
        items: Configs in insertion order.
        error: Last engine error, if any.
    """

    active: bool
    status_line: str
    ports_line: str
    tooltip: str
    items: list[IndicatorItem] = field(default_factory=list)
    error: str | None = None


def display_name(record_id: str, label: str) -> str:
    """Menu text for a config; records without a label show a short id."""
    if not label or label == record_id:
        return f"Config {record_id[:8]}"
    return label


class StatusIndicator:
    """Passive observer of coordinator events.

    Args:
        coordinator: Source of config and engine state.
        api_port: Control API port shown in the ports line.
    """

    def __init__(self, coordinator: ActivationCoordinator, api_port: int) -> None:
        self._coordinator = coordinator
        self._api_port = api_port
        self._lock = threading.Lock()
        self._snapshot = self._render()
        self._unsubscribe = coordinator.events.subscribe(self._on_event)

    def snapshot(self) -> IndicatorSnapshot:
        """The most recently rendered state."""
        with self._lock:
            return self._snapshot

    def refresh(self) -> IndicatorSnapshot:
        """Re-render from the coordinator now."""
        snapshot = self._render()
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def select(self, record_id: str) -> None:
        """Activate a config, as clicking its menu entry would."""
        self._coordinator.activate_config(record_id)

    def close(self) -> None:
        """Stop observing events."""
        self._unsubscribe()

    def _on_event(self, event: ServiceEvent) -> None:
        _logger.debug(
            {
                "event": "indicator_refresh",
                "message": f"Refreshing indicator on {event.type.value}",
            }
        )
        self.refresh()

    def _render(self) -> IndicatorSnapshot:
        status = self._coordinator.ping()
        listing = self._coordinator.list_configs()
        active_id = listing.active_id
        records = [record for record in listing.records.values() if record is not None]

        items = [
            IndicatorItem(
                id=record.id,
                name=display_name(record.id, record.label),
                checked=record.id == active_id,
            )
            for record in records
        ]

        if status.last_error:
            status_line = f"Error: {status.last_error}"
            tooltip = status_line
        else:
            status_line = f"Status: {'Active' if status.running else 'Inactive'}"
            tooltip = None

        if status.port is not None:
            ports_line = f"Ports: Xray: {status.port}, HttpApi: {self._api_port}"
            tooltip = tooltip or f"ctproxy (Xray: {status.port}, HttpApi: {self._api_port})"
        else:
            ports_line = "Ports: -"
            tooltip = tooltip or f"ctproxy (HttpApi: {self._api_port})"

        return IndicatorSnapshot(
            active=status.running,
            status_line=status_line,
            ports_line=ports_line,
            tooltip=tooltip,
            items=items,
            error=status.last_error,
        )
