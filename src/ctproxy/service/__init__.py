"""Service layer: activation coordinator, change events and status indicator."""

from __future__ import annotations

__all__ = [
    "ActivationCoordinator",
    "ActivationResult",
    "ConfigListing",
    "EngineStatus",
    "EventHub",
    "ServiceEvent",
    "ServiceEventType",
    "StatusIndicator",
]

from ctproxy.service.coordinator import (
    ActivationCoordinator,
    ActivationResult,
    ConfigListing,
    EngineStatus,
)
from ctproxy.service.events import EventHub, ServiceEvent, ServiceEventType
from ctproxy.service.indicator import StatusIndicator
