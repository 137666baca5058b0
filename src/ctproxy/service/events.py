"""Change notifications emitted by the activation coordinator.

Observers subscribe a callback. Callbacks run synchronously on the thread
that published the event; exceptions they raise are logged and dropped.
SSE clients subscribe an asyncio queue that is fed thread-safely through
the owning event loop.
"""

from __future__ import annotations

__all__ = [
    "EventHub",
    "ServiceEvent",
    "ServiceEventType",
]

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ctproxy.constants import APP_NAME
from ctproxy.utils.logging.iso_formatter import utc_timestamp

_logger = logging.getLogger(f"{APP_NAME}.service.events")

# Bound per SSE client; a stalled browser drops events instead of growing memory
_SSE_QUEUE_MAXSIZE = 100


class ServiceEventType(str, Enum):
    """Event types delivered to observers and SSE clients.

    - snapshot: first event on a new SSE stream
    - configs_changed: a registry mutation committed
    - engine_*: engine lifecycle transitions
    """

    SNAPSHOT = "snapshot"
    CONFIGS_CHANGED = "configs_changed"
    ENGINE_STARTED = "engine_started"
    ENGINE_STOPPED = "engine_stopped"
    ENGINE_RESTART_FAILED = "engine_restart_failed"


@dataclass(frozen=True)
class ServiceEvent:
    """A single notification.

    Attributes:
        type: Event type.
        data: Event payload.
        timestamp: ISO 8601 UTC time of emission.
    """

    type: ServiceEventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the SSE wire shape."""
        return {"type": self.type.value, "data": self.data, "timestamp": self.timestamp}


EventCallback = Callable[[ServiceEvent], None]


class EventHub:
    """Fan-out of service events to callbacks and SSE queues."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[EventCallback] = []
        self._queues: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[dict[str, Any]]]] = []

    @property
    def sse_subscriber_count(self) -> int:
        """Return the current number of SSE subscribers."""
        return len(self._queues)

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register a callback.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def subscribe_queue(self) -> asyncio.Queue[dict[str, Any]]:
        """Subscribe an SSE client. Must be called from the event loop."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=_SSE_QUEUE_MAXSIZE)
        loop = asyncio.get_running_loop()
        with self._lock:
            self._queues.append((loop, queue))
        return queue

    def unsubscribe_queue(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        """Unsubscribe an SSE client."""
        with self._lock:
            self._queues = [(lp, q) for lp, q in self._queues if q is not queue]

    def publish(self, event_type: ServiceEventType, data: dict[str, Any] | None = None) -> ServiceEvent:
        """Deliver an event to every subscriber.

        Returns:
            The published event.
        """
        event = ServiceEvent(type=event_type, data=data or {})
        with self._lock:
            callbacks = list(self._callbacks)
            queues = list(self._queues)

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                # Observers never affect control flow
                _logger.error(
                    {
                        "event": "observer_failed",
                        "message": f"Event observer raised: {e}",
                        "event_type": event_type.value,
                        "error_type": type(e).__name__,
                    }
                )

        payload = event.to_dict()
        for loop, queue in queues:
            try:
                loop.call_soon_threadsafe(self._enqueue, queue, payload)
            except RuntimeError:
                # Loop already closed; the SSE handler's finally block unsubscribes
                pass

        return event

    @staticmethod
    def _enqueue(queue: asyncio.Queue[dict[str, Any]], payload: dict[str, Any]) -> None:
        try:
            queue.put_nowait(payload)
        except asyncio.QueueFull:
            _logger.warning(
                {
                    "event": "sse_queue_full",
                    "message": "SSE subscriber queue full, dropping event",
                    "event_type": payload.get("type"),
                }
            )
