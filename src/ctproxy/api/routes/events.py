"""SSE events endpoint."""

from __future__ import annotations

__all__ = ["router"]

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from ctproxy.api.deps import CoordinatorDep
from ctproxy.api.schemas import PingResponse
from ctproxy.constants import API_PREFIX, APP_NAME
from ctproxy.service.events import ServiceEventType

_logger = logging.getLogger(f"{APP_NAME}.api.routes.events")

# Seconds between keepalive comments when no event arrives
SSE_KEEPALIVE_SECONDS = 30.0

router = APIRouter(prefix=API_PREFIX, tags=["events"])


@router.get("/events")
async def sse_events(request: Request, coordinator: CoordinatorDep) -> EventSourceResponse:
    """SSE stream of coordinator notifications.

    Event format:
    - `data: {"type": "...", "timestamp": "...", ...}` (type embedded in data JSON)
    - First event is a snapshot with the engine status and active id.
    """
    hub = coordinator.events

    async def event_generator() -> Any:
        # Subscribe before the snapshot so nothing published in between is lost
        queue = hub.subscribe_queue()
        subscriber_count = hub.sse_subscriber_count
        _logger.info(
            {
                "event": "sse_subscriber_connected",
                "message": f"SSE subscriber connected (total: {subscriber_count})",
                "subscriber_count": subscriber_count,
            }
        )
        try:
            status = await asyncio.to_thread(coordinator.ping)
            yield {
                "data": json.dumps(
                    {
                        "type": ServiceEventType.SNAPSHOT.value,
                        "active_id": coordinator.registry.active_id,
                        "engine": PingResponse.from_status(status).model_dump(),
                    }
                )
            }

            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
                    event_data = {
                        "type": event["type"],
                        "timestamp": event["timestamp"],
                        **event["data"],
                    }
                    yield {"data": json.dumps(event_data)}
                except asyncio.TimeoutError:
                    # SSE comment as keepalive (not data, won't trigger onmessage)
                    yield {"comment": "keepalive"}
        finally:
            hub.unsubscribe_queue(queue)
            subscriber_count = hub.sse_subscriber_count
            _logger.info(
                {
                    "event": "sse_subscriber_disconnected",
                    "message": f"SSE subscriber disconnected (total: {subscriber_count})",
                    "subscriber_count": subscriber_count,
                }
            )

    return EventSourceResponse(event_generator())
