"""Engine control endpoints.

- POST /api/v1/up   - Start the engine against the active config
- POST /api/v1/down - Stop the engine
- GET  /api/v1/ping - Poll engine status
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from ctproxy.api.deps import CoordinatorDep
from ctproxy.api.schemas import EngineDownResponse, EngineUpResponse, PingResponse
from ctproxy.constants import API_PREFIX

router = APIRouter(prefix=API_PREFIX, tags=["engine"])


@router.post("/up", response_model=EngineUpResponse)
def engine_up(coordinator: CoordinatorDep) -> EngineUpResponse:
    """Start the engine. Starting a running engine is a no-op."""
    status = coordinator.engine_up()
    return EngineUpResponse(running=status.running, port=status.port)


@router.post("/down", response_model=EngineDownResponse)
def engine_down(coordinator: CoordinatorDep) -> EngineDownResponse:
    """Stop the engine."""
    status = coordinator.engine_down()
    return EngineDownResponse(stopped=not status.running)


@router.get("/ping", response_model=PingResponse)
def ping(coordinator: CoordinatorDep) -> PingResponse:
    """Poll engine status."""
    return PingResponse.from_status(coordinator.ping())
