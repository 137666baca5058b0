"""Status indicator endpoint."""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from ctproxy.api.deps import IndicatorDep
from ctproxy.api.schemas import StatusResponse
from ctproxy.constants import API_PREFIX

router = APIRouter(prefix=API_PREFIX, tags=["status"])


@router.get("/status", response_model=StatusResponse)
def get_status(indicator: IndicatorDep) -> StatusResponse:
    """Get the rendered status indicator."""
    return StatusResponse.from_snapshot(indicator.snapshot())
