"""Shared dependencies for API routes.

Route modules import dependencies from here rather than reading
app.state themselves.

Usage with Annotated:
    from ctproxy.api.deps import CoordinatorDep

    @router.get("/ping")
    def ping(coordinator: CoordinatorDep) -> PingResponse:
        ...
"""

from __future__ import annotations

__all__ = [
    "get_coordinator",
    "get_indicator",
    "CoordinatorDep",
    "IndicatorDep",
]

from typing import Annotated, Any, Callable

from fastapi import Depends, Request

from ctproxy.api.errors import APIError, ErrorCode
from ctproxy.service import ActivationCoordinator, StatusIndicator


def _create_state_getter(attr_name: str, error_detail: str) -> Callable[[Request], Any]:
    """Create a dependency function that retrieves a value from app.state.

    Args:
        attr_name: Attribute name on app.state (e.g., "coordinator").
        error_detail: Message for the 503 response when the value is missing.

    Returns:
        A dependency function compatible with FastAPI's Depends().
    """

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise APIError(
                status_code=503,
                code=ErrorCode.SERVICE_UNAVAILABLE,
                message=error_detail,
            )
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {attr_name} from app.state.\n\nRaises APIError 503 if not available."
    return getter


get_coordinator: Callable[[Request], ActivationCoordinator] = _create_state_getter(
    "coordinator",
    "Service unavailable",
)

get_indicator: Callable[[Request], StatusIndicator] = _create_state_getter(
    "indicator",
    "Status indicator not available",
)

CoordinatorDep = Annotated[ActivationCoordinator, Depends(get_coordinator)]
IndicatorDep = Annotated[StatusIndicator, Depends(get_indicator)]
