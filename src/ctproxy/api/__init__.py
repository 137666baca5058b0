"""HTTP control API for the ctproxy daemon.

create_api_app() builds the FastAPI application around an already
constructed coordinator and status indicator.
"""

from __future__ import annotations

__all__ = ["create_api_app"]

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ctproxy import __version__
from ctproxy.api.errors import (
    APIError,
    api_error_handler,
    domain_error_handler,
    http_exception_handler,
    validation_error_handler,
)
from ctproxy.exceptions import CtproxyError
from ctproxy.service import ActivationCoordinator, StatusIndicator

from .routes import configs, engine, events, status


def create_api_app(
    coordinator: ActivationCoordinator | None,
    indicator: StatusIndicator | None = None,
) -> FastAPI:
    """Create the FastAPI application for the control API.

    Args:
        coordinator: Service facade. None makes every endpoint answer 503.
        indicator: Status indicator for /api/v1/status.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="ctproxy",
        description="Control API for the ctproxy daemon",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.coordinator = coordinator
    app.state.indicator = indicator

    # Exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(CtproxyError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # /configs/active and /configs/activate are declared in the configs router
    app.include_router(configs.router)
    app.include_router(engine.router)
    app.include_router(status.router)
    app.include_router(events.router)

    return app
