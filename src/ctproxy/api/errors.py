"""Structured API error handling.

This module provides:
- ErrorCode enum with domain-grouped error codes
- APIError exception class for structured error responses
- Global exception handlers for consistent error formatting
- Mapping from ctproxy domain exceptions to API errors

Usage:
    from ctproxy.api.errors import APIError, ErrorCode

    raise APIError(
        status_code=404,
        code=ErrorCode.CONFIG_NOT_FOUND,
        message="Config 'abc' not found",
        details={"uuid": "abc"},
    )

Response format:
    {
        "detail": {
            "code": "CONFIG_NOT_FOUND",
            "message": "Config 'abc' not found",
            "details": {"uuid": "abc"}
        }
    }
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "domain_error_handler",
    "domain_error_to_api_error",
    "http_exception_handler",
    "validation_error_handler",
]

import logging
from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ctproxy.constants import APP_NAME
from ctproxy.exceptions import (
    BinaryNotFoundError,
    ConfigNotFoundError,
    CtproxyError,
    DecodeError,
    LaunchFailedError,
    NotFoundError,
    StorageError,
)

_logger = logging.getLogger(f"{APP_NAME}.api.errors")


class ErrorCode(str, Enum):
    """API error codes for programmatic handling.

    Codes are namespaced by domain:
    - CONFIG_*, ACTIVE_*: Registry lookups
    - PROFILE_*: Profile decoding
    - STORAGE_*: Registry persistence
    - ENGINE_*, RUNTIME_*: Engine process control
    - VALIDATION_*: Input validation errors
    - INTERNAL_*, SERVICE_*: Internal server errors
    """

    # Registry errors (404)
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    ACTIVE_CONFIG_NOT_FOUND = "ACTIVE_CONFIG_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"  # Generic 404 for unmapped exceptions

    # Decode errors (422)
    PROFILE_DECODE_FAILED = "PROFILE_DECODE_FAILED"

    # Persistence errors (500)
    STORAGE_ERROR = "STORAGE_ERROR"

    # Engine errors (409, 500)
    ENGINE_BINARY_NOT_FOUND = "ENGINE_BINARY_NOT_FOUND"
    RUNTIME_CONFIG_NOT_FOUND = "RUNTIME_CONFIG_NOT_FOUND"
    ENGINE_LAUNCH_FAILED = "ENGINE_LAUNCH_FAILED"

    # Conflict errors (409)
    CONFLICT = "CONFLICT"  # Generic 409 for unmapped exceptions

    # Validation errors (400, 422)
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Internal errors (500, 501, 503)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class APIError(HTTPException):
    """Structured API error with error code.

    Extends HTTPException to provide consistent structured error responses
    with error codes for programmatic handling.

    Attributes:
        status_code: HTTP status code.
        code: Error code from ErrorCode enum.
        error_message: Human-readable error message.
        error_details: Optional contextual details.
        validation_errors: Optional Pydantic validation errors.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize structured API error.

        Args:
            status_code: HTTP status code.
            code: Error code from ErrorCode enum.
            message: Human-readable error message.
            details: Optional contextual details (varies by error type).
            validation_errors: Optional Pydantic validation errors.
        """
        self.code = code
        self.error_message = message
        self.error_details = details
        self.validation_errors = validation_errors

        # Build structured detail dict
        detail: dict[str, Any] = {
            "code": code.value,
            "message": message,
        }
        if details:
            detail["details"] = details
        if validation_errors:
            detail["validation_errors"] = validation_errors

        super().__init__(status_code=status_code, detail=detail)


def domain_error_to_api_error(exc: CtproxyError) -> APIError:
    """Map a ctproxy exception to its structured API error.

    Args:
        exc: Exception raised by the registry, supervisor or coordinator.

    Returns:
        APIError with the matching status code and error code.
    """
    if isinstance(exc, NotFoundError):
        return APIError(404, ErrorCode.CONFIG_NOT_FOUND, str(exc), {"uuid": exc.record_id})
    if isinstance(exc, DecodeError):
        details = {"scheme": exc.scheme} if exc.scheme else None
        return APIError(422, ErrorCode.PROFILE_DECODE_FAILED, str(exc), details)
    if isinstance(exc, StorageError):
        return APIError(500, ErrorCode.STORAGE_ERROR, str(exc))
    if isinstance(exc, BinaryNotFoundError):
        return APIError(
            500,
            ErrorCode.ENGINE_BINARY_NOT_FOUND,
            str(exc),
            {"engine_path": exc.engine_path},
        )
    if isinstance(exc, ConfigNotFoundError):
        return APIError(
            409,
            ErrorCode.RUNTIME_CONFIG_NOT_FOUND,
            f"{exc}. Activate a config first.",
            {"config_path": exc.config_path},
        )
    if isinstance(exc, LaunchFailedError):
        return APIError(500, ErrorCode.ENGINE_LAUNCH_FAILED, str(exc))
    return APIError(500, ErrorCode.INTERNAL_ERROR, str(exc))


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with structured response.

    Args:
        request: FastAPI request object.
        exc: APIError exception instance.

    Returns:
        JSONResponse with structured error detail.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def domain_error_handler(request: Request, exc: CtproxyError) -> JSONResponse:
    """Handle ctproxy exceptions that escaped a route.

    Args:
        request: FastAPI request object.
        exc: Domain exception.

    Returns:
        JSONResponse with structured error detail.
    """
    api_error = domain_error_to_api_error(exc)
    if api_error.status_code >= 500:
        _logger.error(
            {
                "event": "api_request_failed",
                "message": api_error.error_message,
                "path": request.url.path,
                "status_code": api_error.status_code,
                "error_type": type(exc).__name__,
            }
        )
    return JSONResponse(
        status_code=api_error.status_code,
        content={"detail": api_error.detail},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured response.

    Converts Pydantic validation errors to our structured format while
    preserving the detailed field-level error information.

    Args:
        request: FastAPI request object.
        exc: RequestValidationError from Pydantic.

    Returns:
        JSONResponse with structured error detail including validation_errors.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    msg = first_error.get("msg", "Validation error")

    # Build human-readable message
    if len(errors) == 1:
        # Filter out 'body' from location path
        field_parts = [str(part) for part in loc if part != "body"]
        field_name = ".".join(field_parts)
        message = f"{field_name}: {msg}" if field_name else msg
    else:
        message = f"{len(errors)} validation errors"

    detail: dict[str, Any] = {
        "code": ErrorCode.VALIDATION_ERROR.value,
        "message": message,
        "validation_errors": [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ],
    }

    return JSONResponse(
        status_code=422,
        content={"detail": detail},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTPException.

    Wraps plain string details in structured format for consistency.
    Passes through already-structured details from APIError.

    Args:
        request: FastAPI request object.
        exc: HTTPException (Starlette or FastAPI).

    Returns:
        JSONResponse with structured error detail.
    """
    # If detail is already structured (from APIError), use as-is
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    # Wrap plain string in structured format
    code = _status_to_error_code(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    detail: dict[str, Any] = {
        "code": code.value,
        "message": message,
    }

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail},
    )


def _status_to_error_code(status_code: int) -> ErrorCode:
    """Map HTTP status code to default error code.

    Used for wrapping plain HTTPException in structured format.

    Args:
        status_code: HTTP status code.

    Returns:
        Appropriate ErrorCode for the status code.
    """
    mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.NOT_FOUND,
        409: ErrorCode.CONFLICT,
        500: ErrorCode.INTERNAL_ERROR,
        501: ErrorCode.NOT_IMPLEMENTED,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
