"""Global error handling.

Engine errors map to HTTP status codes by kind:

    ValidationError        400
    ForbiddenError         403
    NotFoundError          404
    ConflictError          409 (LockBusyError flagged retryable)
    BusinessRuleViolation  422
    InfrastructureError    503 (generic message)
"""

import logging
import traceback
from typing import Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from execution.orders.errors import (
    BusinessRuleViolation,
    ConflictError,
    ForbiddenError,
    InfrastructureError,
    NotFoundError,
    OrderEngineError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES = [
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (BusinessRuleViolation, 422),
    (InfrastructureError, 503),
]


class APIError(Exception):
    """Custom API error with status code."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: dict | None = None,
    ):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            detail: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


def status_code_for(exc: OrderEngineError) -> int:
    """HTTP status code for an engine error."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def engine_error_handler(request: Request, exc: OrderEngineError) -> JSONResponse:
    """Render an engine error as a structured JSON response."""
    status_code = status_code_for(exc)

    if isinstance(exc, InfrastructureError):
        logger.error(f"Infrastructure failure in {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.kind,
                "message": "Service temporarily unavailable, retry later",
                "detail": None,
                "retryable": True,
            },
        )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.kind,
            "message": exc.message,
            "detail": exc.fields or None,
            "retryable": exc.retryable,
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported like engine validation errors."""
    return JSONResponse(
        status_code=400,
        content={
            "error": ValidationError.kind,
            "message": "Invalid request",
            "detail": jsonable_errors(exc),
            "retryable": False,
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


async def error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle exceptions and return appropriate JSON response.

    Args:
        request: Request that caused the error
        exc: Exception that was raised

    Returns:
        JSON error response
    """
    if isinstance(exc, OrderEngineError):
        return await engine_error_handler(request, exc)

    if isinstance(exc, APIError):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": type(exc).__name__,
                "message": exc.message,
                "detail": exc.detail,
                "retryable": False,
            },
        )

    # Log unexpected errors
    logger.error(
        f"Unhandled error in {request.method} {request.url.path}: {exc}\n"
        f"{traceback.format_exc()}"
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "detail": None,
            "retryable": False,
        },
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for catching and handling all errors."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """Process request and handle any errors.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response or error response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            return await error_handler(request, exc)
