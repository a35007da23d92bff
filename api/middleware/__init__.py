"""API middleware."""

from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.error_handler import (
    APIError,
    ErrorHandlerMiddleware,
    engine_error_handler,
    error_handler,
    request_validation_handler,
)

__all__ = [
    "RequestLoggingMiddleware",
    "APIError",
    "ErrorHandlerMiddleware",
    "engine_error_handler",
    "error_handler",
    "request_validation_handler",
]
