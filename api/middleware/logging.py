"""Request logging middleware."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from utils.logger import get_logger

logger = get_logger("api", "forwarddesk.api")

REQUEST_ID_HEADER = "X-Request-Id"

_QUIET_PATHS = frozenset({"/health", "/ready"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and one per response.

    Lines carry a request id (taken from X-Request-Id or generated) and
    the caller identity headers, so a rejected order can be traced to the
    user and organization that sent it. The request id is echoed back on
    the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]

        if request.url.path in _QUIET_PATHS:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        caller = {
            "request_id": request_id,
            "user_id": request.headers.get("x-user-id"),
            "organization_id": request.headers.get("x-organization-id"),
            "role": request.headers.get("x-user-role"),
        }
        logger.info(f"[{request_id}] {request.method} {request.url.path}", extra_data=caller)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"({duration_ms:.1f}ms)",
            extra_data={**caller, "status": response.status_code, "duration_ms": round(duration_ms, 2)},
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
