"""
FastAPI middleware for observability.

Correlation ID and request logging middleware.

Dependencies: fastapi, livedesk.observability
System role: Request/response observability injection
"""

import logging
import re
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from livedesk.observability.correlation import clear_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

_SESSION_PATH = re.compile(r"/sessions/([0-9a-fA-F-]{36})")


def _request_context(request: Request) -> dict:
    """Caller and session identifiers for log records."""
    match = _SESSION_PATH.search(request.url.path)
    return {
        "method": request.method,
        "path": request.url.path,
        "user_id": request.headers.get("X-User-Id"),
        "role": request.headers.get("X-User-Role"),
        "session_id": match.group(1) if match else None,
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per request and one per response.

    Health probes log at DEBUG. Responses log at INFO below 400, WARNING
    for 4xx and ERROR for 5xx.
    """

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        context = _request_context(request)
        label = f"{request.method} {request.url.path}"
        quiet = request.url.path.endswith("/health")

        logger.log(logging.DEBUG if quiet else logging.INFO, label, extra=context)

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"{label} - unhandled {type(e).__name__}",
                extra={**context, "duration_ms": round((time.perf_counter() - started) * 1000, 2)},
            )
            raise

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.DEBUG if quiet else logging.INFO
        logger.log(
            level,
            f"{label} - {response.status_code}",
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind the caller's X-Correlation-ID (or a fresh one) for the request."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))
        try:
            response: Response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
