"""Application middleware: request logging."""

import time

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request with timing; the caller's user id is bound for nested log lines."""

    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        user_id = request.headers.get("x-user-id")
        if user_id:
            structlog.contextvars.bind_contextvars(user_id=user_id)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response
