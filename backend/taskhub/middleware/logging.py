"""Structured request logging."""

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# Probes hit these constantly; log them at debug level only
QUIET_PATH_SUFFIXES = ("/health", "/health/ready")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind request context for every log line and time each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request start and completion with timing."""
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        # Fresh context per request; RequestIDMiddleware runs first
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )

        # Log request start
        quiet = request.url.path.endswith(QUIET_PATH_SUFFIXES)
        log = logger.debug if quiet else logger.info
        log("request_started")

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        # Log completion and expose timing to the caller
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log("request_completed", status_code=response.status_code, duration_ms=duration_ms)
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
