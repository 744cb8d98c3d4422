"""Request ID propagation."""

import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
# Client-supplied ids longer than this are replaced
MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request) -> str | None:
    value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if not value or len(value) > MAX_REQUEST_ID_LENGTH or not value.isprintable():
        return None
    return value


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, and echo it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse a sane caller-supplied id or generate one
        request_id = _incoming_request_id(request) or str(uuid.uuid4())

        # Store in request state for LoggingMiddleware and handlers
        request.state.request_id = request_id

        response = await call_next(request)

        # Echo the id so callers can correlate logs
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
