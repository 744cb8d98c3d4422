"""ASGI middleware installed by ``taskhub.main.create_app``.

``RequestIDMiddleware`` must wrap ``LoggingMiddleware`` so the id is on
``request.state`` before the log context is bound.
"""

from taskhub.middleware.logging import LoggingMiddleware
from taskhub.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["LoggingMiddleware", "REQUEST_ID_HEADER", "RequestIDMiddleware"]
