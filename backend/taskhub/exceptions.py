"""Application exceptions.

Every error the API reports to callers derives from ``TaskhubError``. The
exception handlers in ``taskhub.main`` turn them into the JSON envelope
``{"error": message, "code": code, "details": ...}`` with the matching HTTP
status.
"""

from typing import Any


class TaskhubError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: Any = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(TaskhubError):
    """Malformed or missing input.

    ``details`` carries field-level information, usually a list of
    ``{"field": ..., "message": ...}`` entries.
    """

    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(TaskhubError):
    """No session, or the presented credentials are invalid."""

    status_code = 401
    default_code = "NOT_AUTHENTICATED"


class AuthorizationError(TaskhubError):
    """Authenticated, but not a member or creator of the target project."""

    status_code = 403
    default_code = "ACCESS_DENIED"


class NotFoundError(TaskhubError):
    """A resource id does not resolve."""

    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message=f"{resource} not found")


class ConflictError(TaskhubError):
    """Unique constraint style conflicts (duplicate email, duplicate member)."""

    status_code = 409
    default_code = "CONFLICT"


class InternalError(TaskhubError):
    """Unexpected persistence or logic failure.

    The message is always generic; the original exception is logged, never
    returned to the caller.
    """

    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message)
