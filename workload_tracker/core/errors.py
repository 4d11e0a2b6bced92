"""Application error taxonomy. Each error maps to one HTTP status and a stable code."""

from typing import Any


class AppError(Exception):
    """Base for errors that reach the request boundary as a structured response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: Any = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        self.cause = cause
        super().__init__(self.message)


class UnauthorizedError(AppError):
    """Missing, invalid, expired or not-yet-valid token; unknown identity; bad credentials."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    """Authenticated but lacking the role or ownership for the action."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    """Unique-constraint violations and dependent-row conflicts."""

    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class ValidationFailedError(AppError):
    status_code = 422
    code = "VALIDATION_FAILED"
    default_message = "Validation failed"


class DatabaseConnectionError(AppError):
    """Database engine unreachable after retries (and fallback, when enabled)."""

    status_code = 503
    code = "DATABASE_UNAVAILABLE"
    default_message = "Database unavailable"


class InternalError(AppError):
    pass
