"""
Exception handlers turning errors into the JSON error envelope:

    {"success": false, "code": ..., "message": ..., "timestamp": ..., "error": ...}

"error" carries exception details and is only included outside production.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from workload_tracker.core.config import Settings
from workload_tracker.core.errors import AppError, InternalError, ValidationFailedError

logger = logging.getLogger(__name__)

# Codes for framework-raised HTTP errors (unknown route, wrong method).
HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def error_body(
    code: str, message: str, *, error: Any = None, include_error: bool = False
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "code": code,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    if include_error and error is not None:
        body["error"] = jsonable_encoder(error)
    return body


def _error_response(
    status_code: int, body: dict[str, Any], headers: dict[str, str] | None = None
) -> JSONResponse:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {**(headers or {}), "WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _app_error_details(exc: AppError) -> Any:
    if exc.details is not None:
        return exc.details
    if exc.cause is not None:
        return str(exc.cause)
    return None


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the envelope handlers; call once while building the app."""
    include_error = not settings.is_production

    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s in %s %s: %s",
                exc.code,
                request.method,
                request.url.path,
                exc.message,
                extra={"code": exc.code, "path": request.url.path},
            )
        body = error_body(
            exc.code, exc.message, error=_app_error_details(exc), include_error=include_error
        )
        return _error_response(exc.status_code, body)

    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        body = error_body(ValidationFailedError.code, ValidationFailedError.default_message)
        # Field errors are part of the contract, not debug output.
        body["errors"] = jsonable_encoder(
            [
                {
                    "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
                    "message": err.get("msg"),
                }
                for err in errors
            ]
        )
        return _error_response(ValidationFailedError.status_code, body)

    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        code = HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, error_body(code, message), exc.headers)

    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception in %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
            extra={
                "method": request.method,
                "path": request.url.path,
                "error_type": type(exc).__name__,
            },
        )
        body = error_body(
            InternalError.code,
            InternalError.default_message,
            error=f"{type(exc).__name__}: {exc}",
            include_error=include_error,
        )
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, body)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    logger.debug("Exception handlers registered")
