"""
Application error types and the shared response envelope.

Every route answers either ``{"success": true, ...}`` or
``{"success": false, "error": ..., "errorKind": ...}``. Routes raise the
exceptions below and the handlers registered in ``main.py`` turn them into
the failure envelope.
"""
from typing import Any, Dict, Optional

from fastapi import status
from fastapi.responses import JSONResponse

from app.core.config import settings


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_kind: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        extra: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.extra = extra or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_kind = "validation_error"
    default_message = "Invalid request"


class NotAuthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_kind = "unauthorized"
    default_message = "Unauthorized"


class InsufficientCredits(AppError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error_kind = "INSUFFICIENT_CREDITS"
    default_message = "Insufficient AI credits"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_kind = "forbidden"
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_kind = "not_found"
    default_message = "Not found"


class RequestTimeout(AppError):
    status_code = status.HTTP_408_REQUEST_TIMEOUT
    error_kind = "TIMEOUT"
    default_message = "Database query timed out"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_kind = "conflict"
    default_message = "Conflict"


class Gone(AppError):
    status_code = status.HTTP_410_GONE
    error_kind = "gone"
    default_message = "This resource has expired"


class NotConfigured(AppError):
    error_kind = "not_configured"
    default_message = "Service not configured"


class UpstreamError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error_kind = "upstream_error"
    default_message = "Upstream service error"


class PostMoveError(AppError):
    """Raised when moving a post between the unscheduled and scheduled tables fails."""

    error_kind = "post_move_failed"
    default_message = "Failed to move post to the calendar"


def error_body(error: AppError) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": error.message,
        "errorKind": error.error_kind,
    }
    body.update(error.extra)
    if error.details is not None and (settings.is_development or isinstance(error, ValidationFailed)):
        body["details"] = error.details
    return body


def error_response(error: AppError) -> JSONResponse:
    """Build the failure envelope for an AppError."""
    headers = None
    if isinstance(error, NotAuthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=error.status_code, content=error_body(error), headers=headers)
