"""
Error taxonomy and the exception handlers that render it.

Services raise ``TaskFlowError`` subclasses; the handlers registered here turn
them (and the framework's ``HTTPException`` / ``RequestValidationError``) into
the standard ``{success, message, errors}`` envelope.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.config import get_settings

log = structlog.get_logger()

DEFAULT_ERROR_MESSAGE = "Internal server error"


class TaskFlowError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = DEFAULT_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, *, errors: Optional[list[dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class AuthenticationError(TaskFlowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    default_message = "Not authorized to access this route"


class AuthorizationError(TaskFlowError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(TaskFlowError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class MemberNotFoundError(NotFoundError):
    default_message = "User is not a member of this workspace"


class ValidationError(TaskFlowError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class DuplicateError(TaskFlowError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Resource already exists"


class DuplicateMemberError(DuplicateError):
    default_message = "User is already a member of this workspace"


class DomainInvariantError(TaskFlowError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVARIANT_VIOLATION"
    default_message = "Operation not allowed"


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

def error_payload(message: str, errors: Optional[list[dict[str, Any]]] = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "message": message}
    if errors:
        payload["errors"] = errors
    return payload


async def taskflow_error_handler(request: Request, exc: TaskFlowError):
    if exc.status_code >= 500:
        log.error("request.failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.message, exc.errors),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_payload("Validation failed", errors),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    log.exception("request.unhandled_error", path=request.url.path, method=request.method)
    message = DEFAULT_ERROR_MESSAGE
    if get_settings().debug:
        message = f"{DEFAULT_ERROR_MESSAGE}: {exc}"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(TaskFlowError)(taskflow_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
