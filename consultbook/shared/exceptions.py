"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging
from enum import StrEnum
from uuid import uuid4

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(StrEnum):
    """Closed set of error codes surfaced to callers."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    LOCK_BUSY = "lock_busy"
    TIMEOUT = "timeout"
    INTERNAL = "internal_error"


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def code(self) -> str:
        return str(self.kind)


class ValidationException(AppException):
    """Raised when input violates a stated invariant."""

    status_code = 422
    kind = ErrorKind.VALIDATION


class NotFoundException(AppException):
    """Raised when entity is not found or not active."""

    status_code = 404
    kind = ErrorKind.NOT_FOUND


class UnauthorizedException(AppException):
    """Raised when caller identity is absent or invalid."""

    status_code = 401
    kind = ErrorKind.UNAUTHORIZED


class ForbiddenException(AppException):
    """Raised when caller has no rights for operation."""

    status_code = 403
    kind = ErrorKind.FORBIDDEN


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    kind = ErrorKind.CONFLICT


class InvalidTransitionException(AppException):
    """Raised when a status change is not allowed from the current state."""

    status_code = 409
    kind = ErrorKind.INVALID_TRANSITION


class LockBusyException(ConflictException):
    """Raised when another admission holds the slot lock. Safe to retry."""

    kind = ErrorKind.LOCK_BUSY


class CacheUnavailableError(Exception):
    """Cache or lock backend failed. Never surfaced to callers directly."""


def error_body(message: str, kind: ErrorKind | str, **extra: str) -> dict:
    """Build failure envelope."""
    return {"success": False, "message": message, "error": str(kind), **extra}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.kind))


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic request errors as validation failures."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=422,
        content=error_body("; ".join(messages) or "Invalid request", ErrorKind.VALIDATION),
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    kind = {
        401: ErrorKind.UNAUTHORIZED,
        403: ErrorKind.FORBIDDEN,
        404: ErrorKind.NOT_FOUND,
        409: ErrorKind.CONFLICT,
    }.get(exc.status_code, "http_error")
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail), kind))


async def timeout_exception_handler(_: Request, exc: TimeoutError) -> JSONResponse:
    """Deadline exceeded on a storage call; reported as internal."""
    correlation_id = uuid4().hex
    logger.error("Operation timed out [correlation_id=%s]: %r", correlation_id, exc)
    return JSONResponse(
        status_code=500,
        content=error_body(
            "Internal server error",
            ErrorKind.INTERNAL,
            correlation_id=correlation_id,
        ),
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    correlation_id = uuid4().hex
    logger.exception("Unhandled error [correlation_id=%s]: %s", correlation_id, exc)
    return JSONResponse(
        status_code=500,
        content=error_body(
            "Internal server error",
            ErrorKind.INTERNAL,
            correlation_id=correlation_id,
        ),
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(TimeoutError, timeout_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
