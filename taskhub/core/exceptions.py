"""
Application error taxonomy and global exception handlers.

Every failure leaves the API as ``{"status": "error", "message": ...}``;
stack traces stay in the server log.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a client-facing response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = 401
    default_message = "Invalid session or session has expired."


class ForbiddenError(AppError):
    status_code = 403
    default_message = "You do not have permission to perform this action."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class InternalError(AppError):
    status_code = 500


class MailDeliveryError(InternalError):
    default_message = "Error sending OTP. Please try again later."


def error_body(message: str) -> dict:
    return {"status": "error", "message": message}


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        loc = [str(p) for p in first.get("loc", ()) if p != "body"]
        text = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
        message = f"{'.'.join(loc)}: {text}" if loc else text
    return JSONResponse(status_code=400, content=error_body(message))


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit from %s: %s", request.client.host if request.client else "?", exc.detail)
    return JSONResponse(
        status_code=429,
        content=error_body("Too many attempts. Please try again later."),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(status_code=409, content=error_body("Database constraint violation"))


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content=error_body("Internal database error"))


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
