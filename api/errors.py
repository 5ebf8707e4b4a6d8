"""Global exception handlers for FastAPI.

Domain exceptions raised anywhere below a route are translated here, so
handlers in auth/api.py only deal with the success path.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from api.base import Messages, error_response, validation_error_response
from auth.exceptions import (
    FieldError,
    InvalidSignatureError,
    RateLimitedError,
    SessionExpiredError,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(FieldError)
    async def field_error_handler(request: Request, exc: FieldError):
        return validation_error_response(exc.errors)

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError):
        return error_response(
            429,
            str(exc),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(InvalidSignatureError)
    async def invalid_signature_handler(request: Request, exc: InvalidSignatureError):
        # Deliberately the same body for every cause.
        logger.info(f"Rejected verification link: {exc}")
        return error_response(403, Messages.INVALID_SIGNATURE)

    @app.exception_handler(SessionExpiredError)
    async def session_expired_handler(request: Request, exc: SessionExpiredError):
        return error_response(401, Messages.UNAUTHENTICATED)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            field = str(error["loc"][-1]) if error["loc"] else "payload"
            errors.setdefault(field, []).append(error["msg"])
        return validation_error_response(errors)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return error_response(500, Messages.SERVER_ERROR)
