"""Response bodies shared by every endpoint.

The single-page client expects flat JSON: ``{"message": ...}`` plus
payload keys on success, ``{"message": ..., "errors": {field: [..]}}``
on validation failure, and ``{"message": ...}`` for every other error.
"""

from typing import Any

from pydantic import BaseModel, Field
from starlette.responses import JSONResponse


class MessageBody(BaseModel):
    """Success or non-field error body."""

    message: str = Field(..., description="Human-readable message")


class ValidationErrorBody(BaseModel):
    """422 body. ``message`` repeats the first field error."""

    message: str
    errors: dict[str, list[str]]


def message_response(message: str, status_code: int = 200, **data: Any) -> JSONResponse:
    """Create a success response: message plus any extra top-level keys."""
    return JSONResponse(
        status_code=status_code,
        content={**MessageBody(message=message).model_dump(), **data},
    )


def error_response(
    status_code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a non-field error response."""
    return JSONResponse(
        status_code=status_code,
        content=MessageBody(message=message).model_dump(),
        headers=headers,
    )


def validation_error_response(errors: dict[str, list[str]]) -> JSONResponse:
    """Create a 422 response keyed by field."""
    first = next((messages[0] for messages in errors.values() if messages), "The given data was invalid.")
    return JSONResponse(
        status_code=422,
        content=ValidationErrorBody(message=first, errors=errors).model_dump(),
    )


class Messages:
    """User-facing messages. The SPA matches on some of these verbatim."""

    REGISTERED = "User registered successfully. Please check your email for verification."
    LOGGED_IN = "Login successful"
    LOGGED_OUT = "Logged out successfully"
    PROFILE_UPDATED = "Profile updated successfully"
    PASSWORD_CHANGED = "Password changed successfully"
    RESET_LINK_SENT = "Password reset link sent to your email"
    PASSWORD_RESET = "Password reset successfully"
    EMAIL_VERIFIED = "Email verified successfully"
    ALREADY_VERIFIED = "Email already verified"
    VERIFICATION_SENT = "Verification email sent"

    UNAUTHENTICATED = "Unauthenticated."
    INVALID_SIGNATURE = "Invalid signature."
    SERVER_ERROR = "Server Error"
