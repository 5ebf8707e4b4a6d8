"""Typed exceptions for auth failures.

``FieldError`` subclasses surface as 422 responses keyed by request field.
The rest map to their own status in api/errors.py.
"""

from enum import Enum


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class FieldError(AuthError):
    """One or more request fields were rejected."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        first = next(iter(errors.values()), ["The given data was invalid."])
        super().__init__(first[0])

    @classmethod
    def on(cls, field: str, *messages: str) -> "FieldError":
        return cls({field: list(messages)})


class RequestValidationFailed(FieldError):
    """Malformed or missing input."""


class DuplicateEmailError(FieldError):
    """Email address already belongs to another account."""

    def __init__(self):
        super().__init__({"email": ["The email has already been taken."]})


class WeakPasswordError(FieldError):
    """New password fails the strength policy or its confirmation."""

    def __init__(self, messages: list[str]):
        super().__init__({"password": messages})


class InvalidCredentialsError(FieldError):
    """
    Email/password pair did not verify.

    Raised identically whether or not the email exists.
    """

    def __init__(self):
        super().__init__({"email": ["The provided credentials are incorrect."]})


class TooManyAttemptsError(FieldError):
    """Login lockout. Reported on the email field rather than as a 429."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__({
            "email": [
                f"Too many login attempts. Please try again in {retry_after_seconds} seconds."
            ]
        })


class WrongCurrentPasswordError(FieldError):
    """Current password supplied to change-password did not verify."""

    def __init__(self):
        super().__init__({"current_password": ["The current password is incorrect."]})


class InvalidResetTokenError(FieldError):
    """
    Reset token unknown, superseded, used, expired, or for another address.

    One message for every cause.
    """

    def __init__(self):
        super().__init__({"email": ["This password reset token is invalid."]})


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message or f"Too many attempts. Please try again in {retry_after_seconds} seconds."
        )


class TokenFailure(Enum):
    """Why a stored action token was rejected. Internal only."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class InvalidTokenError(AuthError):
    """Action token is invalid, expired, or already used."""

    def __init__(self, reason: TokenFailure):
        self.reason = reason
        super().__init__(f"Action token rejected: {reason.value}")


class InvalidSignatureError(AuthError):
    """Signed verification link is tampered, expired, or no longer matches the account."""


class UserNotFoundError(AuthError):
    """
    Account not found.

    Note: In user-facing responses, don't reveal whether an email exists.
    This exception is for internal logic only.
    """


class SessionExpiredError(AuthError):
    """Session is missing, revoked, or expired; the caller must log in again."""
