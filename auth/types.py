"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, StringConstraints

DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
# email-validator already caps addresses at 254 characters.
EmailAddress = EmailStr


class UserAccount(BaseModel):
    """A registered account. Unverified until email_verified_at is set."""

    id: UUID
    name: str
    email: EmailStr
    password_hash: str = Field(..., repr=False)
    email_verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    def summary(self) -> dict:
        """Shape returned alongside register/login/profile messages."""
        return self.model_dump(mode="json", include={"id", "name", "email", "email_verified_at"})

    def profile(self) -> dict:
        """Full profile for GET /user. Never includes the password hash."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class TokenPurpose(str, Enum):
    EMAIL_VERIFY = "email_verify"
    PASSWORD_RESET = "password_reset"


class ActionToken(BaseModel):
    """A single-use, time-bound token. Only the digest of the secret is kept."""

    account_id: UUID
    purpose: TokenPurpose
    token_hash: str = Field(..., repr=False)
    issued_at: datetime
    expires_at: datetime
    consumed_at: datetime | None = None

    def is_live(self, now: datetime) -> bool:
        return self.consumed_at is None and now < self.expires_at


class Session(BaseModel):
    """An authenticated session bound to one account."""

    token: str = Field(..., description="Session token (opaque string)", repr=False)
    user_id: UUID
    remember: bool = False
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class LoginResult(BaseModel):
    """Account plus the freshly established session."""

    user: UserAccount
    session: Session


# Request payloads. Format checks only; password strength and confirmation
# are domain rules enforced by AuthService so every entry point agrees.


class RegisterRequest(BaseModel):
    name: DisplayName
    email: EmailAddress
    password: str
    password_confirmation: str | None = None


class LoginRequest(BaseModel):
    email: EmailAddress
    password: str
    remember: bool = False


class UpdateProfileRequest(BaseModel):
    name: DisplayName
    email: EmailAddress


class ChangePasswordRequest(BaseModel):
    current_password: str
    password: str
    password_confirmation: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: EmailAddress


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    email: EmailAddress
    password: str
    password_confirmation: str | None = None
