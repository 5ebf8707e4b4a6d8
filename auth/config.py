"""Authentication configuration."""

from pydantic import BaseModel, Field


class RateLimitPolicy(BaseModel):
    """Attempt budget for one action: max_attempts per fixed window."""

    namespace: str
    max_attempts: int = Field(..., ge=1, le=100)
    window_seconds: int = Field(..., ge=1, le=86400)


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations are in their natural units (minutes for token lifetimes,
    hours/days for sessions). Secrets (signing key, gateway credentials)
    are not configuration; they come from Vault.
    """

    # Action tokens
    reset_token_expiry_minutes: int = Field(
        default=60,
        description="How long password reset tokens remain valid",
        ge=5,
        le=1440,
    )
    verification_link_expiry_minutes: int = Field(
        default=60,
        description="How long signed email verification links remain valid",
        ge=5,
        le=10080,
    )

    # Sessions
    session_expiry_hours: int = Field(
        default=2,
        description="Idle lifetime of a normal session",
        ge=1,
        le=720,
    )
    remember_me_days: int = Field(
        default=30,
        description="Idle lifetime of a session created with remember=true",
        ge=1,
        le=400,
    )
    session_cookie_name: str = "session_token"
    session_cookie_secure: bool = True

    # Password hashing
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )

    # Rate limiting
    login_limit: RateLimitPolicy = RateLimitPolicy(namespace="login", max_attempts=5, window_seconds=300)
    # Every login request, counted before validation; above login_limit so
    # credential failures reach the lockout first.
    login_request_limit: RateLimitPolicy = RateLimitPolicy(
        namespace="login-request", max_attempts=10, window_seconds=60
    )
    registration_limit: RateLimitPolicy = RateLimitPolicy(namespace="register", max_attempts=5, window_seconds=60)
    forgot_password_limit: RateLimitPolicy = RateLimitPolicy(
        namespace="forgot-password", max_attempts=3, window_seconds=300
    )
    password_reset_limit: RateLimitPolicy = RateLimitPolicy(
        namespace="reset-password", max_attempts=5, window_seconds=300
    )
    verification_resend_limit: RateLimitPolicy = RateLimitPolicy(
        namespace="verification-resend", max_attempts=3, window_seconds=60
    )
    rate_limit_spread_factor: int = Field(
        default=4,
        description="Multiplier for the per-origin and per-principal buckets",
        ge=1,
        le=50,
    )

    # Application
    app_base_url: str = Field(
        default="http://localhost:5173",
        description="Single-page app base URL, used in password reset links",
    )
    api_base_url: str = Field(
        default="http://localhost:8000/api",
        description="API root URL, used in signed verification links",
    )
    app_name: str = Field(
        default="Account",
        description="Application name for emails",
    )
