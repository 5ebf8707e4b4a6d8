"""Account lifecycle: credentials, sessions, action tokens and throttling."""

from auth.exceptions import (
    AuthError,
    FieldError,
    RequestValidationFailed,
    DuplicateEmailError,
    WeakPasswordError,
    InvalidCredentialsError,
    TooManyAttemptsError,
    WrongCurrentPasswordError,
    InvalidResetTokenError,
    RateLimitedError,
    TokenFailure,
    InvalidTokenError,
    InvalidSignatureError,
    UserNotFoundError,
    SessionExpiredError,
)
from auth.types import (
    UserAccount,
    ActionToken,
    TokenPurpose,
    Session,
    LoginResult,
)
from auth.config import AuthConfig, RateLimitPolicy
from auth.stores import CredentialStore, TokenStore
from auth.database import AuthDatabase
from auth.memory import InMemoryAuthStore
from auth.hashing import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.tokens import TokenIssuer, VerificationLinkSigner
from auth.session import SessionManager
from auth.service import AuthService
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
