"""Authentication service - orchestrates the account lifecycle.

Account states: unregistered -> registered (unverified) -> registered
(verified), with a per-session logged-out/logged-in axis alongside.

Every operation takes the raw request payload so the ordering of
rate limiting and validation lives here, not in the HTTP layer:
throttled actions are checked and counted *before* validation, so
malformed input still burns attempts.
"""

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import (
    InvalidCredentialsError,
    InvalidResetTokenError,
    InvalidSignatureError,
    InvalidTokenError,
    RateLimitedError,
    SessionExpiredError,
    TooManyAttemptsError,
    WeakPasswordError,
    WrongCurrentPasswordError,
)
from auth.hashing import PasswordHasher, tokens_match
from auth.password_policy import password_problems
from auth.rate_limiter import RateLimiter
from auth.session import SessionManager
from auth.stores import CredentialStore
from auth.tokens import TokenIssuer, VerificationLinkSigner, email_hash
from auth.types import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResult,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPurpose,
    UpdateProfileRequest,
    UserAccount,
)
from auth.validation import parse
from clients.email_client import EmailGatewayClient, EmailGatewayError

logger = logging.getLogger(__name__)


def _claimed_email(payload: Any) -> str:
    """Email as submitted, for rate-limit keys before validation has run."""
    if isinstance(payload, Mapping):
        value = payload.get("email")
        if isinstance(value, str):
            return value
    return ""


class AuthService:
    """Orchestrates registration, login, verification and password flows.

    Handles:
    - Registration and profile changes (with verification links)
    - Login with lockout, logout
    - Password change, forgot/reset (with enumeration protection)
    - Email verification and resend
    """

    def __init__(
        self,
        config: AuthConfig,
        store: CredentialStore,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        link_signer: VerificationLinkSigner,
        session_manager: SessionManager,
        rate_limiter: RateLimiter,
        email_client: EmailGatewayClient,
    ):
        self._config = config
        self._store = store
        self._hasher = hasher
        self._tokens = token_issuer
        self._links = link_signer
        self._session_manager = session_manager
        self._rate_limiter = rate_limiter
        self._email_client = email_client

    @staticmethod
    def _require_strong_password(password: str, confirmation: str | None) -> None:
        problems = password_problems(password, confirmation)
        if problems:
            raise WeakPasswordError(problems)

    def _account(self, account_id: UUID) -> UserAccount:
        account = self._store.find_by_id(account_id)
        if account is None:
            raise SessionExpiredError("Account no longer exists")
        return account

    def _send_verification(self, account: UserAccount) -> None:
        self._email_client.send_verification_email(
            email=account.email,
            name=account.name,
            verification_url=self._links.create(account),
        )

    def _try_send_verification(self, account: UserAccount) -> None:
        """Send a verification link; a gateway failure must not undo the account change."""
        try:
            self._send_verification(account)
        except EmailGatewayError as e:
            logger.error(f"Verification email for account {account.id} not sent: {e}")

    def register(self, payload: Any, ip_address: str | None) -> UserAccount:
        """Create an unverified account and email a verification link.

        Raises:
            RateLimitedError: Registration budget for this email/origin spent.
            RequestValidationFailed: Malformed name/email/password fields.
            WeakPasswordError: Password fails policy or confirmation.
            DuplicateEmailError: Email already registered.
        """
        self._rate_limiter.reserve(self._config.registration_limit, _claimed_email(payload), ip_address)

        request = parse(RegisterRequest, payload)
        self._require_strong_password(request.password, request.password_confirmation)

        account = self._store.create(
            name=request.name,
            email=request.email,
            password_hash=self._hasher.hash(request.password),
        )
        logger.info(f"Registered account {account.id}")

        self._try_send_verification(account)
        return account

    def login(
        self,
        payload: Any,
        ip_address: str | None,
        previous_session: str | None = None,
    ) -> LoginResult:
        """Verify credentials and establish a session.

        Flow:
        1. Count the request against the per-request budget (429), valid or not
        2. Validate input
        3. Reserve a lockout attempt for (email, origin); refuse when over budget
        4. Verify password (dummy comparison when the email is unknown)
        5. On failure: the reserved attempt stays counted, raise a generic error
        6. On success: forgive prior failures, retire previous_session, mint a new one

        Raises:
            RateLimitedError: Too many login requests from this email/origin.
            RequestValidationFailed: Missing/malformed email or password.
            TooManyAttemptsError: Locked out; carries seconds until retry.
            InvalidCredentialsError: Wrong password or unknown email (indistinguishable).
        """
        self._rate_limiter.reserve(self._config.login_request_limit, _claimed_email(payload), ip_address)

        request = parse(LoginRequest, payload)
        policy = self._config.login_limit

        try:
            self._rate_limiter.reserve(policy, request.email, ip_address)
        except RateLimitedError as e:
            raise TooManyAttemptsError(e.retry_after_seconds)

        account = self._store.find_by_email(request.email)
        if account is None:
            verified = self._hasher.verify_dummy(request.password)
        else:
            verified = self._hasher.verify(request.password, account.password_hash)

        if not verified:
            logger.info(f"Failed login from {ip_address}")
            raise InvalidCredentialsError()

        self._rate_limiter.forgive(policy, request.email, ip_address)
        session = self._session_manager.establish(
            account.id,
            previous_token=previous_session,
            remember=request.remember,
        )
        logger.info(f"Account {account.id} logged in")
        return LoginResult(user=account, session=session)

    def logout(self, session_token: str) -> None:
        """Destroy the session. Safe to call with an unknown token."""
        self._session_manager.destroy(session_token)

    def current_user(self, account_id: UUID) -> UserAccount:
        """
        Raises:
            SessionExpiredError: The session outlived its account.
        """
        return self._account(account_id)

    def update_profile(self, account_id: UUID, payload: Any) -> UserAccount:
        """Replace name and email. A new email must be verified again.

        Raises:
            RequestValidationFailed: Blank/oversized name or malformed email.
            DuplicateEmailError: Email belongs to another account.
        """
        request = parse(UpdateProfileRequest, payload)
        account = self._account(account_id)

        updated = self._store.update_profile(account.id, name=request.name, email=request.email)

        if updated.email != account.email:
            logger.info(f"Account {account.id} changed email; verification reset")
            self._try_send_verification(updated)
        return updated

    def change_password(self, account_id: UUID, payload: Any) -> None:
        """Replace the password of an authenticated account.

        Raises:
            RequestValidationFailed: Missing fields.
            WeakPasswordError: New password fails policy, confirmation,
                or equals the current one.
            WrongCurrentPasswordError: current_password did not verify.
        """
        request = parse(ChangePasswordRequest, payload)
        account = self._account(account_id)

        problems = password_problems(request.password, request.password_confirmation)
        if request.password == request.current_password:
            problems.append("The password field and current password must be different.")
        if problems:
            raise WeakPasswordError(problems)

        if not self._hasher.verify(request.current_password, account.password_hash):
            raise WrongCurrentPasswordError()

        self._store.update_password(account.id, self._hasher.hash(request.password))
        logger.info(f"Account {account.id} changed password")

    def forgot_password(self, payload: Any, ip_address: str | None) -> None:
        """Email a reset link if the account exists.

        Returns normally whether or not the email is registered, and whether
        or not the email could be delivered, so responses never reveal
        account existence.

        Raises:
            RateLimitedError: Request budget spent (the only observable failure).
            RequestValidationFailed: Malformed email.
        """
        self._rate_limiter.reserve(self._config.forgot_password_limit, _claimed_email(payload), ip_address)

        request = parse(ForgotPasswordRequest, payload)
        account = self._store.find_by_email(request.email)
        if account is None:
            logger.info(f"Password reset requested for unknown email from {ip_address}")
            return

        expiry_minutes = self._config.reset_token_expiry_minutes
        token = self._tokens.issue(
            account.id,
            TokenPurpose.PASSWORD_RESET,
            ttl=timedelta(minutes=expiry_minutes),
        )
        reset_url = (
            f"{self._config.app_base_url.rstrip('/')}/reset-password?"
            f"{urlencode({'token': token, 'email': account.email})}"
        )

        try:
            self._email_client.send_password_reset_email(
                email=account.email,
                reset_url=reset_url,
                expires_minutes=expiry_minutes,
            )
        except EmailGatewayError as e:
            logger.error(f"Password reset email for account {account.id} not sent: {e}")

    def reset_password(self, payload: Any, ip_address: str | None) -> None:
        """Consume a reset token and set a new password.

        Raises:
            RateLimitedError: Attempt budget spent.
            RequestValidationFailed: Missing token or malformed email.
            WeakPasswordError: New password fails policy or confirmation.
            InvalidResetTokenError: Token unknown, used, superseded, expired,
                or the email has no account (all reported the same way).
        """
        self._rate_limiter.reserve(self._config.password_reset_limit, _claimed_email(payload), ip_address)

        request = parse(ResetPasswordRequest, payload)
        self._require_strong_password(request.password, request.password_confirmation)

        account = self._store.find_by_email(request.email)
        if account is None:
            raise InvalidResetTokenError()

        try:
            self._tokens.consume(account.id, TokenPurpose.PASSWORD_RESET, request.token)
        except InvalidTokenError as e:
            logger.info(f"Rejected reset token for account {account.id}: {e.reason.value}")
            raise InvalidResetTokenError()

        self._store.update_password(account.id, self._hasher.hash(request.password))
        logger.info(f"Account {account.id} reset password")

    def verify_email(
        self,
        account_id: str,
        hashed_email: str,
        expires: str | int | None,
        signature: str | None,
    ) -> UserAccount:
        """Mark the address verified from a signed link.

        Opening a valid link again after verification succeeds without
        changing the original timestamp.

        Raises:
            InvalidSignatureError: Tampered, expired or unsigned link, unknown
                account, or link issued for a different address.
        """
        self._links.verify(account_id, hashed_email, expires, signature)

        try:
            account = self._store.find_by_id(UUID(account_id))
        except ValueError:
            raise InvalidSignatureError("Malformed account id")
        if account is None:
            raise InvalidSignatureError("Unknown account")
        if not tokens_match(email_hash(account.email), hashed_email):
            raise InvalidSignatureError("Link was issued for a different address")

        if self._store.mark_email_verified(account.id):
            logger.info(f"Account {account.id} verified email")
        return self._account(account.id)

    def resend_verification(self, account_id: UUID, ip_address: str | None) -> bool:
        """Send a fresh verification link.

        Returns:
            False if the address is already verified (nothing sent), else True.

        Raises:
            RateLimitedError: Resend budget spent.
            EmailGatewayError: Delivery failed.
        """
        account = self._account(account_id)
        self._rate_limiter.reserve(self._config.verification_resend_limit, str(account.id), ip_address)

        if account.is_verified:
            return False
        self._send_verification(account)
        return True
