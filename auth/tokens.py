"""Single-use action tokens and signed verification links.

Password reset uses stored tokens: only a digest is persisted, one row per
(account, purpose), and consumption is a conditional update so a token
succeeds at most once.

Email verification uses stateless signed links instead. The link carries
the account id, a hash of the address it was sent to and an expiry, all
covered by an HMAC. Changing the email invalidates outstanding links
because the hash no longer matches.
"""

import hashlib
import hmac
import logging
from datetime import timedelta
from urllib.parse import urlencode
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import InvalidSignatureError, InvalidTokenError, TokenFailure
from auth.hashing import digest_token, generate_token, tokens_match
from auth.stores import TokenStore
from auth.types import ActionToken, TokenPurpose, UserAccount
from utils.timezone import Clock, now_utc, to_unix

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Issues and consumes stored action tokens."""

    def __init__(self, store: TokenStore, clock: Clock = now_utc):
        self._store = store
        self._clock = clock

    def issue(self, account_id: UUID, purpose: TokenPurpose, ttl: timedelta) -> str:
        """
        Create a token and return its plaintext.

        The plaintext is not recoverable afterwards. Any earlier token for
        the same (account, purpose) stops working.
        """
        token = generate_token()
        now = self._clock()
        self._store.save_token(
            ActionToken(
                account_id=account_id,
                purpose=purpose,
                token_hash=digest_token(token),
                issued_at=now,
                expires_at=now + ttl,
                consumed_at=None,
            )
        )
        logger.info(f"Issued {purpose.value} token for account {account_id}")
        return token

    def consume(self, account_id: UUID, purpose: TokenPurpose, presented: str) -> None:
        """
        Spend a token.

        An expired token is consumed as well, so it can never come back.

        Raises:
            InvalidTokenError: NOT_FOUND for unknown, superseded or already
                used tokens; EXPIRED for a matching token past its expiry.
        """
        now = self._clock()
        row = self._store.consume_token(account_id, purpose, digest_token(presented), now)
        if row is None:
            raise InvalidTokenError(TokenFailure.NOT_FOUND)
        if not row.is_live(now):
            raise InvalidTokenError(TokenFailure.EXPIRED)
        logger.info(f"Consumed {purpose.value} token for account {account_id}")


def email_hash(email: str) -> str:
    """Content hash binding a verification link to an address. Not a secret."""
    return hashlib.sha1(email.strip().lower().encode("utf-8")).hexdigest()


class VerificationLinkSigner:
    """Builds and checks signed, expiring email verification links."""

    def __init__(self, signing_key: str, config: AuthConfig, clock: Clock = now_utc):
        if not signing_key:
            raise ValueError("signing_key is required")
        self._key = signing_key.encode("utf-8")
        self._config = config
        self._clock = clock

    @staticmethod
    def _path(account_id: str, hashed_email: str) -> str:
        return f"/email/verify/{account_id}/{hashed_email}"

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}?expires={expires}".encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def create(self, account: UserAccount) -> str:
        """Absolute verification URL for the account's current address."""
        expires = to_unix(
            self._clock() + timedelta(minutes=self._config.verification_link_expiry_minutes)
        )
        path = self._path(str(account.id), email_hash(account.email))
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self._config.api_base_url.rstrip('/')}{path}?{query}"

    def verify(
        self,
        account_id: str,
        hashed_email: str,
        expires: str | int | None,
        signature: str | None,
    ) -> None:
        """
        Check signature and expiry of a presented link.

        Raises:
            InvalidSignatureError: missing/invalid signature or expired link.
        """
        if not signature or expires is None:
            raise InvalidSignatureError("Unsigned verification link")
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            raise InvalidSignatureError("Malformed expiry")

        expected = self._signature(self._path(account_id, hashed_email), expires_at)
        if not tokens_match(expected, signature):
            raise InvalidSignatureError("Signature mismatch")
        if to_unix(self._clock()) >= expires_at:
            raise InvalidSignatureError("Verification link expired")
