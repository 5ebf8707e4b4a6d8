"""
Password hashing and token digests.

Passwords: bcrypt over a base64 SHA-256 pre-hash, so inputs past bcrypt's
72-byte limit are neither truncated nor rejected.
Tokens: plain SHA-256 digests. Action tokens carry 256 bits of entropy, so a
fast hash is enough to make the stored value useless to a database reader.
"""

import base64
import hashlib
import hmac
import logging
import secrets

import bcrypt

logger = logging.getLogger(__name__)


def _prehash(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


class PasswordHasher:
    """Bcrypt password hashing utility."""

    def __init__(self, rounds: int = 12):
        """Initialize with bcrypt rounds (cost factor)."""
        self.rounds = rounds
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt with a fresh salt."""
        hashed = bcrypt.hashpw(_prehash(password), bcrypt.gensalt(rounds=self.rounds))
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash. Malformed hashes never verify."""
        try:
            return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is malformed")
            return False

    def verify_dummy(self, password: str) -> bool:
        """
        Spend one bcrypt comparison without an account.

        Login calls this when the email is unknown so response time does not
        reveal whether the account exists. Always returns False.
        """
        bcrypt.checkpw(_prehash(password), self._dummy_hash.encode("utf-8"))
        return False


def generate_token() -> str:
    """URL-safe action token with 256 bits of entropy."""
    return secrets.token_urlsafe(32)


def digest_token(token: str) -> str:
    """SHA-256 hex digest stored in place of a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(expected: str, presented: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))
