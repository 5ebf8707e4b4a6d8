"""
Browser sessions keyed by an opaque cookie token.

Each session is a JSON record in Valkey whose key TTL tracks the session's
own expiry, so an abandoned session disappears without a sweeper.
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import SessionExpiredError
from auth.stores import CredentialStore
from auth.types import Session, UserAccount
from clients.valkey_client import ValkeyClient
from utils.timezone import Clock, now_utc, parse_iso

logger = logging.getLogger(__name__)


class SessionManager:
    """Issue, validate, rotate and destroy sessions.

    An account may hold several sessions (one per device). Each login mints
    a fresh token and retires the token the client presented, if any.
    Validation slides the expiry forward.
    """

    KEY_PREFIX = "session:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig, clock: Clock = now_utc):
        self._valkey = valkey
        self._config = config
        self._clock = clock

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def _lifetime(self, remember: bool) -> timedelta:
        if remember:
            return timedelta(days=self._config.remember_me_days)
        return timedelta(hours=self._config.session_expiry_hours)

    @staticmethod
    def _serialize(session: Session) -> dict:
        return {
            "user_id": str(session.user_id),
            "remember": session.remember,
            "created_at": session.created_at.isoformat(),
            "expires_at": session.expires_at.isoformat(),
            "last_activity_at": session.last_activity_at.isoformat(),
        }

    def establish(
        self,
        user_id: UUID,
        previous_token: str | None = None,
        remember: bool = False,
    ) -> Session:
        """Create a session for user_id, retiring previous_token.

        The old key is deleted and the new key written in one transaction,
        so a pre-login token can never be used after login.
        """
        now = self._clock()
        lifetime = self._lifetime(remember)
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            remember=remember,
            created_at=now,
            expires_at=now + lifetime,
            last_activity_at=now,
        )

        self._valkey.replace_json(
            self._key(previous_token) if previous_token else None,
            self._key(session.token),
            self._serialize(session),
            expire_seconds=int(lifetime.total_seconds()),
        )
        logger.info(f"Session established for account {user_id} (remember={remember})")
        return session

    def validate_session(self, token: str) -> Session:
        """Validate session token and return session, extending its expiry.

        Raises:
            SessionExpiredError: If token unknown, revoked or expired.
        """
        data = self._valkey.get_json(self._key(token))
        if data is None:
            raise SessionExpiredError("Session not found or expired")

        session = Session(
            token=token,
            user_id=UUID(data["user_id"]),
            remember=data.get("remember", False),
            created_at=parse_iso(data["created_at"]),
            expires_at=parse_iso(data["expires_at"]),
            last_activity_at=parse_iso(data["last_activity_at"]),
        )

        now = self._clock()
        if now >= session.expires_at:
            self._valkey.delete(self._key(token))
            raise SessionExpiredError("Session expired")

        return self._extend_session(session)

    def _extend_session(self, session: Session) -> Session:
        """Rewrite the record with a fresh expiry, unless it was destroyed since the read."""
        now = self._clock()
        lifetime = self._lifetime(session.remember)
        updated = session.model_copy(update={"expires_at": now + lifetime, "last_activity_at": now})
        extended = self._valkey.set_json(
            self._key(session.token),
            self._serialize(updated),
            expire_seconds=int(lifetime.total_seconds()),
            only_if_exists=True,
        )
        if not extended:
            raise SessionExpiredError("Session ended during validation")
        return updated

    def destroy(self, token: str) -> None:
        """Revoke session (logout). Safe to call with nonexistent token."""
        self._valkey.delete(self._key(token))

    def current_account(self, token: str, store: CredentialStore) -> UserAccount | None:
        """Account behind a session token, or None if the session is not valid."""
        try:
            session = self.validate_session(token)
        except SessionExpiredError:
            return None
        return store.find_by_id(session.user_id)
