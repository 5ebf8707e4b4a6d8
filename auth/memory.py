"""In-memory CredentialStore and TokenStore.

Used by tests and local runs. One lock guards both tables so every method
is atomic, matching the single-statement guarantees of AuthDatabase.
"""

import threading
from datetime import datetime
from uuid import UUID, uuid4

from auth.exceptions import DuplicateEmailError, UserNotFoundError
from auth.hashing import tokens_match
from auth.types import ActionToken, TokenPurpose, UserAccount
from utils.timezone import Clock, now_utc


class InMemoryAuthStore:
    """Dict-backed accounts and action tokens."""

    def __init__(self, clock: Clock = now_utc):
        self._clock = clock
        self._accounts: dict[UUID, UserAccount] = {}
        self._tokens: dict[tuple[UUID, TokenPurpose], ActionToken] = {}
        self._lock = threading.RLock()

    def _email_owner(self, email: str) -> UserAccount | None:
        email = email.lower()
        for account in self._accounts.values():
            if account.email.lower() == email:
                return account
        return None

    def find_by_email(self, email: str) -> UserAccount | None:
        with self._lock:
            return self._email_owner(email)

    def find_by_id(self, account_id: UUID) -> UserAccount | None:
        with self._lock:
            return self._accounts.get(account_id)

    def create(self, name: str, email: str, password_hash: str) -> UserAccount:
        with self._lock:
            if self._email_owner(email) is not None:
                raise DuplicateEmailError()
            now = self._clock()
            account = UserAccount(
                id=uuid4(),
                name=name,
                email=email.lower(),
                password_hash=password_hash,
                email_verified_at=None,
                created_at=now,
                updated_at=now,
            )
            self._accounts[account.id] = account
            return account

    def update_profile(self, account_id: UUID, name: str, email: str) -> UserAccount:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise UserNotFoundError(str(account_id))
            owner = self._email_owner(email)
            if owner is not None and owner.id != account_id:
                raise DuplicateEmailError()
            email = email.lower()
            changed = email != account.email.lower()
            updated = account.model_copy(update={
                "name": name,
                "email": email,
                "email_verified_at": None if changed else account.email_verified_at,
                "updated_at": self._clock(),
            })
            self._accounts[account_id] = updated
            return updated

    def update_password(self, account_id: UUID, password_hash: str) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise UserNotFoundError(str(account_id))
            self._accounts[account_id] = account.model_copy(
                update={"password_hash": password_hash, "updated_at": self._clock()}
            )

    def mark_email_verified(self, account_id: UUID) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.email_verified_at is not None:
                return False
            now = self._clock()
            self._accounts[account_id] = account.model_copy(
                update={"email_verified_at": now, "updated_at": now}
            )
            return True

    def save_token(self, token: ActionToken) -> None:
        with self._lock:
            self._tokens[(token.account_id, token.purpose)] = token

    def consume_token(
        self,
        account_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        consumed_at: datetime,
    ) -> ActionToken | None:
        with self._lock:
            row = self._tokens.get((account_id, purpose))
            if row is None or row.consumed_at is not None or not tokens_match(row.token_hash, token_hash):
                return None
            self._tokens[(account_id, purpose)] = row.model_copy(update={"consumed_at": consumed_at})
            return row

    def get_token(self, account_id: UUID, purpose: TokenPurpose) -> ActionToken | None:
        """Inspect the stored row. Test helper."""
        with self._lock:
            return self._tokens.get((account_id, purpose))
