"""Storage contracts consumed by the auth core.

AuthDatabase (Postgres) and InMemoryAuthStore both satisfy these.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from auth.types import ActionToken, TokenPurpose, UserAccount


class CredentialStore(Protocol):
    """Account records. Owns the email uniqueness invariant."""

    def find_by_email(self, email: str) -> UserAccount | None:
        """Case-insensitive lookup."""

    def find_by_id(self, account_id: UUID) -> UserAccount | None: ...

    def create(self, name: str, email: str, password_hash: str) -> UserAccount:
        """Insert an unverified account. Raises DuplicateEmailError."""

    def update_profile(self, account_id: UUID, name: str, email: str) -> UserAccount:
        """
        Replace name and email.

        Clears email_verified_at when the email changes.
        Raises DuplicateEmailError if another account owns the email,
        UserNotFoundError if the account is gone.
        """

    def update_password(self, account_id: UUID, password_hash: str) -> None: ...

    def mark_email_verified(self, account_id: UUID) -> bool:
        """Set email_verified_at if unset. True if this call set it."""


class TokenStore(Protocol):
    """Action token rows, at most one per (account_id, purpose)."""

    def save_token(self, token: ActionToken) -> None:
        """Insert or replace the row for (account_id, purpose)."""

    def consume_token(
        self,
        account_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        consumed_at: datetime,
    ) -> ActionToken | None:
        """
        Atomically mark the matching unconsumed row consumed.

        Returns the row as it was before consumption, or None if no
        unconsumed row matched.
        """
