"""Postgres-backed CredentialStore and TokenStore.

Tables: users, action_tokens (see schema.sql). Every method is one
statement, so uniqueness, upsert and conditional consume are atomic
without explicit transactions.
"""

from datetime import datetime
from uuid import UUID

from psycopg2.errors import UniqueViolation

from auth.exceptions import DuplicateEmailError, UserNotFoundError
from auth.types import ActionToken, TokenPurpose, UserAccount
from clients.postgres_client import PostgresClient
from utils.timezone import Clock, now_utc

_USER_COLUMNS = "id, name, email, password_hash, email_verified_at, created_at, updated_at"
_TOKEN_COLUMNS = "account_id, purpose, token_hash, issued_at, expires_at, consumed_at"


def _uuid(value) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def _row_to_account(row: dict) -> UserAccount:
    return UserAccount(
        id=_uuid(row["id"]),
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        email_verified_at=row["email_verified_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_token(row: dict) -> ActionToken:
    return ActionToken(
        account_id=_uuid(row["account_id"]),
        purpose=TokenPurpose(row["purpose"]),
        token_hash=row["token_hash"],
        issued_at=row["issued_at"],
        expires_at=row["expires_at"],
        consumed_at=row["consumed_at"],
    )


class AuthDatabase:
    """Database operations for accounts and action tokens."""

    def __init__(self, postgres: PostgresClient, clock: Clock = now_utc):
        self._db = postgres
        self._clock = clock

    def find_by_email(self, email: str) -> UserAccount | None:
        """Find account by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return _row_to_account(row) if row else None

    def find_by_id(self, account_id: UUID) -> UserAccount | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (account_id,),
        )
        return _row_to_account(row) if row else None

    def create(self, name: str, email: str, password_hash: str) -> UserAccount:
        """Insert an unverified account.

        The unique index on email decides concurrent registrations.
        """
        now = self._clock()
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (name, email, password_hash, created_at, updated_at)
                    VALUES (%s, lower(%s), %s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (name, email, password_hash, now, now),
            )
        except UniqueViolation:
            raise DuplicateEmailError()
        return _row_to_account(rows[0])

    def update_profile(self, account_id: UUID, name: str, email: str) -> UserAccount:
        """Update name/email; verification is cleared only if the email changed."""
        try:
            rows = self._db.execute_returning(
                f"""UPDATE users
                    SET name = %s,
                        email = lower(%s),
                        email_verified_at = CASE WHEN email = lower(%s)
                                                 THEN email_verified_at ELSE NULL END,
                        updated_at = %s
                    WHERE id = %s
                    RETURNING {_USER_COLUMNS}""",
                (name, email, email, self._clock(), account_id),
            )
        except UniqueViolation:
            raise DuplicateEmailError()
        if not rows:
            raise UserNotFoundError(str(account_id))
        return _row_to_account(rows[0])

    def update_password(self, account_id: UUID, password_hash: str) -> None:
        rows = self._db.execute_returning(
            "UPDATE users SET password_hash = %s, updated_at = %s WHERE id = %s RETURNING id",
            (password_hash, self._clock(), account_id),
        )
        if not rows:
            raise UserNotFoundError(str(account_id))

    def mark_email_verified(self, account_id: UUID) -> bool:
        now = self._clock()
        rows = self._db.execute_returning(
            """UPDATE users SET email_verified_at = %s, updated_at = %s
               WHERE id = %s AND email_verified_at IS NULL
               RETURNING id""",
            (now, now, account_id),
        )
        return len(rows) > 0

    def save_token(self, token: ActionToken) -> None:
        """Upsert on (account_id, purpose); replacing the row kills any prior token."""
        self._db.execute_returning(
            """INSERT INTO action_tokens
                   (account_id, purpose, token_hash, issued_at, expires_at, consumed_at)
               VALUES (%s, %s, %s, %s, %s, NULL)
               ON CONFLICT (account_id, purpose) DO UPDATE
               SET token_hash = EXCLUDED.token_hash,
                   issued_at = EXCLUDED.issued_at,
                   expires_at = EXCLUDED.expires_at,
                   consumed_at = NULL
               RETURNING account_id""",
            (
                token.account_id,
                token.purpose.value,
                token.token_hash,
                token.issued_at,
                token.expires_at,
            ),
        )

    def consume_token(
        self,
        account_id: UUID,
        purpose: TokenPurpose,
        token_hash: str,
        consumed_at: datetime,
    ) -> ActionToken | None:
        rows = self._db.execute_returning(
            f"""UPDATE action_tokens SET consumed_at = %s
                WHERE account_id = %s AND purpose = %s
                  AND token_hash = %s AND consumed_at IS NULL
                RETURNING {_TOKEN_COLUMNS}""",
            (consumed_at, account_id, purpose.value, token_hash),
        )
        if not rows:
            return None
        # RETURNING reports the new consumed_at; callers want the pre-consume row.
        return _row_to_token({**rows[0], "consumed_at": None})
