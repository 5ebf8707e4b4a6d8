"""Tests for AuthDatabase SQL against a mocked PostgresClient."""

from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest
from psycopg2.errors import UniqueViolation

from auth.database import AuthDatabase
from auth.exceptions import DuplicateEmailError, UserNotFoundError
from auth.types import ActionToken, TokenPurpose
from clients.postgres_client import PostgresClient


@pytest.fixture
def postgres():
    return Mock(spec=PostgresClient)


@pytest.fixture
def database(postgres, clock):
    return AuthDatabase(postgres, clock=clock)


def user_row(clock, **overrides):
    row = {
        "id": str(uuid4()),
        "name": "Jane",
        "email": "jane@example.com",
        "password_hash": "hash",
        "email_verified_at": None,
        "created_at": clock(),
        "updated_at": clock(),
    }
    row.update(overrides)
    return row


class TestAccounts:
    def test_find_by_email_lowercases_in_sql(self, database, postgres, clock):
        postgres.execute_single.return_value = user_row(clock)

        account = database.find_by_email("Jane@Example.com")

        assert account.email == "jane@example.com"
        query, params = postgres.execute_single.call_args[0]
        assert "lower(%s)" in query
        assert params == ("Jane@Example.com",)

    def test_find_missing_returns_none(self, database, postgres):
        postgres.execute_single.return_value = None
        assert database.find_by_id(uuid4()) is None

    def test_create_maps_unique_violation(self, database, postgres):
        postgres.execute_returning.side_effect = UniqueViolation()

        with pytest.raises(DuplicateEmailError):
            database.create(name="Jane", email="jane@example.com", password_hash="hash")

    def test_create_returns_account(self, database, postgres, clock):
        row = user_row(clock)
        postgres.execute_returning.return_value = [row]

        account = database.create(name="Jane", email="jane@example.com", password_hash="hash")

        assert str(account.id) == row["id"]
        assert account.email_verified_at is None

    def test_update_profile_clears_verification_in_sql(self, database, postgres, clock):
        postgres.execute_returning.return_value = [user_row(clock)]

        database.update_profile(uuid4(), name="Jane", email="jane@example.com")

        query = postgres.execute_returning.call_args[0][0]
        assert "CASE WHEN email = lower(%s)" in query

    def test_update_profile_unknown_account(self, database, postgres):
        postgres.execute_returning.return_value = []
        with pytest.raises(UserNotFoundError):
            database.update_profile(uuid4(), name="Jane", email="jane@example.com")

    def test_update_password_unknown_account(self, database, postgres):
        postgres.execute_returning.return_value = []
        with pytest.raises(UserNotFoundError):
            database.update_password(uuid4(), "hash")

    def test_mark_verified_reports_change(self, database, postgres):
        postgres.execute_returning.return_value = [{"id": "x"}]
        assert database.mark_email_verified(uuid4()) is True

        postgres.execute_returning.return_value = []
        assert database.mark_email_verified(uuid4()) is False


class TestTokens:
    def test_save_token_upserts(self, database, postgres, clock):
        token = ActionToken(
            account_id=uuid4(),
            purpose=TokenPurpose.PASSWORD_RESET,
            token_hash="digest",
            issued_at=clock(),
            expires_at=clock() + timedelta(hours=1),
        )

        database.save_token(token)

        query, params = postgres.execute_returning.call_args[0]
        assert "ON CONFLICT (account_id, purpose) DO UPDATE" in query
        assert params[1] == "password_reset"

    def test_consume_returns_unconsumed_view(self, database, postgres, clock):
        account_id = uuid4()
        postgres.execute_returning.return_value = [{
            "account_id": str(account_id),
            "purpose": "password_reset",
            "token_hash": "digest",
            "issued_at": clock(),
            "expires_at": clock() + timedelta(hours=1),
            "consumed_at": clock(),
        }]

        row = database.consume_token(account_id, TokenPurpose.PASSWORD_RESET, "digest", clock())

        assert row.account_id == account_id
        assert row.consumed_at is None
        assert "consumed_at IS NULL" in postgres.execute_returning.call_args[0][0]

    def test_consume_no_match(self, database, postgres, clock):
        postgres.execute_returning.return_value = []
        assert database.consume_token(uuid4(), TokenPurpose.PASSWORD_RESET, "digest", clock()) is None
