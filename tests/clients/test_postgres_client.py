"""Tests for PostgresClient with the psycopg2 pool mocked out."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from clients.postgres_client import PostgresClient

DSN = "postgresql://test@localhost/test"


@pytest.fixture
def pool():
    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
        pool = MagicMock()
        pool_cls.return_value = pool
        PostgresClient._pools.pop(DSN, None)
        yield pool
        PostgresClient._pools.pop(DSN, None)


@pytest.fixture
def cursor(pool):
    conn = pool.getconn.return_value
    cursor = conn.cursor.return_value.__enter__.return_value
    return cursor


def test_pool_is_shared_between_instances(pool):
    PostgresClient(DSN)
    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
        PostgresClient(DSN)
    pool_cls.assert_not_called()


def test_execute_returns_dict_rows_and_commits(pool, cursor):
    account_id = uuid4()
    cursor.description = [("id",)]
    cursor.fetchall.return_value = [{"id": account_id}]

    rows = PostgresClient(DSN).execute("SELECT id FROM users WHERE id = %s", (account_id,))

    assert rows == [{"id": account_id}]
    cursor.execute.assert_called_once_with("SELECT id FROM users WHERE id = %s", (account_id,))
    pool.getconn.return_value.commit.assert_called_once()
    pool.putconn.assert_called_once_with(pool.getconn.return_value)


def test_execute_without_result_set_returns_empty(pool, cursor):
    cursor.description = None

    assert PostgresClient(DSN).execute("UPDATE users SET name = %s", ("x",)) == []


def test_execute_single_returns_first_or_none(pool, cursor):
    cursor.description = [("id",)]
    cursor.fetchall.return_value = []

    assert PostgresClient(DSN).execute_single("SELECT 1") is None


def test_error_rolls_back_and_returns_connection(pool, cursor):
    cursor.execute.side_effect = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        PostgresClient(DSN).execute("SELECT 1")

    conn = pool.getconn.return_value
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    pool.putconn.assert_called_once_with(conn)


def test_close_drops_pool(pool):
    client = PostgresClient(DSN)

    client.close()

    pool.closeall.assert_called_once()
    assert DSN not in PostgresClient._pools
