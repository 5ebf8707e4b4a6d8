"""
Pooled PostgreSQL access for the auth tables.

psycopg2 ThreadedConnectionPool, one pool per DSN shared by every client
instance. Each call is its own transaction: the auth store issues single
statements whose atomicity comes from the SQL (unique index, upsert,
conditional UPDATE ... RETURNING), so there is no multi-statement API.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# uuid.UUID in parameters and uuid columns in results, both ways.
psycopg2.extras.register_uuid()


class PostgresClient:
    """
    Thin query runner returning rows as dicts.

    Usage:
        db = PostgresClient(database_url)
        row = db.execute_single("SELECT * FROM users WHERE id = %s", (account_id,))
    """

    _pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        self._dsn = database_url
        with self._pools_lock:
            if database_url not in self._pools:
                self._pools[database_url] = psycopg2.pool.ThreadedConnectionPool(
                    minconn=min_connections,
                    maxconn=max_connections,
                    dsn=database_url,
                    connect_timeout=30,
                )
                logger.info("Connection pool created")

    @property
    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        return self._pools[self._dsn]

    @contextmanager
    def transaction(self):
        """
        Borrow a connection for one transaction.

        Commits when the block exits cleanly, rolls back when it raises. The
        connection always goes back to the pool.
        """
        pool = self._pool
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def execute(self, query: str, params: Sequence | Dict | None = None) -> List[Row]:
        """Run one statement in its own transaction. Rows as dicts; [] when none."""
        with self.transaction() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                if cur.description is None:
                    return []
                return [dict(row) for row in cur.fetchall()]

    def execute_single(self, query: str, params: Sequence | Dict | None = None) -> Row | None:
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query: str, params: Sequence | Dict | None = None) -> List[Row]:
        """INSERT/UPDATE/DELETE ... RETURNING. Same as execute; the name documents intent."""
        return self.execute(query, params)

    def close(self) -> None:
        """Close this DSN's pool; later instances open a fresh one."""
        with self._pools_lock:
            pool = self._pools.pop(self._dsn, None)
            if pool is not None:
                pool.closeall()
