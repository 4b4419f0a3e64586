"""
Postgres database connection utility.
Holds graph metadata (one row per graph) and user accounts.
"""
import atexit
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor

from config import POSTGRES_CONNECTION_STRING

logger = logging.getLogger("graph_backend")

# ---------------------------------------------------------------------------
# Connection pool, shared across all threads / requests
# ---------------------------------------------------------------------------
_pool: Optional[psycopg2.pool.ThreadedConnectionPool] = None
_pool_lock = threading.Lock()
_POOL_MIN = 2
_POOL_MAX = 20


def _get_pool() -> psycopg2.pool.ThreadedConnectionPool:
    """Process-wide pool, created on first use."""
    global _pool
    if _pool is not None:
        return _pool
    with _pool_lock:
        if _pool is None:
            _pool = psycopg2.pool.ThreadedConnectionPool(
                _POOL_MIN,
                _POOL_MAX,
                POSTGRES_CONNECTION_STRING,
            )
            # Close the pool cleanly when the process exits
            atexit.register(_pool.closeall)
            logger.info(f"[db_postgres] Connection pool created (min={_POOL_MIN}, max={_POOL_MAX})")
    return _pool


def get_db_connection():
    """
    Borrow a connection from the pool.

    You MUST hand it back with return_db_connection(), or use the
    execute_query / db_transaction helpers which do it for you.
    """
    pool = _get_pool()
    try:
        return pool.getconn()
    except psycopg2.pool.PoolError as e:
        logger.error(f"[db_postgres] Pool exhausted, all {_POOL_MAX} connections in use: {e}")
        raise


def return_db_connection(conn, error: bool = False) -> None:
    """Return a borrowed connection to the pool, discarding it after an error."""
    pool = _get_pool()
    try:
        pool.putconn(conn, close=error)
    except psycopg2.pool.PoolError as e:
        logger.warning(f"[db_postgres] Could not return connection to pool: {e}")


@contextmanager
def db_transaction() -> Iterator:
    """
    Run a block inside one Postgres transaction.

    Yields a dict-row cursor. Commits when the block exits normally and rolls
    back when it raises; the connection is always returned to the pool.
    """
    conn = get_db_connection()
    error = False
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur
        conn.commit()
    except BaseException:
        error = True
        try:
            conn.rollback()
        except psycopg2.Error as rollback_error:
            logger.error(f"[db_postgres] Rollback failed: {rollback_error}")
        raise
    finally:
        return_db_connection(conn, error=error)


def execute_query(
    query: str,
    params: Optional[tuple] = None,
    fetch: bool = True,
    commit: bool = False,
):
    """
    Run one statement on a pooled connection.

    Returns dict rows when fetch is set, otherwise the affected row count.
    """
    conn = get_db_connection()
    error = False
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            result = cur.fetchall() if fetch else cur.rowcount
            if commit or not fetch:
                conn.commit()
            return result
    except Exception as e:
        error = True
        logger.error(f"[db_postgres] Query failed: {e}")
        try:
            conn.rollback()
        except psycopg2.Error as rollback_error:
            logger.error(f"[db_postgres] Rollback failed: {rollback_error}")
        raise
    finally:
        return_db_connection(conn, error=error)


# ---------------------------------------------------------------------------
# Schema initialisation, run once at startup via main.py lifespan
# ---------------------------------------------------------------------------

def init_postgres_db():
    """Create the graphs and users tables. Idempotent."""
    statements = [
        """
        CREATE TABLE IF NOT EXISTS graphs (
            id TEXT PRIMARY KEY,
            title VARCHAR(100) NOT NULL,
            description TEXT,
            is_visible BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
        "CREATE INDEX IF NOT EXISTS idx_graphs_created_at ON graphs(created_at DESC);",
        """
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            firstname VARCHAR(100) NOT NULL,
            lastname VARCHAR(100) NOT NULL,
            email VARCHAR(100) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            blocked BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ]

    conn = get_db_connection()
    error = False
    try:
        with conn.cursor() as cur:
            for stmt in statements:
                cur.execute(stmt)
        conn.commit()
        logger.info("[db_postgres] Schema initialised")
    except Exception:
        error = True
        conn.rollback()
        raise
    finally:
        return_db_connection(conn, error=error)
