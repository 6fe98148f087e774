"""
PostgreSQL access for tolkbook.

Thin helpers over psycopg that hand back rows as dicts. A query is either
a plain SQL string or a psycopg.sql composition (repositories build their
identifiers that way).

Two mechanisms share a connection across calls:
    - set_connection_override(): tests pin one connection for the whole
      test and roll it back afterwards.
    - transaction(): a unit of work; every helper called inside the block
      runs on the same connection and commits or rolls back with it.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from tolkbook.config import config

Query = str | sql.Composable

# =============================================================================
# Connection Override (for testing)
# =============================================================================

_connection_override: psycopg.Connection | None = None


def set_connection_override(conn: psycopg.Connection) -> None:
    """
    Route every helper through `conn` until clear_connection_override().

    The helpers neither commit nor close an overriding connection; its
    owner (the db_connection fixture) rolls it back.
    """
    global _connection_override
    _connection_override = conn


def clear_connection_override() -> None:
    global _connection_override
    _connection_override = None


# Connection held by the innermost open transaction() in this context
_transaction_connection: ContextVar[psycopg.Connection | None] = ContextVar(
    "tolkbook_transaction_connection", default=None
)


# =============================================================================
# Connection Management
# =============================================================================


@contextmanager
def get_connection() -> Iterator[psycopg.Connection]:
    """
    Yield the connection the current call should use.

    Precedence: the test override, then the connection of an enclosing
    transaction(), then a fresh connection. Only a fresh connection is
    managed here: committed when the block exits cleanly, rolled back when
    it raises, closed either way.
    """
    if _connection_override is not None:
        yield _connection_override
        return

    pinned = _transaction_connection.get()
    if pinned is not None:
        yield pinned
        return

    conn = psycopg.connect(config.database_url)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def get_cursor() -> Iterator[psycopg.Cursor]:
    """Yield a dict-row cursor on get_connection()."""
    with get_connection() as conn:
        with conn.cursor(row_factory=dict_row) as cur:
            yield cur


@contextmanager
def transaction() -> Iterator[psycopg.Connection]:
    """
    Group several writes into one unit of work.

    Usage:
        with db.transaction():
            distances.update_where({"distance": "5"}, job_id=7)
            jobs.update_where({"flagged": "yes"}, id=7)

    Both updates commit together, or neither does if the block raises.
    A transaction() opened inside another one becomes a savepoint: its
    failure undoes only its own writes.
    """
    pinned = _transaction_connection.get()
    if pinned is not None:
        with pinned.transaction():
            yield pinned
        return

    with get_connection() as conn:
        token = _transaction_connection.set(conn)
        try:
            with conn.transaction():
                yield conn
        finally:
            _transaction_connection.reset(token)


# =============================================================================
# Query Helpers
# =============================================================================


def execute(query: Query, params: tuple = None) -> int:
    """Run a statement that returns no rows. Returns the affected row count."""
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.rowcount


def fetch_one(query: Query, params: tuple = None) -> dict[str, Any] | None:
    """
    Run a query and return its first row.

    Args:
        query: SQL with %s placeholders
        params: Values for the placeholders

    Returns:
        The row as a column -> value dict, or None when nothing matched
    """
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.fetchone()


def fetch_all(query: Query, params: tuple = None) -> list[dict[str, Any]]:
    """Run a query and return every row as a dict (an empty list when none match)."""
    with get_cursor() as cur:
        cur.execute(query, params)
        return cur.fetchall()


def fetch_value(query: Query, params: tuple = None) -> Any:
    """Run a query and return the first column of its first row, or None."""
    row = fetch_one(query, params)
    if row is None:
        return None
    return next(iter(row.values()))
