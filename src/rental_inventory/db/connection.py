"""Database connection helpers."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rental_inventory.config import DB_BUSY_TIMEOUT_SECONDS


def get_connection(
    database_path: Path | str,
    *,
    timeout: float = DB_BUSY_TIMEOUT_SECONDS,
) -> sqlite3.Connection:
    """Create a SQLite connection with foreign keys enabled."""
    connection = sqlite3.connect(database_path, timeout=timeout)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON;")
    return connection


@contextmanager
def transaction(connection: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Provide a transaction scope for SQLite operations.

    The outermost scope takes the database write lock immediately so that
    concurrent writers are serialized before they read stock balances.
    Nested scopes join the enclosing transaction; only the outermost one
    commits or rolls back.
    """
    if connection.in_transaction:
        yield connection
        return
    connection.execute("BEGIN IMMEDIATE")
    try:
        yield connection
    except Exception:
        connection.rollback()
        raise
    else:
        connection.commit()
