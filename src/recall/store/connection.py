"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec


class Database:
    """Per-project SQLite index file with sqlite-vec vector search support."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() or connect_readonly() to open it.

        Args:
            db_path: Path to the SQLite database file (created if missing).
        """
        self.db_path = Path(db_path)

    def connect(self) -> sqlite3.Connection:
        """Open a read-write connection, load sqlite-vec, and return it.

        The writer connection is shared across threads; callers serialise
        access through the store's write lock. Autocommit mode: writers
        issue BEGIN IMMEDIATE / COMMIT themselves.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        _prepare(conn)
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = FULL")
        return conn

    def connect_readonly(self) -> sqlite3.Connection:
        """Open a fresh read-only view of the last committed state.

        ``query_only`` instead of ``mode=ro``: a WAL reader must be able to
        create the ``-shm`` file when no other connection is open.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        _prepare(conn)
        conn.execute("PRAGMA query_only = ON")
        return conn


def _prepare(conn: sqlite3.Connection) -> None:
    conn.row_factory = sqlite3.Row
    conn.enable_load_extension(True)
    sqlite_vec.load(conn)
    conn.enable_load_extension(False)
