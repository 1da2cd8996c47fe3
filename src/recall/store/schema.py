"""Index schema DDL and the sqlite-vec table holding document vectors.

The vec table is created on the first write, once the embedding
dimensionality is known; the dimension is recorded in ``store_meta`` and
every later write must match it.
"""

from __future__ import annotations

import sqlite3

VEC_TABLE = "vec_documents"

_CREATE_STORE_META = """
CREATE TABLE IF NOT EXISTS store_meta (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
)
"""

# pk doubles as the vec table rowid.
_CREATE_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS documents (
    pk                  INTEGER PRIMARY KEY,
    id                  TEXT NOT NULL UNIQUE,
    project_id          TEXT NOT NULL DEFAULT 'default',
    text                TEXT NOT NULL DEFAULT '',
    metadata            TEXT NOT NULL DEFAULT '{}',
    last_indexed_date   TEXT NOT NULL
)
"""

_CREATE_PROJECT_INDEX = """
CREATE INDEX IF NOT EXISTS documents_project_id ON documents (project_id)
"""


def initialize(conn: sqlite3.Connection) -> None:
    """Create the document tables if missing (idempotent)."""
    conn.execute(_CREATE_STORE_META)
    conn.execute(_CREATE_DOCUMENTS)
    conn.execute(_CREATE_PROJECT_INDEX)
    conn.commit()


def get_dimensions(conn: sqlite3.Connection) -> int | None:
    """Return the stored vector dimensionality, or None before the first write."""
    row = conn.execute("SELECT value FROM store_meta WHERE key = 'dimensions'").fetchone()
    return int(row["value"]) if row else None


def vec_table_exists(conn: sqlite3.Connection) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (VEC_TABLE,)
    ).fetchone()
    return row is not None


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create the cosine vec0 table for *dimensions* if it doesn't exist yet.

    Does not commit; the caller's write transaction covers it.

    Raises:
        ValueError: If *dimensions* < 1 or differs from the stored dimensionality.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    stored = get_dimensions(conn)
    if stored is not None and stored != dimensions:
        raise ValueError(
            f"Vector has {dimensions} dimensions but the store holds {stored}-dimensional vectors."
        )

    if not vec_table_exists(conn):
        conn.execute(
            f"CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
    if stored is None:
        conn.execute(
            "INSERT INTO store_meta (key, value) VALUES ('dimensions', ?)", (str(dimensions),)
        )
    return VEC_TABLE
