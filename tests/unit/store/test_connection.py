"""Tests for the index Database connection layer and schema helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from recall.store.connection import Database
from recall.store.schema import ensure_vec_table, get_dimensions, initialize, vec_table_exists


def test_connect_creates_file(tmp_path: Path) -> None:
    db_path = tmp_path / "index.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path: Path) -> None:
    conn = Database(tmp_path / "index.db").connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_wal_journal_mode_and_full_sync(tmp_path: Path) -> None:
    conn = Database(tmp_path / "index.db").connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    sync = conn.execute("PRAGMA synchronous").fetchone()[0]
    conn.close()
    assert mode == "wal"
    assert sync == 2


def test_row_factory_set(tmp_path: Path) -> None:
    conn = Database(tmp_path / "index.db").connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_readonly_connection_rejects_writes(tmp_path: Path) -> None:
    db = Database(str(tmp_path / "index.db"))
    assert isinstance(db.db_path, Path)
    writer = db.connect()
    initialize(writer)
    writer.close()

    reader = db.connect_readonly()
    try:
        assert reader.execute("SELECT COUNT(*) FROM documents").fetchone()[0] == 0
        with pytest.raises(sqlite3.OperationalError):
            reader.execute("INSERT INTO store_meta (key, value) VALUES ('k', 'v')")
    finally:
        reader.close()


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def test_vec_table_created_lazily_with_dimensions(tmp_path: Path) -> None:
    conn = Database(tmp_path / "index.db").connect()
    initialize(conn)
    initialize(conn)

    assert not vec_table_exists(conn)
    assert get_dimensions(conn) is None

    ensure_vec_table(conn, 3)
    ensure_vec_table(conn, 3)

    assert vec_table_exists(conn)
    assert get_dimensions(conn) == 3
    conn.close()


def test_vec_table_rejects_dimension_change(tmp_path: Path) -> None:
    conn = Database(tmp_path / "index.db").connect()
    initialize(conn)
    ensure_vec_table(conn, 3)

    with pytest.raises(ValueError, match="3-dimensional"):
        ensure_vec_table(conn, 4)
    with pytest.raises(ValueError, match=">= 1"):
        ensure_vec_table(conn, 0)
    conn.close()
