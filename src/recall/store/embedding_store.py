"""Persistent embedding store: documents + cosine vectors on sqlite-vec.

Layout: ``<index_dir>/index.db`` (documents table + vec0 table keyed by the
document pk) and ``<index_dir>/write.lock`` (single-instance lock).

Concurrency:
  - add / add_all / replace_all / remove_* take the write lock; they run on
    one long-lived writer connection, created lazily, and each commits exactly
    once before returning.
  - search takes the read lock and opens a fresh read-only connection, so it
    sees the last committed state and never a partially written batch.
  - close takes the write lock, so no writer or searcher is active during
    teardown.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from recall.errors import StorageFailure, UnsupportedFilterKind
from recall.store.connection import Database
from recall.store.filters import Filter, IdPrefixFilter
from recall.store.locking import DirectoryLock, ReadWriteLock
from recall.store.models import (
    DEFAULT_PROJECT_ID,
    LAST_INDEXED_DATE,
    PROJECT_ID,
    Document,
    EmbeddingMatch,
)
from recall.store.schema import VEC_TABLE, ensure_vec_table, get_dimensions, initialize, vec_table_exists

logger = logging.getLogger(__name__)

INDEX_DIRNAME = "knowledge_index"
DB_NAME = "index.db"

# sqlite-vec caps k for KNN queries.
_MAX_K = 4096
# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
_ID_CHUNK = 500
_PREFIX_WHERE = "WHERE substr(id, 1, length(?)) = ?"

Vector = Sequence[float]


def project_slug(project_id: str) -> str:
    """Convert a project id into a directory name.

    Examples:
        "my project" -> "my_project"
        "../escape"  -> "_escape"
    """
    slug = re.sub(r"[^A-Za-z0-9._-]", "_", project_id).strip(".")
    return slug or DEFAULT_PROJECT_ID


def generate_id(document: Document | None) -> str:
    """Return ``<dir>/<file>#<uuid>`` for file-backed documents, else a bare UUID."""
    suffix = str(uuid.uuid4())
    prefix = document.source_prefix() if document is not None else None
    return f"{prefix}{suffix}" if prefix else suffix


class EmbeddingStore:
    """Durable CRUD + cosine similarity search over Documents.

    Call ``open()`` (or use the store as a context manager) before any other
    operation. Every failure of the underlying storage surfaces as
    StorageFailure; nothing is dropped silently.

    Args:
        index_dir: Directory holding this store's index files (created if missing).
    """

    def __init__(self, index_dir: Path | str) -> None:
        self.index_dir = Path(index_dir)
        self._db = Database(self.index_dir / DB_NAME)
        self._dir_lock = DirectoryLock(self.index_dir)
        self._rw = ReadWriteLock()
        self._writer: sqlite3.Connection | None = None
        self._opened = False
        self._closed = False

    @classmethod
    def for_project(cls, root: Path | str, project_id: str) -> EmbeddingStore:
        """Return the (unopened) store for *project_id* under the installation *root*."""
        return cls(Path(root) / project_slug(project_id) / INDEX_DIRNAME)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> EmbeddingStore:
        """Take the single-instance lock and initialise the schema.

        Raises:
            IndexLockedError: Another writer holds this index open.
            StorageFailure: The index directory or database cannot be opened.
        """
        if self._closed:
            raise StorageFailure(f"Store at '{self.index_dir}' is closed.")
        if self._opened:
            return self
        try:
            self.index_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Cannot create index directory '{self.index_dir}'", exc) from exc

        self._dir_lock.acquire()
        try:
            conn = self._db.connect()
            try:
                initialize(conn)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            self._dir_lock.release()
            raise StorageFailure(f"Cannot open index at '{self.index_dir}'", exc) from exc

        self._opened = True
        logger.debug("Opened embedding store at %s", self.index_dir)
        return self

    def close(self) -> None:
        """Flush and release the writer connection and the directory lock (idempotent)."""
        with self._rw.write_locked():
            if self._closed:
                return
            self._closed = True
            try:
                if self._writer is not None:
                    self._writer.close()
            except sqlite3.Error as exc:
                raise StorageFailure("Error closing index writer", exc) from exc
            finally:
                self._writer = None
                self._dir_lock.release()
            logger.debug("Closed embedding store at %s", self.index_dir)

    def __enter__(self) -> EmbeddingStore:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, vector: Vector, document: Document | None = None, *, id: str | None = None) -> str:
        """Store one document and commit. Returns its id.

        With *id*, any document already stored under that id is replaced.
        """
        doc_id = id if id is not None else generate_id(document)
        with self._rw.write_locked():
            self._write([(doc_id, vector, document)])
        return doc_id

    def add_all(
        self, vectors: Iterable[Vector], documents: Iterable[Document] | None = None
    ) -> list[str]:
        """Store a batch in one transaction with a single commit.

        Returns:
            Generated ids, in input order.

        Raises:
            ValueError: If *documents* is given and its length differs from *vectors*.
        """
        entries = self._entries(vectors, documents)
        with self._rw.write_locked():
            self._write(entries)
        return [doc_id for doc_id, _, _ in entries]

    def replace_all(
        self,
        prefixes: Iterable[str],
        vectors: Iterable[Vector],
        documents: Iterable[Document] | None = None,
    ) -> list[str]:
        """Delete every document under *prefixes*, then store a batch; one commit.

        Both steps share a transaction: if the insert fails, the deleted
        documents are still there afterwards.

        Returns:
            Generated ids, in input order.

        Raises:
            ValueError: If *documents* is given and its length differs from
                *vectors*, or the vectors disagree on dimensionality. Nothing
                is deleted.
        """
        prefix_list = list(dict.fromkeys(p for p in prefixes if p))
        entries = self._entries(vectors, documents)
        with self._rw.write_locked():
            removed = self._write(entries, prefix_list)
        if removed:
            logger.debug("Replaced %d stale document(s) under %d prefix(es)", removed, len(prefix_list))
        return [doc_id for doc_id, _, _ in entries]

    def remove_all(self) -> int:
        """Delete every document. Returns the number deleted."""
        with self._rw.write_locked():
            return self._delete("", (), "Failed to remove all documents")

    def remove_ids(self, ids: Iterable[str]) -> int:
        """Delete documents whose id is in *ids*. Returns the number deleted."""
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return 0
        deleted = 0
        with self._rw.write_locked():
            for start in range(0, len(id_list), _ID_CHUNK):
                chunk = id_list[start:start + _ID_CHUNK]
                placeholders = ",".join("?" * len(chunk))
                deleted += self._delete(
                    f"WHERE id IN ({placeholders})",
                    tuple(chunk),
                    "Failed to remove documents with specified IDs",
                )
        return deleted

    def remove_where(self, filter: Filter) -> int:
        """Delete documents matching *filter*. Returns the number deleted.

        Raises:
            UnsupportedFilterKind: For any filter other than IdPrefixFilter.
                The store is left untouched.
        """
        if not isinstance(filter, IdPrefixFilter):
            raise UnsupportedFilterKind(filter)
        with self._rw.write_locked():
            return self._delete(
                _PREFIX_WHERE,
                (filter.prefix, filter.prefix),
                "Failed to remove documents matching the filter",
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def search(
        self, query_vector: Vector, max_results: int, *, min_score: float | None = None
    ) -> list[EmbeddingMatch]:
        """Return up to *max_results* matches by descending cosine similarity.

        Args:
            query_vector: Query embedding (store dimensionality).
            max_results: Maximum number of matches.
            min_score: Drop matches whose similarity is below this value.
        """
        self._require_open()
        if max_results <= 0:
            return []
        k = min(max_results, _MAX_K)

        with self._rw.read_locked():
            try:
                conn = self._db.connect_readonly()
            except sqlite3.Error as exc:
                raise StorageFailure("Error opening index for search", exc) from exc
            try:
                if not vec_table_exists(conn):
                    return []
                dims = get_dimensions(conn)
                if dims is not None and dims != len(query_vector):
                    raise ValueError(
                        f"Query vector has {len(query_vector)} dimensions, store has {dims}."
                    )
                rows = conn.execute(
                    f"""
                    WITH knn AS (
                        SELECT rowid, distance FROM {VEC_TABLE}
                        WHERE embedding MATCH ? AND k = ?
                    )
                    SELECT d.id, d.project_id, d.text, d.metadata, d.last_indexed_date, knn.distance
                    FROM knn JOIN documents d ON d.pk = knn.rowid
                    ORDER BY knn.distance
                    """,
                    (_encode_vector(query_vector), k),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StorageFailure("Error searching index", exc) from exc
            finally:
                conn.close()

        matches = [_row_to_match(row) for row in rows]
        if min_score is not None:
            matches = [m for m in matches if m.score >= min_score]
        return matches

    def count(self) -> int:
        """Return the number of stored documents."""
        self._require_open()
        with self._rw.read_locked():
            try:
                conn = self._db.connect_readonly()
                try:
                    return conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
                finally:
                    conn.close()
            except sqlite3.Error as exc:
                raise StorageFailure("Error counting documents", exc) from exc

    # ------------------------------------------------------------------
    # Internals (callers hold the write lock)
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if self._closed:
            raise StorageFailure(f"Store at '{self.index_dir}' is closed.")
        if not self._opened:
            raise StorageFailure(f"Store at '{self.index_dir}' is not open; call open() first.")

    def _writer_conn(self) -> sqlite3.Connection:
        if self._writer is None:
            try:
                self._writer = self._db.connect()
            except sqlite3.Error as exc:
                raise StorageFailure("Cannot create index writer", exc) from exc
        return self._writer

    def _entries(
        self, vectors: Iterable[Vector], documents: Iterable[Document] | None
    ) -> list[tuple[str, Vector, Document | None]]:
        vectors = list(vectors)
        docs: list[Document | None] = list(documents) if documents is not None else [None] * len(vectors)
        if len(docs) != len(vectors):
            raise ValueError(
                f"Got {len(vectors)} vectors but {len(docs)} documents; lengths must match."
            )
        return [(generate_id(doc), vec, doc) for vec, doc in zip(vectors, docs)]

    def _write(
        self,
        entries: list[tuple[str, Vector, Document | None]],
        prefixes: Sequence[str] = (),
    ) -> int:
        """Delete *prefixes* and upsert *entries* in one transaction.

        Returns the number of documents deleted by prefix.
        """
        self._require_open()
        if not entries and not prefixes:
            return 0
        dimensions = {len(vector) for _, vector, _ in entries}
        if len(dimensions) > 1:
            raise ValueError("All vectors in one write must have the same dimensionality.")

        conn = self._writer_conn()
        timestamp = datetime.now().astimezone().isoformat()
        removed = 0
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for prefix in prefixes:
                    removed += _delete_rows(conn, _PREFIX_WHERE, (prefix, prefix))
                if entries:
                    table = ensure_vec_table(conn, dimensions.pop())
                    for doc_id, vector, document in entries:
                        _upsert(conn, table, doc_id, vector, document, timestamp)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as exc:
            raise StorageFailure("Error adding or updating documents", exc) from exc
        return removed

    def _delete(self, where: str, params: tuple[Any, ...], message: str) -> int:
        self._require_open()
        conn = self._writer_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                deleted = _delete_rows(conn, where, params)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as exc:
            raise StorageFailure(message, exc) from exc
        return deleted


# ------------------------------------------------------------------
# Row helpers
# ------------------------------------------------------------------


def _delete_rows(conn: sqlite3.Connection, where: str, params: tuple[Any, ...]) -> int:
    pks = [r[0] for r in conn.execute(f"SELECT pk FROM documents {where}", params)]
    if pks and vec_table_exists(conn):
        for start in range(0, len(pks), _ID_CHUNK):
            chunk = pks[start:start + _ID_CHUNK]
            placeholders = ",".join("?" * len(chunk))
            conn.execute(f"DELETE FROM {VEC_TABLE} WHERE rowid IN ({placeholders})", chunk)
    conn.execute(f"DELETE FROM documents {where}", params)
    return len(pks)


def _upsert(
    conn: sqlite3.Connection,
    table: str,
    doc_id: str,
    vector: Vector,
    document: Document | None,
    timestamp: str,
) -> None:
    existing = conn.execute("SELECT pk FROM documents WHERE id = ?", (doc_id,)).fetchone()
    if existing is not None:
        conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (existing["pk"],))
        conn.execute("DELETE FROM documents WHERE pk = ?", (existing["pk"],))

    metadata: dict[str, Any] = dict(document.metadata) if document is not None else {}
    metadata.pop(LAST_INDEXED_DATE, None)
    project_id = str(metadata.get(PROJECT_ID) or DEFAULT_PROJECT_ID)
    metadata[PROJECT_ID] = project_id

    cur = conn.execute(
        """
        INSERT INTO documents (id, project_id, text, metadata, last_indexed_date)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            doc_id,
            project_id,
            document.text if document is not None else "",
            _serialize_metadata(metadata),
            timestamp,
        ),
    )
    conn.execute(
        f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
        (cur.lastrowid, _encode_vector(vector)),
    )


def _serialize_metadata(metadata: dict[str, Any]) -> str:
    """JSON-encode *metadata*; unserialisable metadata degrades to ``{}``."""
    try:
        return json.dumps(metadata, allow_nan=False)
    except (TypeError, ValueError) as exc:
        logger.error("Metadata serialization failed, storing empty metadata: %s", exc)
        return "{}"


def _encode_vector(vector: Vector) -> str:
    return json.dumps([float(x) for x in vector])


def _row_to_match(row: sqlite3.Row) -> EmbeddingMatch:
    try:
        metadata = json.loads(row["metadata"])
    except json.JSONDecodeError as exc:
        raise StorageFailure(f"Corrupt metadata for document '{row['id']}'", exc) from exc
    if not isinstance(metadata, dict):
        raise StorageFailure(f"Corrupt metadata for document '{row['id']}': not an object")

    metadata.setdefault(PROJECT_ID, row["project_id"])
    metadata[LAST_INDEXED_DATE] = row["last_indexed_date"]
    return EmbeddingMatch(
        score=1.0 - float(row["distance"]),
        id=row["id"],
        document=Document(text=row["text"], metadata=metadata),
    )
