"""Tests for EmbeddingWriter (the standard ingestion sink)."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from recall.errors import StorageFailure
from recall.ingest.splitter import DocumentSplitter
from recall.ingest.writer import EmbeddingWriter
from recall.store.embedding_store import EmbeddingStore
from recall.store.models import ABSOLUTE_DIRECTORY_PATH, FILE_NAME, PROJECT_ID, SEGMENT_INDEX, Document


def _file_doc(text: str, name: str = "a.py") -> Document:
    return Document(text, {ABSOLUTE_DIRECTORY_PATH: "/work/app", FILE_NAME: name, PROJECT_ID: "app"})


def test_write_embeds_and_stores_every_segment(store: EmbeddingStore, embed) -> None:
    writer = EmbeddingWriter(store, embed, DocumentSplitter(chunk_size=5))  # 20-char windows
    ids = writer.write([_file_doc("alpha " * 10)])

    assert len(ids) > 1
    assert all(i.startswith("/work/app/a.py#") for i in ids)
    assert store.count() == len(ids)
    match = store.search(embed("alpha alpha alpha al"), 1)[0]
    assert match.document.metadata[PROJECT_ID] == "app"
    assert SEGMENT_INDEX in match.document.metadata


def test_reingesting_a_file_replaces_previous_version(store: EmbeddingStore, embed) -> None:
    writer = EmbeddingWriter(store, embed)
    writer.write([_file_doc("old contents"), _file_doc("other file", name="b.py")])
    writer([_file_doc("new contents")])

    texts = sorted(m.document.text for m in store.search(embed("contents"), 10))
    assert texts == ["new contents", "other file"]


def test_documents_without_path_accumulate(store: EmbeddingStore, embed) -> None:
    writer = EmbeddingWriter(store, embed)
    writer.write([Document("note")])
    writer.write([Document("note")])
    assert store.count() == 2


def test_embedding_failure_keeps_previous_version(store: EmbeddingStore, embed) -> None:
    EmbeddingWriter(store, embed).write([_file_doc("old contents")])
    failing = MagicMock(side_effect=RuntimeError("model down"))

    with pytest.raises(RuntimeError):
        EmbeddingWriter(store, failing).write([_file_doc("new contents")])

    assert [m.document.text for m in store.search(embed("contents"), 5)] == ["old contents"]


def test_empty_batch_is_noop(store: EmbeddingStore) -> None:
    embed = MagicMock()
    assert EmbeddingWriter(store, embed).write([]) == []
    embed.assert_not_called()


def test_rejected_insert_keeps_previous_version(store: EmbeddingStore, embed) -> None:
    EmbeddingWriter(store, embed).write([_file_doc("old contents")])

    with pytest.raises(ValueError, match="dimensions"):
        EmbeddingWriter(store, lambda text: [1.0, 2.0]).write([_file_doc("new contents")])

    assert store.count() == 1
    assert [m.document.text for m in store.search(embed("contents"), 5)] == ["old contents"]


def test_storage_error_during_insert_keeps_previous_version(store: EmbeddingStore, embed) -> None:
    EmbeddingWriter(store, embed).write([_file_doc("old contents")])

    with patch(
        "recall.store.embedding_store._upsert",
        side_effect=sqlite3.OperationalError("database disk image is malformed"),
    ):
        with pytest.raises(StorageFailure):
            EmbeddingWriter(store, embed).write([_file_doc("new contents")])

    assert [m.document.text for m in store.search(embed("contents"), 5)] == ["old contents"]
