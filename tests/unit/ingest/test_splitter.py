"""Tests for DocumentSplitter."""

from __future__ import annotations

import pytest

from recall.ingest.splitter import DocumentSplitter
from recall.store.models import FILE_NAME, SEGMENT_INDEX, Document


def test_short_document_is_one_segment() -> None:
    segments = DocumentSplitter().split(Document("short text", {FILE_NAME: "a.txt"}))
    assert len(segments) == 1
    assert segments[0].text == "short text"
    assert segments[0].metadata == {FILE_NAME: "a.txt", SEGMENT_INDEX: 0}


def test_long_document_split_with_overlap() -> None:
    splitter = DocumentSplitter(chunk_size=10, overlap=0.5)  # 40-char window, 20-char step
    text = "".join(chr(ord("a") + i % 26) for i in range(100))

    segments = splitter.split(Document(text))

    assert [s.metadata[SEGMENT_INDEX] for s in segments] == list(range(len(segments)))
    assert all(len(s.text) <= 40 for s in segments)
    assert segments[0].text[20:] == segments[1].text[:20]
    assert segments[-1].text.endswith(text[-5:])


def test_blank_document_yields_nothing() -> None:
    assert DocumentSplitter().split(Document("   \n\t")) == []


def test_parent_metadata_not_mutated() -> None:
    doc = Document("x" * 5000, {FILE_NAME: "a.txt"})
    DocumentSplitter(chunk_size=100).split(doc)
    assert doc.metadata == {FILE_NAME: "a.txt"}


def test_split_all_flattens_in_order() -> None:
    docs = [Document("one"), Document("two")]
    assert [s.text for s in DocumentSplitter().split_all(docs)] == ["one", "two"]


def test_count_tokens_approximation() -> None:
    assert DocumentSplitter.count_tokens("") == 1
    assert DocumentSplitter.count_tokens("x" * 40) == 10


@pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"overlap": 1.0}, {"overlap": -0.1}])
def test_invalid_arguments_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        DocumentSplitter(**kwargs)
