"""Embedding writer: the standard ingestion sink.

For each batch:
1. Split documents into segments (``DocumentSplitter``).
2. Embed every segment via the configured embedding function.
3. Replace previously stored versions of each source file (ids under
   ``"<dir>/<file>#"``) with the new segments via
   ``EmbeddingStore.replace_all()``: one transaction, one commit.

A batch that fails to embed or to insert leaves the previously indexed
versions in place.
"""

from __future__ import annotations

import logging

from recall.embedding import EmbedFn
from recall.ingest.splitter import DocumentSplitter
from recall.store.embedding_store import EmbeddingStore
from recall.store.models import Document

logger = logging.getLogger(__name__)


class EmbeddingWriter:
    """Callable sink ``writer(batch) -> None`` for IngestionPipeline.

    Args:
        store: Open EmbeddingStore.
        embed: ``text -> vector`` function.
        splitter: Optional splitter; without one each document is one segment.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        embed: EmbedFn,
        splitter: DocumentSplitter | None = None,
    ) -> None:
        self._store = store
        self._embed = embed
        self._splitter = splitter

    def __call__(self, batch: list[Document]) -> None:
        self.write(batch)

    def write(self, batch: list[Document]) -> list[str]:
        """Embed and persist *batch*. Returns the ids of the stored segments."""
        segments = self._splitter.split_all(batch) if self._splitter else list(batch)
        if not segments:
            return []

        vectors = [self._embed(segment.text) for segment in segments]

        prefixes = dict.fromkeys(p for p in (doc.source_prefix() for doc in batch) if p)
        ids = self._store.replace_all(prefixes, vectors, segments)
        logger.debug("Stored %d segment(s) from %d document(s)", len(ids), len(batch))
        return ids
