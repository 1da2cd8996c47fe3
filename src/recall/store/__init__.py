"""Recall embedding store: documents, vectors, locks and deletion filters."""

from recall.store.embedding_store import EmbeddingStore, generate_id, project_slug
from recall.store.filters import Filter, IdPrefixFilter, MetadataEqualsFilter
from recall.store.models import Document, EmbeddingMatch

__all__ = [
    "EmbeddingStore",
    "generate_id",
    "project_slug",
    "Filter",
    "IdPrefixFilter",
    "MetadataEqualsFilter",
    "Document",
    "EmbeddingMatch",
]
