"""Exception taxonomy for the recall knowledge store.

Storage-layer failures always reach the direct caller. Ingestion wraps
per-batch failures in IngestionBatchFailure and keeps going. Live-context
failures are never raised at all (see recall.compose.live).
"""

from __future__ import annotations


class RecallError(Exception):
    """Base class for every error raised by recall."""


class StorageFailure(RecallError):
    """I/O or index-corruption error during add/search/delete/close.

    The underlying exception is chained (``raise ... from exc``) and also
    available as ``cause``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class IndexLockedError(StorageFailure):
    """The index directory is already held open by another writer."""


class UnsupportedFilterKind(RecallError, NotImplementedError):
    """A deletion filter the store does not know how to translate."""

    def __init__(self, filter_obj: object) -> None:
        super().__init__(f"Filter type not supported: {type(filter_obj).__name__}")
        self.filter = filter_obj


class IngestionBatchFailure(RecallError):
    """A single ingestion batch failed to embed or persist."""

    def __init__(self, batch_index: int, cause: BaseException) -> None:
        super().__init__(f"Batch {batch_index} failed: {cause}")
        self.batch_index = batch_index
        self.cause = cause
