"""Recall ingest pipeline: file selection, loading, splitting, embedding sink."""

from recall.ingest.loader import load_document
from recall.ingest.pipeline import BatchOutcome, IngestionPipeline, IngestionReport, ProgressUpdate
from recall.ingest.selector import FileSelector
from recall.ingest.splitter import DocumentSplitter
from recall.ingest.writer import EmbeddingWriter

__all__ = [
    "BatchOutcome",
    "DocumentSplitter",
    "EmbeddingWriter",
    "FileSelector",
    "IngestionPipeline",
    "IngestionReport",
    "ProgressUpdate",
    "load_document",
]
