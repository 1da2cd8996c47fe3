"""Ingestion pipeline: directory tree -> batches of Documents -> sink.

Two passes over the tree: a count pass (progress denominator) and the ingest
pass. Files are grouped into fixed-size batches; each batch is loaded,
cleaned, stamped with the project id and handed to the sink. A failing batch
is recorded and logged, and the run moves on to the next one.
At most ``max_files`` files are taken per run, in walk order; a warning is
logged when the tree holds more.

Cancellation is polled before each batch only. Batches already handed to
the sink stay committed.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from itertools import islice
from pathlib import Path

from recall.errors import IngestionBatchFailure
from recall.ingest.loader import load_document
from recall.ingest.selector import FileSelector
from recall.store.models import PROJECT_ID, Document

logger = logging.getLogger(__name__)

BATCH_SIZE = 100
PROGRESS_EVERY = 50
MAX_FILES = 5000

Sink = Callable[[list[Document]], None]
Loader = Callable[[Path], Document]


def format_duration(seconds: float) -> str:
    """Format a duration as ``MM:SS`` (minutes are not capped at 59).

    Examples:
        75.9   -> "01:15"
        3600.0 -> "60:00"
    """
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


@dataclass
class ProgressUpdate:
    """Progress after one batch.

    ``verbose`` is set every PROGRESS_EVERY processed files and on the
    final batch; only verbose updates carry an ETA in ``text``.
    """

    processed: int
    total: int
    batch_size: int
    elapsed: float
    verbose: bool

    @property
    def fraction(self) -> float:
        return min(1.0, self.processed / self.total) if self.total else 1.0

    @property
    def eta_seconds(self) -> float:
        if self.processed <= 0:
            return 0.0
        return max(0.0, self.elapsed * (self.total - self.processed) / self.processed)

    @property
    def eta(self) -> str:
        return format_duration(self.eta_seconds)

    @property
    def text(self) -> str:
        base = f"Indexing: {self.processed}/{self.total} files ({self.fraction * 100:.1f}%)"
        if not self.verbose:
            return base
        return (
            f"{base} - Last batch: {self.batch_size} files"
            f" - Estimated remaining time: {self.eta}"
        )


@dataclass
class BatchOutcome:
    batch_index: int
    files: int
    documents: int
    error: IngestionBatchFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IngestionReport:
    """Aggregate of one run: the per-batch outcomes plus totals."""

    project_id: str
    total_files: int
    processed_files: int = 0
    load_failures: int = 0
    canceled: bool = False
    file_limit: int | None = None
    elapsed: float = 0.0
    outcomes: list[BatchOutcome] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        """True unless canceled; failed batches do not prevent completion."""
        return not self.canceled

    @property
    def failed_batches(self) -> list[BatchOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def skipped_files(self) -> int:
        return sum(o.files for o in self.failed_batches) + self.load_failures

    @property
    def stored_documents(self) -> int:
        return sum(o.documents for o in self.outcomes if o.ok)

    def summary(self) -> str:
        if self.total_files == 0:
            return f"{self.project_id}: no files to index."
        state = "canceled" if self.canceled else "indexed"
        text = (
            f"{self.project_id}: {state} {self.processed_files}/{self.total_files} files"
            f" in {format_duration(self.elapsed)}"
        )
        if self.skipped_files:
            text += (
                f"; {self.skipped_files} file(s) skipped"
                f" ({len(self.failed_batches)} failed batch(es))"
            )
        if self.file_limit is not None:
            text += f"; file limit ({self.file_limit}) reached"
        return text


class IngestionPipeline:
    """Batching, progress and cancellation around a caller-supplied sink.

    Args:
        batch_size: Files per batch.
        progress_every: Verbose progress every N processed files.
        max_files: Index at most this many files per run (None: no limit).
        loader: ``path -> Document``; may raise OSError / ValueError.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        *,
        batch_size: int = BATCH_SIZE,
        progress_every: int = PROGRESS_EVERY,
        max_files: int | None = MAX_FILES,
        loader: Loader = load_document,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if progress_every < 1:
            raise ValueError("progress_every must be >= 1")
        if max_files is not None and max_files < 1:
            raise ValueError("max_files must be >= 1")
        self.batch_size = batch_size
        self.progress_every = progress_every
        self.max_files = max_files
        self._loader = loader
        self._clock = clock

    def run(
        self,
        project_id: str,
        root_path: Path | str,
        selector: FileSelector,
        sink: Sink,
        *,
        cancel_event: threading.Event | None = None,
        on_progress: Callable[[ProgressUpdate], None] | None = None,
    ) -> IngestionReport:
        root = Path(root_path)
        start = self._clock()

        found = iter_files(root, selector)
        if self.max_files is not None:
            found = islice(found, self.max_files + 1)
        total = sum(1 for _ in found)
        report = IngestionReport(project_id=project_id, total_files=total)
        if total == 0:
            logger.info("No files to index under %s", root)
            return report
        if self.max_files is not None and total > self.max_files:
            total = report.total_files = self.max_files
            report.file_limit = self.max_files
            logger.warning(
                "Maximum indexable files limit (%d) exceeded for %s; indexing the first %d files",
                self.max_files,
                project_id,
                self.max_files,
            )

        logger.info("Indexing %d file(s) for project %s", total, project_id)
        files = islice(iter_files(root, selector), total)
        batch_index = 0
        while True:
            batch = list(islice(files, self.batch_size))
            if not batch:
                break
            if cancel_event is not None and cancel_event.is_set():
                report.canceled = True
                logger.info("Indexing of %s canceled after %d file(s)", project_id, report.processed_files)
                break

            batch_index += 1
            documents = self._load_batch(batch, project_id, report)
            report.outcomes.append(self._ingest(batch_index, batch, documents, sink))

            previous = report.processed_files
            report.processed_files += len(batch)
            if on_progress is not None:
                on_progress(self._progress(previous, report.processed_files, total, len(batch), start))

        report.elapsed = self._clock() - start
        if report.failed_batches:
            logger.warning(report.summary())
        else:
            logger.info(report.summary())
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_batch(
        self, batch: list[Path], project_id: str, report: IngestionReport
    ) -> list[Document]:
        documents: list[Document] = []
        for path in batch:
            try:
                doc = self._loader(path)
            except (OSError, ValueError) as exc:
                logger.error("Error processing %s: %s", path, exc)
                report.load_failures += 1
                continue
            if doc.is_blank():
                continue
            doc.metadata[PROJECT_ID] = project_id
            documents.append(doc)
        return documents

    def _ingest(
        self, batch_index: int, batch: list[Path], documents: list[Document], sink: Sink
    ) -> BatchOutcome:
        outcome = BatchOutcome(batch_index=batch_index, files=len(batch), documents=len(documents))
        if not documents:
            return outcome
        try:
            sink(documents)
        except Exception as exc:
            outcome.error = IngestionBatchFailure(batch_index, exc)
            logger.error("%s", outcome.error, exc_info=exc)
        return outcome

    def _progress(
        self, previous: int, processed: int, total: int, batch_size: int, start: float
    ) -> ProgressUpdate:
        crossed = processed // self.progress_every > previous // self.progress_every
        return ProgressUpdate(
            processed=processed,
            total=total,
            batch_size=batch_size,
            elapsed=self._clock() - start,
            verbose=crossed or processed >= total,
        )


def iter_files(root: Path, selector: FileSelector) -> Iterator[Path]:
    """Yield files under *root* accepted by *selector*, in sorted order.

    Excluded directories are pruned without being descended into.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not selector.is_excluded(Path(dirpath, d), root)
        )
        for name in sorted(filenames):
            path = Path(dirpath, name)
            if selector.matches(path, root):
                yield path
