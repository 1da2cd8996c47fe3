"""Project indexer: registry-gated ingestion runs, in the foreground or background.

Background runs go to a single-worker ThreadPoolExecutor so at most one
ingestion writes at a time; each run gets its own cancellation event.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from recall.ingest.pipeline import IngestionPipeline, IngestionReport, ProgressUpdate, Sink
from recall.ingest.selector import FileSelector
from recall.registry import IndexRegistry
from recall.store.embedding_store import EmbeddingStore

logger = logging.getLogger(__name__)


@dataclass
class IndexingTask:
    """Handle on a background indexing run."""

    project_id: str
    future: Future[IngestionReport | None]
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        """Ask the run to stop before its next batch."""
        self.cancel_event.set()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: float | None = None) -> IngestionReport | None:
        """Wait for the run. None means it was skipped (already indexed or in flight)."""
        return self.future.result(timeout)


class ProjectIndexer:
    """Ties a project's store, the registry, the pipeline and a sink together.

    Args:
        store: Open store the sink writes into (used by ``reset``).
        registry: Open IndexRegistry.
        pipeline: IngestionPipeline.
        sink: Batch sink, usually an EmbeddingWriter over *store*.
        selector: FileSelector for the project tree.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        registry: IndexRegistry,
        pipeline: IngestionPipeline,
        sink: Sink,
        selector: FileSelector,
    ) -> None:
        self._store = store
        self._registry = registry
        self._pipeline = pipeline
        self._sink = sink
        self._selector = selector
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def index(
        self,
        project_id: str,
        root: Path | str,
        *,
        force: bool = False,
        cancel_event: threading.Event | None = None,
        on_progress: Callable[[ProgressUpdate], None] | None = None,
    ) -> IngestionReport | None:
        """Run one ingestion of *root* unless the project is fresh or in flight.

        The project is marked indexed only when the run was not canceled.

        Returns:
            The IngestionReport, or None if the run was skipped.
        """
        if not force and self._registry.is_indexed(project_id):
            logger.info("Project %s is already indexed, skipping", project_id)
            return None
        if not self._registry.try_begin_indexation(project_id):
            logger.info("Project %s is already being indexed, skipping", project_id)
            return None

        try:
            report = self._pipeline.run(
                project_id,
                root,
                self._selector,
                self._sink,
                cancel_event=cancel_event,
                on_progress=on_progress,
            )
            if report.completed:
                self._registry.mark_as_indexed(project_id)
            return report
        finally:
            self._registry.remove_from_current_indexation(project_id)

    def start(
        self,
        project_id: str,
        root: Path | str,
        *,
        force: bool = False,
        on_progress: Callable[[ProgressUpdate], None] | None = None,
    ) -> IndexingTask:
        """Submit ``index()`` to the background worker and return its handle."""
        cancel_event = threading.Event()
        future = self._get_executor().submit(
            self.index,
            project_id,
            root,
            force=force,
            cancel_event=cancel_event,
            on_progress=on_progress,
        )
        return IndexingTask(project_id=project_id, future=future, cancel_event=cancel_event)

    def reset(self, project_id: str) -> int:
        """Drop every stored document and the registry record. Returns documents removed."""
        removed = self._store.remove_all()
        self._registry.remove_project(project_id)
        logger.info("Reset project %s (%d document(s) removed)", project_id, removed)
        return removed

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="recall-indexer"
                )
            return self._executor
