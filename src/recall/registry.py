"""Index registry: per-project last-indexed dates and the in-flight set.

The persisted table is a flat text file under the installation root, one
``project_id,YYYY-MM-DD`` line per project. Reads are tolerant: blank lines
are ignored and malformed lines are skipped with a warning (and dropped on
the next rewrite). The in-flight set lives in memory only.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from datetime import date
from pathlib import Path

from recall.errors import StorageFailure
from recall.store.models import IndexedProjectRecord

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "indexed_projects.txt"
STALENESS_DAYS = 7


class IndexRegistry:
    """Staleness bookkeeping for one installation root.

    Args:
        root: Installation root directory (created on open if missing).
        today: Clock returning the current date; injectable for tests.
        staleness_days: A project is indexed iff ``today - last_indexed_at``
            is strictly less than this many days.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        today: Callable[[], date] = date.today,
        staleness_days: int = STALENESS_DAYS,
    ) -> None:
        if staleness_days < 1:
            raise ValueError("staleness_days must be >= 1")
        self.root = Path(root)
        self.path = self.root / REGISTRY_FILENAME
        self._today = today
        self._staleness_days = staleness_days
        self._lock = threading.Lock()
        self._records: dict[str, date] = {}
        self._in_flight: set[str] = set()
        self._open = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> IndexRegistry:
        """Load the persisted table, creating an empty file if it is missing."""
        with self._lock:
            try:
                self.root.mkdir(parents=True, exist_ok=True)
                if not self.path.exists():
                    self.path.write_text("", encoding="utf-8")
                content = self.path.read_text(encoding="utf-8")
            except OSError as exc:
                raise StorageFailure(f"Cannot read index registry '{self.path}'", exc) from exc
            self._records = _parse(content, self.path)
            self._open = True
        return self

    def close(self) -> None:
        with self._lock:
            self._records = {}
            self._in_flight.clear()
            self._open = False

    def __enter__(self) -> IndexRegistry:
        return self.open()

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_indexed(self, project_id: str) -> bool:
        """True if *project_id* is being indexed or was indexed within the window."""
        with self._lock:
            self._require_open()
            if project_id in self._in_flight:
                return True
            last = self._records.get(project_id)
        if last is None:
            return False
        return (self._today() - last).days < self._staleness_days

    def indexation_is_processing(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._in_flight

    def get_indexed_projects(self) -> dict[str, date]:
        """Return a copy of the persisted ``project_id -> last indexed date`` table."""
        with self._lock:
            self._require_open()
            return dict(self._records)

    # ------------------------------------------------------------------
    # In-flight set
    # ------------------------------------------------------------------

    def mark_as_current_indexation(self, project_id: str) -> None:
        with self._lock:
            self._in_flight.add(project_id)

    def remove_from_current_indexation(self, project_id: str) -> None:
        with self._lock:
            self._in_flight.discard(project_id)

    def try_begin_indexation(self, project_id: str) -> bool:
        """Add *project_id* to the in-flight set unless it is already there.

        Returns:
            True if the caller now owns the indexation, False otherwise.
        """
        with self._lock:
            if project_id in self._in_flight:
                return False
            self._in_flight.add(project_id)
            return True

    # ------------------------------------------------------------------
    # Persisted table
    # ------------------------------------------------------------------

    def mark_as_indexed(self, project_id: str) -> None:
        """Record today as *project_id*'s last full index and rewrite the file."""
        if not project_id or "," in project_id or "\n" in project_id:
            raise ValueError(f"Invalid project id: {project_id!r}")
        with self._lock:
            self._require_open()
            self._records[project_id] = self._today()
            self._persist()

    def remove_project(self, project_id: str) -> None:
        """Drop *project_id*'s record, if present, and rewrite the file."""
        with self._lock:
            self._require_open()
            if self._records.pop(project_id, None) is not None:
                self._persist()

    # ------------------------------------------------------------------
    # Internals (callers hold self._lock)
    # ------------------------------------------------------------------

    def _require_open(self) -> None:
        if not self._open:
            raise StorageFailure("Index registry is not open; call open() first.")

    def _persist(self) -> None:
        lines = [
            IndexedProjectRecord(project_id, day).to_line() + "\n"
            for project_id, day in self._records.items()
        ]
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text("".join(lines), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageFailure(f"Cannot write index registry '{self.path}'", exc) from exc


def _parse(content: str, path: Path) -> dict[str, date]:
    records: dict[str, date] = {}
    for lineno, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        project_id, sep, day = line.partition(",")
        project_id = project_id.strip()
        if not sep or not project_id or not day.strip():
            logger.warning("%s:%d: missing project id or date, skipping: %r", path, lineno, raw)
            continue
        try:
            records[project_id] = date.fromisoformat(day.strip())
        except ValueError:
            logger.warning("%s:%d: invalid date, skipping: %r", path, lineno, raw)
    return records
