"""Live editor context: attached files and a window around the caret.

Reading editor state is best-effort. ``LiveContext.gather()`` never raises;
any failure while asking the editor for its state (no open editor, files
vanished, odd offsets) yields no contribution for that part.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from recall.ingest.loader import is_binary

logger = logging.getLogger(__name__)

WINDOW_SIZE = 5000
MAX_FILE_SIZE = 200 * 1024


@dataclass(frozen=True)
class OpenFile:
    """The focused editor buffer."""

    path: Path
    text: str
    caret_offset: int


class EditorState(Protocol):
    def current_open_file(self) -> OpenFile | None: ...

    def attached_files(self) -> Sequence[Path]: ...


@dataclass
class StaticEditorState:
    """EditorState backed by plain values (CLI, tests)."""

    open_file: OpenFile | None = None
    attached: list[Path] = field(default_factory=list)

    def current_open_file(self) -> OpenFile | None:
        return self.open_file

    def attached_files(self) -> Sequence[Path]:
        return list(self.attached)


class EntryKind(Enum):
    ATTACHED_FILE = "attached_file"
    CARET_WINDOW = "caret_window"


@dataclass(frozen=True)
class LiveContextEntry:
    text: str
    kind: EntryKind
    source: Path | None = None


class LiveContext:
    """Collect live context entries from an EditorState.

    Args:
        editor: Source of the focused buffer and attached files.
        window_size: Total caret window in characters (half on each side).
        max_file_size: Attached files larger than this many bytes are skipped.
    """

    def __init__(
        self,
        editor: EditorState,
        window_size: int = WINDOW_SIZE,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        if window_size < 0:
            raise ValueError("window_size must be >= 0")
        self.editor = editor
        self.window_size = window_size
        self.max_file_size = max_file_size

    def gather(self) -> list[LiveContextEntry]:
        """Attached files first, then the caret window. Never raises."""
        attached = self._attached_paths()
        entries: list[LiveContextEntry] = []
        try:
            entries.extend(self.attached_entries(attached))
        except Exception as exc:
            logger.debug("Attached files unavailable: %s", exc)
        try:
            caret = self.caret_entry(attached)
        except Exception as exc:
            logger.debug("Focused editor unavailable: %s", exc)
            caret = None
        if caret is not None:
            entries.append(caret)
        return entries

    def attached_entries(self, paths: Sequence[Path] | None = None) -> list[LiveContextEntry]:
        """Full text of each attached file; binary, oversized or unreadable files are skipped.

        *paths* defaults to the editor's current attachments.
        """
        if paths is None:
            paths = self._attached_paths()
        entries: list[LiveContextEntry] = []
        for raw in paths:
            path = Path(raw)
            text = self._read_attached(path)
            if text is not None:
                entries.append(LiveContextEntry(text=text, kind=EntryKind.ATTACHED_FILE, source=path))
        return entries

    def caret_entry(self, attached: Sequence[Path] | None = None) -> LiveContextEntry | None:
        """Window of ``window_size // 2`` characters each side of the caret.

        None when nothing is focused or the focused file is one of *attached*
        (defaults to the editor's current attachments).
        """
        open_file = self.editor.current_open_file()
        if open_file is None:
            return None
        if attached is None:
            attached = self._attached_paths()
        if Path(open_file.path).resolve() in {Path(p).resolve() for p in attached}:
            return None

        text = open_file.text
        caret = max(0, min(open_file.caret_offset, len(text)))
        half = self.window_size // 2
        start = max(0, caret - half)
        end = min(len(text), caret + half)
        return LiveContextEntry(
            text=text[start:end], kind=EntryKind.CARET_WINDOW, source=Path(open_file.path)
        )

    def _attached_paths(self) -> list[Path]:
        """The editor's attachments; empty when the editor cannot report them."""
        try:
            return [Path(p) for p in self.editor.attached_files()]
        except Exception as exc:
            logger.debug("Attached files unavailable: %s", exc)
            return []

    def _read_attached(self, path: Path) -> str | None:
        try:
            if not path.is_file() or path.stat().st_size > self.max_file_size:
                return None
            data = path.read_bytes()
            if is_binary(data):
                return None
            return data.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping attached file %s: %s", path, exc)
            return None
