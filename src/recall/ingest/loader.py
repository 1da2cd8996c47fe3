"""Turn a file on disk into a Document.

Plain text is decoded as UTF-8 with replacement characters; ``.pdf`` files
are extracted page by page via pypdf. Binary files are rejected.
"""

from __future__ import annotations

from pathlib import Path

import pypdf

from recall.store.models import ABSOLUTE_DIRECTORY_PATH, FILE_NAME, FILE_PATH, Document

# Bytes inspected when sniffing for binary content.
_SNIFF_BYTES = 8192


class UnsupportedFileError(ValueError):
    """The file cannot be turned into text (binary, unreadable format)."""


def is_binary(data: bytes) -> bool:
    """Heuristic: a NUL byte in the first 8 KiB means binary."""
    return b"\x00" in data[:_SNIFF_BYTES]


def load_document(path: Path | str) -> Document:
    """Load *path* into a Document carrying its file metadata.

    Raises:
        OSError: The file cannot be read.
        UnsupportedFileError: The file is binary or its format is not text.
    """
    path = Path(path).resolve()
    if path.suffix.lower() == ".pdf":
        text = _extract_pdf(path)
    else:
        data = path.read_bytes()
        if is_binary(data):
            raise UnsupportedFileError(f"Binary file: {path}")
        text = data.decode("utf-8", errors="replace")

    return Document(
        text=text,
        metadata={
            FILE_NAME: path.name,
            ABSOLUTE_DIRECTORY_PATH: path.parent.as_posix(),
            FILE_PATH: path.as_posix(),
        },
    )


def _extract_pdf(path: Path) -> str:
    try:
        reader = pypdf.PdfReader(path)
        parts: list[str] = []
        for page in reader.pages:
            page_text = (page.extract_text() or "").strip()
            if page_text:
                parts.append(page_text)
    except pypdf.errors.PyPdfError as exc:
        raise UnsupportedFileError(f"Unreadable PDF {path}: {exc}") from exc
    return "\n\n".join(parts)
