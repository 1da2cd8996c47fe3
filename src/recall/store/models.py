"""Domain models for the recall embedding store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

# Metadata keys set by the loader / store.
PROJECT_ID = "project_id"
LAST_INDEXED_DATE = "last_indexed_date"
FILE_NAME = "file_name"
ABSOLUTE_DIRECTORY_PATH = "absolute_directory_path"
FILE_PATH = "file_path"
SEGMENT_INDEX = "index"

DEFAULT_PROJECT_ID = "default"


@dataclass
class Document:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def project_id(self) -> str:
        return str(self.metadata.get(PROJECT_ID) or DEFAULT_PROJECT_ID)

    def is_blank(self) -> bool:
        return not self.text or not self.text.strip()

    def source_prefix(self) -> str | None:
        """Return ``<absolute_directory_path>/<file_name>#`` or None.

        Every id generated for a document loaded from a file starts with this
        prefix, so it can be used with IdPrefixFilter to drop older versions.
        """
        directory = self.metadata.get(ABSOLUTE_DIRECTORY_PATH)
        file_name = self.metadata.get(FILE_NAME)
        if not directory or not file_name:
            return None
        return f"{directory}/{file_name}#"


@dataclass
class EmbeddingMatch:
    """One search hit: cosine similarity, stored id and reconstructed document."""

    score: float
    id: str
    document: Document


@dataclass
class IndexedProjectRecord:
    project_id: str
    last_indexed_at: date

    def to_line(self) -> str:
        return f"{self.project_id},{self.last_indexed_at.isoformat()}"
