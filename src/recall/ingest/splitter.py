"""Fixed-window document splitter with overlap."""

from __future__ import annotations

from recall.store.models import SEGMENT_INDEX, Document


class DocumentSplitter:
    """Split long Documents into overlapping fixed-size segments.

    Token counting uses a 4-chars-per-token approximation; no external
    tokenizer dependency is required. Each segment inherits the parent
    metadata plus its sequential ``index``.

    Default: 512 tokens / 10 % overlap.
    """

    def __init__(self, chunk_size: int = 512, overlap: float = 0.10) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0.0 <= overlap < 1.0:
            raise ValueError("overlap must be in [0.0, 1.0)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token."""
        return max(1, len(text) // 4)

    def split(self, document: Document) -> list[Document]:
        segments = self._split_fixed_window(document.text)
        return [
            Document(text=segment, metadata={**document.metadata, SEGMENT_INDEX: i})
            for i, segment in enumerate(segments)
        ]

    def split_all(self, documents: list[Document]) -> list[Document]:
        return [segment for doc in documents for segment in self.split(doc)]

    def _split_fixed_window(self, text: str) -> list[str]:
        """Split *text* into fixed-window segments with overlap.

        Window size = ``self.chunk_size * 4`` characters.
        Overlap     = ``self.overlap`` fraction of window size.
        Segments are stripped; empty segments are omitted.
        """
        if not text.strip():
            return []

        char_size = self.chunk_size * 4
        step = max(1, char_size - int(char_size * self.overlap))

        segments: list[str] = []
        pos = 0
        length = len(text)
        while pos < length:
            end = min(pos + char_size, length)
            segment = text[pos:end].strip()
            if segment:
                segments.append(segment)
            if end >= length:
                break
            pos += step
        return segments
