"""Context composer: store search results merged with live editor context.

Per query:
1. Embed the query and search the store (failures propagate).
2. Gather live context (failures yield nothing).
3. Append live entries longer than the relevance floor that are not an
   exact duplicate of text already collected.
Store results come first, then live entries, each in discovery order.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from recall.compose.live import LiveContext, LiveContextEntry
from recall.embedding import EmbedFn
from recall.store.embedding_store import EmbeddingStore
from recall.store.models import EmbeddingMatch

MAX_RESULTS = 3
RELEVANCE_FLOOR = 30

MinScore = float | Callable[[str], float] | None


def dynamic_min_score(query: str) -> float:
    """Longer queries are more specific, so demand closer matches.

    Examples:
        101+ chars -> 0.85
        51-100     -> 0.65
        otherwise  -> 0.5
    """
    if len(query) > 100:
        return 0.85
    if len(query) > 50:
        return 0.65
    return 0.5


class Origin(Enum):
    STORE = "store"
    LIVE = "live"


@dataclass(frozen=True)
class ComposedContent:
    text: str
    origin: Origin
    match: EmbeddingMatch | None = None
    entry: LiveContextEntry | None = None


class ContextComposer:
    """Produce the retrieval result for one query.

    Args:
        store: Open EmbeddingStore.
        embed: ``text -> vector`` used for the query.
        live_context: Optional LiveContext; None means store results only.
        max_results: Store matches per query.
        min_score: Similarity floor, or a callable deriving one from the query
            (see ``dynamic_min_score``). None disables filtering.
        relevance_floor: Live entries must be strictly longer than this.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        embed: EmbedFn,
        live_context: LiveContext | None = None,
        *,
        max_results: int = MAX_RESULTS,
        min_score: MinScore = None,
        relevance_floor: int = RELEVANCE_FLOOR,
    ) -> None:
        self._store = store
        self._embed = embed
        self._live = live_context
        self.max_results = max_results
        self.min_score = min_score
        self.relevance_floor = relevance_floor

    def compose(self, query: str) -> list[ComposedContent]:
        threshold = self.min_score(query) if callable(self.min_score) else self.min_score
        matches = self._store.search(self._embed(query), self.max_results, min_score=threshold)
        results = [
            ComposedContent(text=m.document.text, origin=Origin.STORE, match=m) for m in matches
        ]

        seen = {r.text for r in results}
        for entry in self._live.gather() if self._live is not None else []:
            if not self.is_relevant(entry.text) or entry.text in seen:
                continue
            seen.add(entry.text)
            results.append(ComposedContent(text=entry.text, origin=Origin.LIVE, entry=entry))
        return results

    def is_relevant(self, text: str | None) -> bool:
        return text is not None and len(text) > self.relevance_floor
