"""Structured deletion filters.

``Filter`` is a closed union. The store translates ``IdPrefixFilter`` only;
every other arm is rejected with UnsupportedFilterKind so a filter is never
silently treated as "matches nothing".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class IdPrefixFilter:
    """Matches every document whose id starts with *prefix*."""

    prefix: str

    def test(self, doc_id: str) -> bool:
        return doc_id.startswith(self.prefix)


@dataclass(frozen=True)
class MetadataEqualsFilter:
    """Matches documents whose metadata *key* equals *value* (not translatable)."""

    key: str
    value: Any

    def test(self, metadata: dict[str, Any]) -> bool:
        return metadata.get(self.key) == self.value


Filter = Union[IdPrefixFilter, MetadataEqualsFilter]
