"""Path predicate deciding which files of a project get indexed."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

SEPARATOR = ";"

DEFAULT_EXCLUDES = "target;build;.github;.git;.idea;.gradle"


def split_patterns(value: str | None) -> tuple[str, ...]:
    """Split a semicolon-separated pattern string, dropping blank entries.

    Examples:
        "src/;pom.xml"  -> ("src/", "pom.xml")
        " ; .md ;"      -> (".md",)
    """
    if not value:
        return ()
    return tuple(p.strip() for p in value.split(SEPARATOR) if p.strip())


def normalize(path: Path | str) -> str:
    return str(path).replace("\\", "/")


class FileSelector:
    """Accepts regular, non-empty files whose path contains an inclusion substring.

    With no inclusions every regular non-empty file is accepted. A path with
    a segment equal to one of the exclusions is always rejected; segments are
    taken relative to *root* when it is passed to ``matches``.
    """

    def __init__(self, includes: Iterable[str] = (), excludes: Iterable[str] = ()) -> None:
        self.includes = tuple(includes)
        self.excludes = frozenset(excludes)

    @classmethod
    def from_sources(cls, sources: str | None, exclude: str | None = None) -> FileSelector:
        return cls(split_patterns(sources), split_patterns(exclude))

    def is_excluded(self, path: Path | str, root: Path | str | None = None) -> bool:
        if not self.excludes:
            return False
        path = Path(path)
        if root is not None:
            try:
                path = path.relative_to(root)
            except ValueError:
                pass
        return any(part in self.excludes for part in normalize(path).split("/"))

    def matches(self, path: Path | str, root: Path | str | None = None) -> bool:
        normalized = normalize(path)
        if self.is_excluded(path, root):
            return False
        if self.includes and not any(inc in normalized for inc in self.includes):
            return False
        try:
            path = Path(path)
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    __call__ = matches
