"""Shared pytest fixtures."""

from __future__ import annotations

import os
import string
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

# Keep litellm from fetching its model cost map over the network on import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from recall.registry import IndexRegistry
from recall.store.embedding_store import EmbeddingStore


def _letter_vector(text: str) -> list[float]:
    """Deterministic 27-dim embedding: a bias term plus letter counts."""
    lowered = text.lower()
    return [1.0] + [float(lowered.count(c)) for c in string.ascii_lowercase]


class FakeEmbedder:
    """Stands in for LiteLLMEmbedder in CLI tests."""

    def __init__(self, model: str = "fake/model", api_base: str | None = None) -> None:
        self.model = model
        self.api_base = api_base

    def check_api_key(self) -> None:
        return None

    def __call__(self, text: str) -> list[float]:
        return _letter_vector(text)


class FakeToday:
    """Mutable clock for IndexRegistry."""

    def __init__(self, start: date = date(2024, 3, 1)) -> None:
        self.current = start

    def __call__(self) -> date:
        return self.current

    def advance(self, days: int) -> None:
        self.current += timedelta(days=days)


@pytest.fixture
def embed():
    """Deterministic text -> vector function."""
    return _letter_vector


@pytest.fixture
def store(tmp_path):
    """Open EmbeddingStore in tmp_path, closed after test."""
    s = EmbeddingStore(tmp_path / "index").open()
    yield s
    s.close()


@pytest.fixture
def today():
    return FakeToday()


@pytest.fixture
def registry(tmp_path, today):
    """Open IndexRegistry rooted in tmp_path with an injectable clock."""
    reg = IndexRegistry(tmp_path / "home", today=today).open()
    yield reg
    reg.close()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolate CLI commands: RECALL_HOME in tmp_path, no global config, fake embeddings."""
    home = tmp_path / "recall-home"
    monkeypatch.setenv("RECALL_HOME", str(home))
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.delenv("RECALL_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("RECALL_SOURCES", raising=False)
    monkeypatch.setattr("recall.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")
    monkeypatch.setattr("recall.cli.index.LiteLLMEmbedder", FakeEmbedder)
    monkeypatch.setattr("recall.cli.search.LiteLLMEmbedder", FakeEmbedder)
    monkeypatch.setattr("recall.cli.index.configure_logging", MagicMock())
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def cyclic_pdf() -> bytes:
    """A well-formed PDF envelope whose page tree references itself."""
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [2 0 R] /Count 1 >>",
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n%s\nendobj\n" % (number, body)
    xref = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(objects) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref,
    )
    return bytes(out)
