"""Tests for IndexRegistry: staleness window, in-flight set, tolerant parsing."""

from __future__ import annotations

import logging
import threading
from datetime import date
from pathlib import Path

import pytest

from recall.errors import StorageFailure
from recall.registry import REGISTRY_FILENAME, IndexRegistry


# ---------------------------------------------------------------------------
# Staleness window
# ---------------------------------------------------------------------------


def test_project_is_indexed_right_after_marking(registry: IndexRegistry) -> None:
    assert not registry.is_indexed("app")
    registry.mark_as_indexed("app")
    assert registry.is_indexed("app")


def test_staleness_boundary_day_six_vs_day_seven(registry: IndexRegistry, today) -> None:
    registry.mark_as_indexed("app")

    today.advance(6)
    assert registry.is_indexed("app")

    today.advance(1)
    assert not registry.is_indexed("app")


def test_re_marking_refreshes_the_window(registry: IndexRegistry, today) -> None:
    registry.mark_as_indexed("app")
    today.advance(10)
    assert not registry.is_indexed("app")

    registry.mark_as_indexed("app")
    assert registry.is_indexed("app")
    assert registry.get_indexed_projects() == {"app": today.current}


def test_custom_staleness_window(tmp_path: Path, today) -> None:
    with IndexRegistry(tmp_path, today=today, staleness_days=1) as reg:
        reg.mark_as_indexed("app")
        assert reg.is_indexed("app")
        today.advance(1)
        assert not reg.is_indexed("app")


def test_invalid_staleness_window_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        IndexRegistry(tmp_path, staleness_days=0)


# ---------------------------------------------------------------------------
# In-flight set
# ---------------------------------------------------------------------------


def test_in_flight_project_counts_as_indexed(registry: IndexRegistry) -> None:
    registry.mark_as_current_indexation("app")
    assert registry.is_indexed("app")
    assert registry.indexation_is_processing("app")

    registry.remove_from_current_indexation("app")
    assert not registry.is_indexed("app")
    assert not registry.indexation_is_processing("app")


def test_in_flight_set_is_not_persisted(tmp_path: Path, today) -> None:
    with IndexRegistry(tmp_path, today=today) as reg:
        reg.mark_as_current_indexation("app")
    assert (tmp_path / REGISTRY_FILENAME).read_text() == ""


def test_try_begin_indexation_admits_one_caller(registry: IndexRegistry) -> None:
    results: list[bool] = []
    barrier = threading.Barrier(8, timeout=5)

    def _begin() -> None:
        barrier.wait()
        results.append(registry.try_begin_indexation("app"))

    threads = [threading.Thread(target=_begin) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert results.count(True) == 1
    assert results.count(False) == 7


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def test_file_created_when_missing(tmp_path: Path) -> None:
    root = tmp_path / "fresh"
    with IndexRegistry(root):
        assert (root / REGISTRY_FILENAME).exists()


def test_records_survive_reopen(tmp_path: Path, today) -> None:
    with IndexRegistry(tmp_path, today=today) as reg:
        reg.mark_as_indexed("app")
        reg.mark_as_indexed("lib")

    content = (tmp_path / REGISTRY_FILENAME).read_text()
    assert content.splitlines() == ["app,2024-03-01", "lib,2024-03-01"]

    with IndexRegistry(tmp_path, today=today) as reg:
        assert reg.is_indexed("app")
        assert reg.is_indexed("lib")


def test_remove_project(tmp_path: Path, today) -> None:
    with IndexRegistry(tmp_path, today=today) as reg:
        reg.mark_as_indexed("app")
        reg.mark_as_indexed("lib")
        reg.remove_project("app")
        reg.remove_project("missing")
        assert not reg.is_indexed("app")

    assert (tmp_path / REGISTRY_FILENAME).read_text() == "lib,2024-03-01\n"


def test_mark_as_indexed_rejects_unstorable_ids(registry: IndexRegistry) -> None:
    for bad in ("", "a,b", "a\nb"):
        with pytest.raises(ValueError):
            registry.mark_as_indexed(bad)


def test_closed_registry_raises(tmp_path: Path) -> None:
    reg = IndexRegistry(tmp_path)
    with pytest.raises(StorageFailure, match="not open"):
        reg.is_indexed("app")


# ---------------------------------------------------------------------------
# Tolerant parsing
# ---------------------------------------------------------------------------


def test_line_without_date_means_not_indexed(tmp_path: Path, today) -> None:
    (tmp_path / REGISTRY_FILENAME).write_text("app\n")
    with IndexRegistry(tmp_path, today=today) as reg:
        assert not reg.is_indexed("app")


def test_old_date_means_not_indexed(tmp_path: Path, today) -> None:
    (tmp_path / REGISTRY_FILENAME).write_text("app,2024-02-01\n")
    with IndexRegistry(tmp_path, today=today) as reg:
        assert not reg.is_indexed("app")


def test_corrupted_file_is_rewritten_with_valid_lines_only(
    tmp_path: Path, today, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / REGISTRY_FILENAME
    path.write_text(
        "alpha,2024-02-28\n"
        "\n"
        "beta\n"
        ",2024-02-29\n"
        "gamma,not-a-date\n"
        "delta,2024-02-27\n"
        "epsilon,2024-02-26\n"
    )

    with caplog.at_level(logging.WARNING, logger="recall.registry"):
        reg = IndexRegistry(tmp_path, today=today).open()

    assert set(reg.get_indexed_projects()) == {"alpha", "delta", "epsilon"}
    assert "invalid date" in caplog.text
    assert "missing project id or date" in caplog.text

    reg.mark_as_indexed("zeta")
    reg.close()

    lines = path.read_text().splitlines()
    assert len(lines) == 4
    assert all(line.count(",") == 1 and not line.startswith(",") for line in lines)
    assert "zeta,2024-03-01" in lines
    assert date.fromisoformat(lines[0].split(",")[1]) == date(2024, 2, 28)
