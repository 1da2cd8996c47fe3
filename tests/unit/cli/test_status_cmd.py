"""Tests for the recall status command and the version entry points."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from recall.cli.main import app

runner = CliRunner()


def test_version_flag_shows_recall() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "recall" in result.output.lower()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("recall ")


def test_status_without_projects(cli_env: Path) -> None:
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "No indexed projects" in result.output


def test_status_lists_indexed_project(cli_env: Path, tmp_path: Path) -> None:
    root = tmp_path / "proj"
    root.mkdir()
    (root / "a.txt").write_text("alpha beta gamma", encoding="utf-8")
    runner.invoke(app, ["index", str(root)])

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0, result.output
    assert "proj" in result.output
    assert "fresh" in result.output


def test_status_reports_missing_index(cli_env: Path) -> None:
    cli_env.mkdir(parents=True, exist_ok=True)
    (cli_env / "indexed_projects.txt").write_text("ghost,2024-01-01\n", encoding="utf-8")

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "ghost" in result.output
    assert "stale" in result.output
    assert "missing" in result.output
