"""Helpers shared by recall commands: config, store and registry opening."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from recall.cli.errors import err_config, err_index_locked, err_storage
from recall.config import ConfigError, RecallConfig, load_config
from recall.errors import IndexLockedError, StorageFailure
from recall.registry import IndexRegistry
from recall.store.embedding_store import EmbeddingStore

console = Console()


def load_settings(project_dir: Path | None = None) -> RecallConfig:
    try:
        return load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def open_registry(cfg: RecallConfig) -> IndexRegistry:
    try:
        return IndexRegistry(cfg.store.root, staleness_days=cfg.indexing.staleness_days).open()
    except StorageFailure as exc:
        console.print(err_storage(str(exc)))
        raise typer.Exit(1) from exc


def open_store(cfg: RecallConfig, project_id: str) -> EmbeddingStore:
    store = EmbeddingStore.for_project(cfg.store.root, project_id)
    try:
        return store.open()
    except IndexLockedError as exc:
        console.print(err_index_locked(str(store.index_dir)))
        raise typer.Exit(1) from exc
    except StorageFailure as exc:
        console.print(err_storage(str(exc)))
        raise typer.Exit(1) from exc
