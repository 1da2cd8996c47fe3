"""recall reset — clear a project's knowledge index.

Removes every stored document and the project's registry record, so the
next ``recall index`` rebuilds it from scratch.

Usage:
  recall reset --project app
  recall reset --project app --yes
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from recall.cli.common import load_settings, open_registry, open_store
from recall.cli.errors import err_project_not_indexed, err_storage
from recall.errors import StorageFailure
from recall.store.embedding_store import EmbeddingStore

console = Console()


def reset_cmd(
    project: Annotated[
        str,
        typer.Option("--project", "-p", help="Project id to reset."),
    ],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove all stored documents for a project and forget its index date."""
    cfg = load_settings()
    registry = open_registry(cfg)
    try:
        known = project in registry.get_indexed_projects()
        has_index = EmbeddingStore.for_project(cfg.store.root, project).index_dir.exists()
        if not known and not has_index:
            console.print(err_project_not_indexed(project))
            raise typer.Exit(0)

        console.print(f"\nReset project: [bold]{project}[/]")
        if not yes:
            if not typer.confirm("Confirm reset?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        removed = 0
        if has_index:
            store = open_store(cfg, project)
            try:
                removed = store.remove_all()
            except StorageFailure as exc:
                console.print(err_storage(str(exc)))
                raise typer.Exit(1) from exc
            finally:
                store.close()
        registry.remove_project(project)
    finally:
        registry.close()

    console.print(f"[green]✓[/] Reset '{project}': {removed} document(s) removed.")
