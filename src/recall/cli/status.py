"""recall status — indexed projects, freshness and document counts."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from recall.cli.common import load_settings, open_registry
from recall.errors import IndexLockedError, StorageFailure
from recall.registry import IndexRegistry
from recall.store.embedding_store import EmbeddingStore

console = Console()


def status_cmd() -> None:
    """Show every indexed project with its last index date and size."""
    cfg = load_settings()
    registry = open_registry(cfg)
    try:
        projects = registry.get_indexed_projects()
        table = _projects_table(registry, projects, cfg.store.root)
    finally:
        registry.close()

    console.print(f"[bold]Store:[/] {escape(str(cfg.store.root))}")
    console.print(f"[bold]Embedding model:[/] {escape(cfg.embedding.model)}")
    if not projects:
        console.print(
            Panel(
                "[yellow]No indexed projects.[/]\n"
                "  Run:  recall index <project-dir>",
                title="[bold]Projects[/]",
                expand=False,
            )
        )
        return
    console.print(table)


def _projects_table(registry: IndexRegistry, projects: dict[str, date], root: Path) -> Table:
    table = Table(title="Projects", show_lines=False)
    table.add_column("Project")
    table.add_column("Last indexed")
    table.add_column("State")
    table.add_column("Documents", justify="right")

    for project_id, last in sorted(projects.items()):
        state = "[green]fresh[/]" if registry.is_indexed(project_id) else "[yellow]stale[/]"
        table.add_row(escape(project_id), last.isoformat(), state, _document_count(root, project_id))
    return table


def _document_count(root: Path, project_id: str) -> str:
    store = EmbeddingStore.for_project(root, project_id)
    if not store.index_dir.exists():
        return "[dim]missing[/]"
    try:
        with store:
            return str(store.count())
    except IndexLockedError:
        return "[dim]in use[/]"
    except StorageFailure:
        return "[red]unreadable[/]"
