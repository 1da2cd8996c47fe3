"""recall index — build or refresh a project's knowledge index.

Walks the project tree, selects files per ``indexing.sources`` /
``indexing.exclude`` and ingests them in batches on a background worker.
Skips projects indexed within the staleness window unless --force is given.
Ctrl-C cancels before the next batch; the project then stays unindexed.

Usage:
  recall index .
  recall index ~/code/app --project app --force
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from recall.cli.common import load_settings, open_registry, open_store
from recall.cli.errors import err_no_api_key, err_not_a_directory, warn_file_limit, warn_skipped_files
from recall.embedding import LiteLLMEmbedder
from recall.indexer import ProjectIndexer
from recall.ingest.pipeline import IngestionPipeline, IngestionReport, ProgressUpdate
from recall.ingest.selector import FileSelector
from recall.ingest.splitter import DocumentSplitter
from recall.ingest.writer import EmbeddingWriter
from recall.logs import configure_logging

console = Console()


def index_cmd(
    path: Annotated[
        Path,
        typer.Argument(help="Project root directory."),
    ] = Path("."),
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Project id (defaults to the directory name)."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Re-index even if the project is up to date."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log per-file and per-batch details."),
    ] = False,
) -> None:
    """Index a project directory into its knowledge store."""
    root = path.expanduser().resolve()
    if not root.is_dir():
        console.print(err_not_a_directory(str(path)))
        raise typer.Exit(1)

    cfg = load_settings(root)
    configure_logging(logging.INFO if verbose else logging.WARNING)
    project_id = project or root.name

    embedder = LiteLLMEmbedder(cfg.embedding.model, cfg.embedding.api_base)
    try:
        embedder.check_api_key()
    except RuntimeError as exc:
        console.print(err_no_api_key(cfg.embedding.model.split("/")[0]))
        raise typer.Exit(1) from exc

    registry = open_registry(cfg)
    try:
        store = open_store(cfg, project_id)
    except typer.Exit:
        registry.close()
        raise
    try:
        writer = EmbeddingWriter(
            store,
            embedder,
            DocumentSplitter(cfg.indexing.chunk_size, cfg.indexing.overlap),
        )
        indexer = ProjectIndexer(
            store,
            registry,
            IngestionPipeline(
                batch_size=cfg.indexing.batch_size,
                progress_every=cfg.indexing.progress_every,
                max_files=cfg.indexing.max_files,
            ),
            writer,
            FileSelector.from_sources(cfg.indexing.sources, cfg.indexing.exclude),
        )
        try:
            report = _run_with_progress(indexer, project_id, root, force)
        finally:
            indexer.shutdown()
    finally:
        store.close()
        registry.close()

    _print_report(project_id, report)


def _run_with_progress(
    indexer: ProjectIndexer, project_id: str, root: Path, force: bool
) -> IngestionReport | None:
    console.print(f"\n[bold]→ {project_id}[/]  [dim]{root}[/]")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("[dim]{task.fields[eta]}[/]"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Collecting files...", total=None, eta="")

        def _on_progress(update: ProgressUpdate) -> None:
            fields = {"eta": f"ETA {update.eta}"} if update.verbose else {}
            progress.update(
                task_id,
                description=f"Indexing {update.processed}/{update.total} files",
                total=update.total,
                completed=update.processed,
                **fields,
            )

        task = indexer.start(project_id, root, force=force, on_progress=_on_progress)
        try:
            return task.result()
        except KeyboardInterrupt:
            task.cancel()
            console.print("[yellow]Canceling after the current batch...[/]")
            return task.result()


def _print_report(project_id: str, report: IngestionReport | None) -> None:
    if report is None:
        console.print(
            f"  [dim]↷ {project_id} is up to date or already being indexed "
            "(use --force to re-index)[/]"
        )
        return
    if report.canceled:
        console.print(f"  [yellow]✗ {report.summary()}[/]")
        console.print("  [dim]The project was not marked indexed; the next run starts over.[/]")
        return
    console.print(f"  [green]✓[/] {report.summary()}")
    if report.failed_batches:
        console.print(warn_skipped_files(report.skipped_files, len(report.failed_batches)))
    if report.file_limit is not None:
        console.print(warn_file_limit(report.file_limit))
