"""recall search — retrieve context for a query.

Merges the project's stored matches with live context: files passed via
--attach (full text) and a window around --caret in the --open file.

Usage:
  recall search "how is the cache invalidated"
  recall search "parse headers" --project app --attach src/http.py
  recall search "this loop" --open src/main.py --caret 1200
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from recall.cli.common import load_settings, open_store
from recall.cli.errors import err_embedding_failed, err_no_api_key, err_project_not_indexed, err_storage
from recall.compose.composer import ComposedContent, ContextComposer, Origin, dynamic_min_score
from recall.compose.live import LiveContext, OpenFile, StaticEditorState
from recall.config import RecallConfig
from recall.embedding import LiteLLMEmbedder
from recall.errors import StorageFailure
from recall.store.embedding_store import EmbeddingStore
from recall.store.models import FILE_PATH

console = Console()

_PREVIEW_CHARS = 600


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Project id (defaults to the current directory name)."),
    ] = None,
    max_results: Annotated[
        int | None,
        typer.Option("--max-results", "-n", min=1, help="Stored matches to return."),
    ] = None,
    attach: Annotated[
        list[Path] | None,
        typer.Option("--attach", "-a", help="File to include in full (repeatable)."),
    ] = None,
    open_file: Annotated[
        Path | None,
        typer.Option("--open", help="File currently open in the editor."),
    ] = None,
    caret: Annotated[
        int,
        typer.Option("--caret", min=0, help="Caret offset (characters) in the --open file."),
    ] = 0,
    full: Annotated[
        bool,
        typer.Option("--full", help="Print full texts instead of previews."),
    ] = False,
) -> None:
    """Search a project's knowledge store and merge in live context."""
    cfg = load_settings()
    project_id = project or Path.cwd().name

    if not EmbeddingStore.for_project(cfg.store.root, project_id).index_dir.exists():
        console.print(err_project_not_indexed(project_id))
        raise typer.Exit(1)

    embedder = LiteLLMEmbedder(cfg.embedding.model, cfg.embedding.api_base)
    try:
        embedder.check_api_key()
    except RuntimeError as exc:
        console.print(err_no_api_key(cfg.embedding.model.split("/")[0]))
        raise typer.Exit(1) from exc

    live = LiveContext(
        _editor_state(open_file, caret, attach or []),
        window_size=cfg.live_context.window_size,
        max_file_size=cfg.live_context.max_file_size,
    )

    store = open_store(cfg, project_id)
    try:
        composer = ContextComposer(
            store,
            embedder,
            live,
            max_results=max_results or cfg.retrieval.max_results,
            min_score=_min_score(cfg),
            relevance_floor=cfg.retrieval.relevance_floor,
        )
        try:
            results = composer.compose(query)
        except StorageFailure as exc:
            console.print(err_storage(str(exc)))
            raise typer.Exit(1) from exc
        except Exception as exc:
            # LiteLLM raises provider-specific exception types.
            console.print(err_embedding_failed(cfg.embedding.model, cfg.embedding.api_base, str(exc)))
            raise typer.Exit(1) from exc
    finally:
        store.close()

    if not results:
        console.print("[dim]No relevant context found.[/]")
        return
    for i, item in enumerate(results, start=1):
        console.print(_render(i, item, full))


def _min_score(cfg: RecallConfig):
    if cfg.retrieval.min_score is not None:
        return cfg.retrieval.min_score
    return dynamic_min_score if cfg.retrieval.dynamic_min_score else None


def _editor_state(open_file: Path | None, caret: int, attach: list[Path]) -> StaticEditorState:
    current = None
    if open_file is not None:
        try:
            text = open_file.read_text(encoding="utf-8", errors="replace")
        except OSError:
            console.print(f"[yellow]Cannot read --open file '{escape(str(open_file))}', ignoring it.[/]")
        else:
            current = OpenFile(path=open_file, text=text, caret_offset=caret)
    return StaticEditorState(open_file=current, attached=list(attach))


def _render(index: int, item: ComposedContent, full: bool) -> Panel:
    text = item.text if full or len(item.text) <= _PREVIEW_CHARS else item.text[:_PREVIEW_CHARS] + " …"
    if item.origin is Origin.STORE and item.match is not None:
        source = item.match.document.metadata.get(FILE_PATH, item.match.id)
        title = f"{index}. {escape(str(source))}  [dim]score {item.match.score:.2f}[/]"
    else:
        source = item.entry.source if item.entry is not None else "editor"
        kind = item.entry.kind.value.replace("_", " ") if item.entry is not None else "live"
        title = f"{index}. {escape(str(source))}  [dim]{kind}[/]"
    return Panel(escape(text), title=title, title_align="left", expand=False)
