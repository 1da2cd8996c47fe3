"""Recall rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from recall.cli.errors import err_index_locked
    console.print(err_index_locked(index_dir))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_index_locked(index_dir: str) -> str:
    """Another process holds the project index open."""
    return (
        f"[red]Error:[/] The index at '{escape(index_dir)}' is in use by another recall process.\n"
        "  Wait for it to finish (or stop it), then retry."
    )


def err_storage(detail: str) -> str:
    """The index could not be read or written."""
    return (
        f"[red]Error:[/] Index storage failure: {escape(detail)}\n"
        "  If the index is corrupted, clear it:  recall reset --project <name>"
    )


def err_config(detail: str) -> str:
    """A config file is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(detail)}\n"
        "  Fix the file (~/.recall/config.yaml or recall.yaml) and retry."
    )


def err_not_a_directory(path: str) -> str:
    return (
        f"[red]Error:[/] '{escape(path)}' is not a directory.\n"
        "  Pass the root folder of the project to index."
    )


def err_project_not_indexed(project_id: str) -> str:
    """No index exists for *project_id*."""
    return (
        f"[yellow]Project not indexed:[/] '{escape(project_id)}' has no knowledge index.\n"
        "  Run:  recall index <project-dir>"
    )


def err_embedding_failed(model: str, api_base: str | None, detail: str) -> str:
    """The embedding backend rejected the request."""
    where = f" at '{api_base}'" if api_base else ""
    return (
        f"[red]Error:[/] Embedding model '{escape(model)}'{escape(where)} failed: {escape(detail)}\n"
        "  Check the model supports embeddings and the server is reachable,\n"
        "  or select another one:  export RECALL_EMBEDDING_MODEL=<provider/model>"
    )


def warn_skipped_files(skipped: int, failed_batches: int) -> str:
    """Shown after an index run in which some batches failed."""
    return (
        f"[yellow]⚠[/] {skipped} file(s) skipped ({failed_batches} failed batch(es)).\n"
        "  Details were logged; re-run with --verbose to see them.\n"
        "  The project is still marked indexed. Force a retry with:  recall index --force"
    )


def warn_file_limit(limit: int) -> str:
    """Shown after an index run that stopped at indexing.max_files."""
    return (
        f"[yellow]⚠[/] Maximum indexable files limit ({limit}) exceeded; the rest of the tree was not indexed.\n"
        "  Narrow indexing.sources / indexing.exclude or raise indexing.max_files in recall.yaml"
    )
