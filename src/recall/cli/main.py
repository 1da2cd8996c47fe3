"""Recall CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from recall.cli.index import index_cmd
from recall.cli.reset import reset_cmd
from recall.cli.search import search_cmd
from recall.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("recall")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"recall {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="recall",
    help=(
        "Recall: local knowledge store for code assistants.\n\n"
        "  recall index   Index a project tree into its embedding store.\n"
        "  recall search  Retrieve stored and live context for a query."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Recall: local knowledge store for code assistants."""


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("reset")(reset_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Recall version."""
    typer.echo(f"recall {_installed_version()}")


if __name__ == "__main__":
    app()
