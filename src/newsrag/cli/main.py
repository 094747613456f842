"""newsrag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from newsrag.cli.common import configure_logging
from newsrag.cli.health import health_cmd
from newsrag.cli.search import ask_cmd, search_cmd
from newsrag.cli.sessions import analytics_cmd, clear_cmd, history_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("newsrag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"newsrag {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="newsrag",
    help=(
        "newsrag — news retrieval with resilient caching and session logs.\n\n"
        "  newsrag search  Show the context retrieved for a query.\n"
        "  newsrag ask     Answer a query and record it in a session."
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
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """newsrag — news retrieval with resilient caching and session logs."""
    configure_logging(verbose)


app.command("search")(search_cmd)
app.command("ask")(ask_cmd)
app.command("history")(history_cmd)
app.command("clear")(clear_cmd)
app.command("analytics")(analytics_cmd)
app.command("health")(health_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed newsrag version."""
    typer.echo(f"newsrag {_installed_version()}")


if __name__ == "__main__":
    app()
