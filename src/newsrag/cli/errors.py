"""newsrag CLI messages — every problem shown with the action that fixes it.

Usage:
    from newsrag.cli.errors import err_config
    console.print(err_config(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_config(detail: str) -> str:
    """Configuration could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix newsrag.yaml (or ~/.newsrag/config.yaml) and retry."
    )


def err_empty_argument(name: str) -> str:
    return f"[red]Error:[/] {name} must not be empty."


def warn_store_fallback(reason: str | None) -> str:
    """The key/value store is unavailable; results are not cached or persisted."""
    return (
        f"[yellow]⚠[/]  Store unavailable ({reason or 'not configured'}); "
        "caching and session history are disabled.\n"
        "  Set:  export KV_REST_API_URL=... KV_REST_API_TOKEN=..."
    )


def warn_empty_corpus(path: str) -> str:
    """No chunks could be loaded from the corpus file."""
    return (
        f"[yellow]⚠[/]  No embedded chunks loaded from '{path}'.\n"
        "  Run the ingestion and embedding setup, or set NEWSRAG_CORPUS_PATH."
    )
