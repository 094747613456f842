"""newsrag search / ask — retrieve context for a query, or run a chat turn.

Usage:
  newsrag search "latest climate policy" -k 3
  newsrag ask "what happened with the election?" --session abc123
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel

from newsrag.cli import common
from newsrag.cli.common import console
from newsrag.cli.errors import err_empty_argument, warn_empty_corpus, warn_store_fallback
from newsrag.store.cache import search_key


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    top_k: Annotated[
        int | None,
        typer.Option(
            "--top-k",
            "-k",
            min=1,
            help="Maximum number of chunks to retrieve (defaults to retrieval.top_k).",
        ),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Skip the search cache for this query."),
    ] = False,
) -> None:
    """Show the context block, sources and summary retrieved for QUERY."""
    if not query.strip():
        console.print(err_empty_argument("QUERY"))
        raise typer.Exit(1)

    app = common.load_app()
    try:
        key = search_key(query)
        cached = None if no_cache else app.cache.get(key)
        if isinstance(cached, dict) and "context" in cached:
            context, sources, summary = cached["context"], cached.get("sources") or [], "(cached)"
        else:
            if app.store.load().loaded == 0:
                console.print(warn_empty_corpus(str(app.store.corpus_path)))
            rag = app.store.build_context(query, top_k or app.config.retrieval.top_k)
            context, sources, summary = rag.context, rag.sources, rag.summary
            if not no_cache:
                app.cache.set(key, rag.to_cache(), app.config.cache.ttl)

        console.print(Panel(context, title="[bold]Context[/]", expand=False))
        if sources:
            console.print("[bold]Sources:[/]")
            for source in sources:
                console.print(f"  • {source}")
        console.print(f"\n{summary}")
    finally:
        app.close()


def ask_cmd(
    query: Annotated[str, typer.Argument(help="Message to answer.")],
    session: Annotated[
        str,
        typer.Option("--session", "-s", help="Session id the exchange is recorded under."),
    ],
) -> None:
    """Answer QUERY from retrieved news and append the exchange to the session log."""
    if not query.strip():
        console.print(err_empty_argument("QUERY"))
        raise typer.Exit(1)
    if not session.strip():
        console.print(err_empty_argument("--session"))
        raise typer.Exit(1)

    app = common.load_app()
    try:
        reply = app.pipeline.handle(query, session)
        if app.backend.is_disabled:
            console.print(warn_store_fallback(app.backend.disabled_reason))

        console.print(Panel(reply.response, title="[bold]Answer[/]", expand=False))
        for source in reply.sources:
            console.print(f"  • {source}")
        console.print(
            f"[dim]session {reply.session_id}{' · cached' if reply.cached else ''}[/]"
        )
    finally:
        app.close()
