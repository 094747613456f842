"""newsrag history / clear / analytics — inspect and manage session logs."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from newsrag.cli import common
from newsrag.cli.common import console
from newsrag.cli.errors import warn_store_fallback

_PREVIEW = 80


def history_cmd(
    session: Annotated[str, typer.Argument(help="Session id.")],
) -> None:
    """List the messages stored for SESSION, oldest first."""
    app = common.load_app()
    try:
        messages = app.sessions.read(session)
        if app.backend.is_disabled:
            console.print(warn_store_fallback(app.backend.disabled_reason))

        table = Table(title=f"Session {session} ({len(messages)} messages)")
        table.add_column("Time", style="dim")
        table.add_column("Role")
        table.add_column("Content")
        for message in messages:
            content = message.content.replace("\n", " ")
            if len(content) > _PREVIEW:
                content = content[:_PREVIEW] + "…"
            table.add_row(message.timestamp, message.role, content)
        console.print(table)
    finally:
        app.close()


def clear_cmd(
    session: Annotated[str, typer.Argument(help="Session id.")],
) -> None:
    """Delete the stored history of SESSION."""
    app = common.load_app()
    try:
        if app.sessions.clear(session):
            console.print(f"[green]✓[/] Session cleared: {session}")
    finally:
        app.close()


def analytics_cmd() -> None:
    """Show usage across all stored sessions."""
    app = common.load_app()
    try:
        stats = app.sessions.analytics()
    finally:
        app.close()

    if stats.error:
        console.print(warn_store_fallback(app.backend.disabled_reason))

    lines = [
        f"Sessions: [bold]{stats.total_sessions}[/]  |  "
        f"Messages: [bold]{stats.total_messages}[/]  |  "
        f"Avg length: [bold]{stats.average_session_length}[/]",
    ]
    if stats.top_queries:
        lines.append("Top query words: " + ", ".join(f"{w} ({n})" for w, n in stats.top_queries))
    for day, count in stats.daily_stats:
        lines.append(f"  {day}: {count} messages")
    console.print(Panel("\n".join(lines), title="[bold]Session Analytics[/]", expand=False))
