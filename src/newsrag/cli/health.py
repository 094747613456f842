"""newsrag health — report the state of the store, corpus and embedding provider."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.panel import Panel

from newsrag.cli import common
from newsrag.cli.common import console
from newsrag.health import check_health

_STYLE = {
    "connected": "green",
    "loaded": "green",
    "provider": "green",
    "fallback": "yellow",
    "empty": "yellow",
    "partial": "yellow",
    "error": "red",
}


def health_cmd(
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the report as JSON."),
    ] = False,
) -> None:
    """Check each service. Degraded services do not fail the command."""
    app = common.load_app()
    try:
        report = check_health(app.backend, app.store, app.embedder)
    finally:
        app.close()

    if as_json:
        typer.echo(json.dumps(report))
        return

    lines = [f"Status: [bold]{report['status']}[/]"]
    for name, state in report["services"].items():
        lines.append(f"  {name:<13} [{_STYLE.get(state, 'white')}]{state}[/]")
    corpus = report["corpus"]
    if corpus["skipped"]:
        lines.append(
            f"  [yellow]{corpus['skipped']} of {corpus['total']} corpus records skipped[/]"
        )
    console.print(Panel("\n".join(lines), title="[bold]Health[/]", expand=False))
