"""Shared CLI plumbing: console, logging setup, application loading."""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from newsrag.app import NewsragApp, build_app
from newsrag.cli.errors import err_config
from newsrag.config import ConfigError

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich on stderr; quiet third-party loggers."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    for noisy in ("LiteLLM", "litellm", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def load_app() -> NewsragApp:
    """Build the application from config, exiting with a readable error on bad config."""
    try:
        return build_app()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
