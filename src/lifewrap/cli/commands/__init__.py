"""Command registration utilities for the LifeWrap CLI."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from lifewrap.cli.commands import journal
from lifewrap.cli.commands.journal import ApplicationFactory


def register_commands(
    app: typer.Typer,
    console: Console,
    application_factory: Optional[ApplicationFactory] = None,
) -> None:
    """Attach command groups to the provided Typer application."""

    journal.register(app, console, application_factory)

    @app.callback(invoke_without_command=True)
    def main_callback(ctx: typer.Context) -> None:
        """Display a default message when no subcommand is provided."""

        if ctx.invoked_subcommand is None:
            console.print("[bold green]LifeWrap CLI ready for commands.[/bold green]")


__all__ = ["ApplicationFactory", "register_commands"]
