"""Command-line interface package for LifeWrap."""

from rich.console import Console

from lifewrap.cli.main import CLIApplication, create_app

console = Console()

__all__ = ["CLIApplication", "console", "create_app"]
