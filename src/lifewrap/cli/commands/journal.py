"""CLI commands for generating and inspecting journal summaries."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional
from uuid import UUID

import typer
from psycopg2 import Error as DatabaseError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lifewrap.app import JournalApplication, build_application
from lifewrap.db.migrate import MigrationError, run_migrations
from lifewrap.models import PeriodType, Summary
from lifewrap.services.sessions import EmptyTranscriptError, SessionSummaryNotFoundError
from lifewrap.services.storage import StorageError
from lifewrap.services.summarization import SummarizationError

ApplicationFactory = Callable[[Console], JournalApplication]

ROLLUP_LEVELS = {
    "day": PeriodType.DAY,
    "week": PeriodType.WEEK,
    "month": PeriodType.MONTH,
    "year": PeriodType.YEAR,
}


class JournalExitCode:
    """Mapping of meaningful CLI exit codes."""

    SUCCESS = 0
    INVALID_INPUT = 1
    NOT_FOUND = 2
    PROCESSING_ERROR = 4
    STORAGE_ERROR = 5


def register(
    app: typer.Typer,
    console: Console,
    application_factory: Optional[ApplicationFactory] = None,
) -> None:
    """Register CLI commands for session summaries, rollups and the Year Wrap."""

    @lru_cache(maxsize=1)
    def get_application() -> JournalApplication:
        if application_factory is not None:
            return application_factory(console)
        return build_application(console=console)

    @app.command("migrate")
    def migrate() -> None:
        """Apply the bundled SQL migrations."""

        try:
            run_migrations(console=console)
        except MigrationError as exc:
            raise typer.Exit(code=JournalExitCode.STORAGE_ERROR) from exc
        except DatabaseError as exc:
            console.print(f"[red]Cannot reach the journal database:[/red] {exc}")
            raise typer.Exit(code=JournalExitCode.STORAGE_ERROR) from exc

    @app.command("summarize-session")
    def summarize_session(
        session_id: UUID = typer.Argument(..., help="Recording session UUID"),
        force: bool = typer.Option(False, "--force", help="Regenerate even when the transcript is unchanged"),
        include_notes: bool = typer.Option(False, "--include-notes", help="Show the session notes to the engine"),
        json_output: bool = typer.Option(False, "--json", help="Output the summary as JSON"),
    ) -> None:
        coordinator = get_application().summaries
        try:
            summary = asyncio.run(
                coordinator.generate_session_summary(
                    session_id,
                    force_regenerate=force,
                    include_notes=include_notes,
                )
            )
        except EmptyTranscriptError as exc:
            console.print(f"[yellow]{exc}[/yellow]")
            raise typer.Exit(code=JournalExitCode.INVALID_INPUT) from exc
        except SummarizationError as exc:
            console.print(f"[red]Summarization failed:[/red] {exc}")
            raise typer.Exit(code=JournalExitCode.PROCESSING_ERROR) from exc
        except StorageError as exc:
            console.print(f"[red]Storage error:[/red] {exc}")
            raise typer.Exit(code=JournalExitCode.STORAGE_ERROR) from exc

        _emit_summary(console, summary, json_output=json_output)

    @app.command("rollup")
    def rollup(
        level: str = typer.Argument(..., help="Period level: day, week, month or year"),
        date: str = typer.Argument(..., help="Any ISO date inside the period"),
        force: bool = typer.Option(False, "--force", help="Rebuild even when the children are unchanged"),
        json_output: bool = typer.Option(False, "--json", help="Output the summary as JSON"),
    ) -> None:
        period_type = ROLLUP_LEVELS.get(level.lower())
        if period_type is None:
            console.print(f"[red]Error:[/red] Unknown level {level!r}; choose from {', '.join(ROLLUP_LEVELS)}.")
            raise typer.Exit(code=JournalExitCode.INVALID_INPUT)
        moment = _parse_date(console, date)

        summary = asyncio.run(get_application().summaries.update_period_summary(period_type, moment, force))
        if summary is None:
            console.print(f"[yellow]No {period_type.display_name.lower()} summary produced for {date}.[/yellow]")
            raise typer.Exit(code=JournalExitCode.NOT_FOUND)

        _emit_summary(console, summary, json_output=json_output)

    @app.command("year-wrap")
    def year_wrap(
        year: int = typer.Argument(..., help="Calendar year to wrap up"),
        force: bool = typer.Option(False, "--force", help="Call the engine even when nothing changed"),
        json_output: bool = typer.Option(False, "--json", help="Output the Year Wrap as JSON"),
    ) -> None:
        summary = asyncio.run(get_application().summaries.wrap_up_year(datetime(year, 7, 1), force))
        if summary is None:
            console.print(f"[yellow]No Year Wrap produced for {year}.[/yellow]")
            raise typer.Exit(code=JournalExitCode.NOT_FOUND)

        _emit_summary(console, summary, json_output=json_output)

    @app.command("wrap-status")
    def wrap_status(
        year: int = typer.Argument(..., help="Calendar year to check"),
        json_output: bool = typer.Option(False, "--json", help="Output status as JSON"),
    ) -> None:
        """Report how many sessions were recorded since the Year Wrap was generated."""

        coordinator = get_application().summaries

        async def _status() -> tuple[Optional[Summary], int]:
            wrap = await coordinator.fetch_period_summary(PeriodType.YEAR_WRAP, datetime(year, 7, 1))
            if wrap is None:
                return None, 0
            return wrap, await coordinator.get_new_sessions_since_year_wrap(wrap, year)

        wrap, new_sessions = asyncio.run(_status())
        if json_output:
            payload = {
                "year": year,
                "exists": wrap is not None,
                "generated_at": wrap.last_generated_at.isoformat() if wrap else None,
                "new_sessions": new_sessions,
                "stale": new_sessions > 0,
            }
            typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
            return

        if wrap is None:
            console.print(f"No Year Wrap generated for {year}. Run `lifewrap year-wrap {year}`.")
            return
        console.print(f"Year Wrap for {year} generated {wrap.last_generated_at.isoformat()}")
        if new_sessions:
            console.print(f"[yellow]{new_sessions} new sessions since then; consider regenerating.[/yellow]")
        else:
            console.print("[green]Up to date.[/green]")

    @app.command("append-notes")
    def append_notes(
        session_id: UUID = typer.Argument(..., help="Recording session UUID"),
        notes: str = typer.Argument(..., help="Notes appended to the session summary"),
    ) -> None:
        try:
            summary = asyncio.run(get_application().summaries.append_notes_to_session_summary(session_id, notes))
        except SessionSummaryNotFoundError as exc:
            console.print(f"[red]Summary not found:[/red] {exc}")
            raise typer.Exit(code=JournalExitCode.NOT_FOUND) from exc
        except StorageError as exc:
            console.print(f"[red]Storage error:[/red] {exc}")
            raise typer.Exit(code=JournalExitCode.STORAGE_ERROR) from exc

        console.print(f"Notes appended to summary {summary.id}")

    @app.command("show-summary")
    def show_summary(
        session_id: Optional[UUID] = typer.Option(None, "--session", help="Show the summary of this session"),
        level: Optional[str] = typer.Option(None, "--level", help="Period level: day, week, month, year, year_wrap"),
        date: Optional[str] = typer.Option(None, "--date", help="Any ISO date inside the period"),
        json_output: bool = typer.Option(False, "--json", help="Output summary as JSON"),
    ) -> None:
        coordinator = get_application().summaries
        if session_id is not None:
            summary = asyncio.run(coordinator.fetch_session_summary(session_id))
        elif level is not None and date is not None:
            try:
                period_type = PeriodType(level.lower())
            except ValueError:
                console.print(f"[red]Error:[/red] Unknown level {level!r}.")
                raise typer.Exit(code=JournalExitCode.INVALID_INPUT) from None
            summary = asyncio.run(coordinator.fetch_period_summary(period_type, _parse_date(console, date)))
        else:
            console.print("[red]Error:[/red] Provide --session, or --level together with --date.")
            raise typer.Exit(code=JournalExitCode.INVALID_INPUT)

        if summary is None:
            console.print("[yellow]No summary stored.[/yellow]")
            raise typer.Exit(code=JournalExitCode.NOT_FOUND)

        _emit_summary(console, summary, json_output=json_output)


def _emit_summary(console: Console, summary: Summary, *, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(summary.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return
    console.print(_build_summary_panel(summary))


def _build_summary_panel(summary: Summary) -> Panel:
    grid = Table.grid(padding=(0, 1))
    grid.add_column()
    grid.add_row(f"[bold]Period:[/bold] {summary.period_start.isoformat()} to {summary.period_end.isoformat()}")
    if summary.session_id:
        grid.add_row(f"[bold]Session:[/bold] {summary.session_id}")
    grid.add_row(f"[bold]Engine:[/bold] {summary.engine_tier or 'unknown'}")
    grid.add_row(f"[bold]Updated:[/bold] {summary.last_generated_at.isoformat()}")
    grid.add_row("")
    grid.add_row(summary.text)

    if summary.topics_json:
        try:
            topics = json.loads(summary.topics_json)
        except ValueError:
            topics = []
        if topics:
            grid.add_row("")
            grid.add_row(f"[bold]Topics:[/bold] {', '.join(str(topic) for topic in topics)}")

    return Panel.fit(grid, title=f"{summary.period_type.display_name} Summary", border_style="magenta")


def _parse_date(console: Console, raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] Invalid ISO date: {raw}")
        raise typer.Exit(code=JournalExitCode.INVALID_INPUT) from exc


__all__ = ["ApplicationFactory", "JournalExitCode", "register"]
