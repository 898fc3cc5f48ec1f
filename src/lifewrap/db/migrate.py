"""Apply the journal schema files shipped under `db/migrations`."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from lifewrap.config.settings import Settings, get_settings
from lifewrap.db.connection import connection_from_dsn

MIGRATIONS_ROOT = Path(__file__).resolve().parent / "migrations"

_TABLE_PATTERN = re.compile(r"CREATE TABLE IF NOT EXISTS (\w+)", re.IGNORECASE)
_INDEX_PATTERN = re.compile(r"CREATE (UNIQUE )?INDEX IF NOT EXISTS (\w+)", re.IGNORECASE)


class MigrationError(RuntimeError):
    """Raised when a schema file fails; nothing from the run is committed."""


def migration_files(directory: Path = MIGRATIONS_ROOT) -> List[Path]:
    """Return the schema files in the order they must be applied (by numeric prefix)."""

    return sorted(directory.glob("*.sql"))


def describe_migration(sql: str) -> Tuple[List[str], List[str]]:
    """List the tables and indexes a schema file declares; unique indexes are marked."""

    tables = _TABLE_PATTERN.findall(sql)
    indexes = [f"{name} (unique)" if unique else name for unique, name in _INDEX_PATTERN.findall(sql)]
    return tables, indexes


def run_migrations(
    console: Optional[Console] = None,
    settings: Optional[Settings] = None,
    directory: Path = MIGRATIONS_ROOT,
) -> List[str]:
    """Apply every schema file in one transaction and return the applied file names.

    Each file only uses ``IF NOT EXISTS`` statements, so re-running is safe. On failure the
    transaction is rolled back and :class:`MigrationError` names the file that broke.
    """

    console = console or Console()
    files = migration_files(directory)
    if not files:
        console.print("[yellow]No journal migrations found.[/yellow]")
        return []

    settings = settings or get_settings()
    connection = connection_from_dsn(str(settings.database_url))

    report = Table(title="Journal schema")
    report.add_column("Migration", style="cyan")
    report.add_column("Tables", style="green")
    report.add_column("Indexes", style="magenta")

    applied: List[str] = []
    current: Optional[Path] = None
    try:
        with connection.cursor() as db_cursor:
            for current in files:
                sql = current.read_text(encoding="utf-8")
                db_cursor.execute(sql)
                tables, indexes = describe_migration(sql)
                report.add_row(current.name, ", ".join(tables) or "-", ", ".join(indexes) or "-")
                applied.append(current.name)
        connection.commit()
    except Exception as exc:
        connection.rollback()
        failed = current.name if current is not None else "<none>"
        console.print(f"[red]Migration {failed} failed:[/red] {exc}")
        raise MigrationError(f"Migration {failed} failed: {exc}") from exc
    finally:
        connection.close()

    console.print(report)
    return applied


def main() -> None:
    """Entry point for `python -m lifewrap.db.migrate`."""

    run_migrations()


if __name__ == "__main__":  # pragma: no cover
    main()
