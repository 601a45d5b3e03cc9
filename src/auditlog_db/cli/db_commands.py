"""Database management commands."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from auditlog_db.cli.common import DbOption, open_database

console = Console()

db_app = typer.Typer(
    name="db",
    help="Database management operations",
    no_args_is_help=True,
)


@db_app.command(name="init")
def init_database(
    db_url: Annotated[
        Optional[str],
        typer.Option("--url", "--db", help="Database URL (default: AUDITLOG_DATABASE_URL)"),
    ] = None,
) -> None:
    """
    Initialize database schema (idempotent).

    Safe to run multiple times; existing tables and events are kept.
    """
    from sqlalchemy import inspect

    console.print("[bold blue]Checking database...[/bold blue]")
    db = open_database(db_url)
    try:
        console.print(f"Database: {db.engine.url.render_as_string(hide_password=True)}")
        tables = inspect(db.engine).get_table_names()
        console.print(f"[green]✓[/green] Database initialized ({len(tables)} tables)")
    finally:
        db.close()


@db_app.command(name="stats")
def database_stats(db_url: DbOption = None) -> None:
    """Display event counts per severity and per logger."""
    from auditlog_db.db import EventRepository
    from auditlog_db.query import EventQuery

    db = open_database(db_url)
    try:
        with db.session() as session:
            repo = EventRepository(session)
            total = repo.count()
            by_level = repo.counts_by("severity")
            by_logger = repo.counts_by("logger_slug")
        newest = EventQuery(db).max_id()
    finally:
        db.close()

    console.print(f"[bold blue]Events:[/bold blue] {total} (newest id: {newest or '-'})")

    for title, rows in (("By severity", by_level), ("By logger", by_logger)):
        table = Table(title=title)
        table.add_column("Value", style="cyan")
        table.add_column("Events", style="magenta", justify="right")
        for value, count in rows:
            table.add_row(value, str(count))
        console.print(table)


@db_app.command(name="purge")
def purge_events(
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", min=1, help="Retention in days (default: AUDITLOG_RETENTION_DAYS)"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
    db_url: DbOption = None,
) -> None:
    """
    Delete events whose last occurrence is older than the retention period.
    """
    from auditlog_db.config import get_settings
    from auditlog_db.errors import StoreError
    from auditlog_db.services import EventStore

    settings = get_settings()
    days = days if days is not None else settings.retention_days

    if not yes and not typer.confirm(f"Delete events older than {days} days?"):
        console.print("[yellow]Aborted[/yellow]")
        raise typer.Exit(code=1)

    db = open_database(db_url)
    try:
        deleted = EventStore(db, settings=settings).purge(days)
    except StoreError as e:
        console.print(f"[red]✗[/red] Purge failed: {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    console.print(f"[green]✓[/green] Deleted {deleted} events older than {days} days")
