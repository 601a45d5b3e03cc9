"""Event listing, inspection and capture commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from auditlog_db.cli.common import (
    ActorOption,
    DbOption,
    FromOption,
    LastDaysOption,
    LevelOption,
    MonthOption,
    SearchOption,
    ToOption,
    TypeOption,
    UserOption,
    build_cli_filter,
    open_database,
)

console = Console()

events_app = typer.Typer(
    name="events",
    help="Query, inspect and capture events",
    no_args_is_help=True,
)

_LEVEL_STYLES = {
    "debug": "dim",
    "info": "green",
    "notice": "cyan",
    "warning": "yellow",
    "error": "red",
    "critical": "bold red",
    "alert": "bold red",
    "emergency": "bold white on red",
}


@events_app.command(name="list")
def list_events(
    count: Annotated[
        Optional[int],
        typer.Option("--count", "-n", min=1, help="Events per page (default: AUDITLOG_DEFAULT_PAGE_SIZE)"),
    ] = None,
    page: Annotated[
        int,
        typer.Option("--page", "-p", min=1, help="Page number, 1 is the newest"),
    ] = 1,
    levels: LevelOption = None,
    types: TypeOption = None,
    users: UserOption = None,
    actors: ActorOption = None,
    search: SearchOption = None,
    last_days: LastDaysOption = None,
    month: MonthOption = None,
    date_from: FromOption = None,
    date_to: ToOption = None,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: table, json or csv"),
    ] = "table",
    output_file: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write json/csv output to a file"),
    ] = None,
    db_url: DbOption = None,
) -> None:
    """
    List events, newest first.

    Columns: ID, date, initiator, description, via, level, count.
    """
    from auditlog_db.errors import AuditLogError
    from auditlog_db.loggers import default_registry
    from auditlog_db.models.schemas import EventResponse
    from auditlog_db.query import EventQuery

    output_format = output_format.lower()
    if output_format not in ("table", "json", "csv"):
        console.print(f"[red]Error:[/red] Unsupported format: {output_format}")
        console.print("Use table, json or csv")
        raise typer.Exit(code=1)

    registry = default_registry()
    db = open_database(db_url)
    try:
        flt = build_cli_filter(
            levels, types, users, actors, search, last_days, month, date_from, date_to
        )
        result = EventQuery(db, registry=registry).query(flt, page=page, page_size=count)
    except AuditLogError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    rows = [EventResponse.from_event(event, registry) for event in result.events]

    if output_format == "json":
        payload = json.dumps(
            {
                "page": result.page,
                "total_pages": result.total_pages,
                "total_count": result.total_count,
                "events": [r.model_dump(mode="json") for r in rows],
            },
            indent=2,
        )
        _emit(payload, output_file)
        return

    if output_format == "csv":
        import pandas as pd

        columns = ["id", "date", "initiator", "description", "via", "level", "count"]
        df = pd.DataFrame([r.model_dump(include=set(columns)) for r in rows], columns=columns)
        _emit(df.to_csv(index=False), output_file)
        return

    if not rows:
        console.print("[yellow]No events found[/yellow]")
        return

    table = Table(title=f"Events (page {result.page}/{result.total_pages}, {result.total_count} total)")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Date", style="magenta")
    table.add_column("Initiator", style="blue")
    table.add_column("Description")
    table.add_column("Via", style="dim")
    table.add_column("Level")
    table.add_column("Count", justify="right")

    for r in rows:
        style = _LEVEL_STYLES.get(r.level, "")
        table.add_row(
            str(r.id),
            r.date.strftime("%Y-%m-%d %H:%M:%S"),
            escape(r.initiator),
            escape(r.description),
            escape(r.via or ""),
            f"[{style}]{r.level}[/]" if style else r.level,
            str(r.count),
        )
    console.print(table)


@events_app.command(name="show")
def show_event(
    event_id: Annotated[int, typer.Argument(help="Event id")],
    html: Annotated[
        bool,
        typer.Option("--html", help="Print the rendered HTML message and detail table"),
    ] = False,
    db_url: DbOption = None,
) -> None:
    """Show one event with its context and change details."""
    from auditlog_db.constants import MetaKey
    from auditlog_db.errors import AuditLogError
    from auditlog_db.loggers import default_registry
    from auditlog_db.models.initiator import describe_initiator
    from auditlog_db.render import context_diff_rows
    from auditlog_db.services import EventStore

    registry = default_registry()
    db = open_database(db_url)
    try:
        event = EventStore(db, registry=registry).get_by_id(event_id)
    except AuditLogError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if html:
        typer.echo(registry.render(event))
        details = registry.details_html(event)
        if details:
            typer.echo(details)
        return

    console.print(f"[bold]{escape(registry.plain_message(event))}[/bold]", highlight=False)

    info = Table(show_header=False, box=None)
    info.add_column("Field", style="cyan")
    info.add_column("Value")
    info.add_row("ID", str(event.id))
    info.add_row("Logger", event.logger_slug)
    info.add_row("Message key", event.message_key)
    info.add_row("Level", event.severity)
    info.add_row("Initiator", escape(describe_initiator(event.initiator)))
    info.add_row("First seen", event.first_seen.isoformat())
    info.add_row("Last seen", event.last_seen.isoformat())
    info.add_row("Occurrences", str(event.occurrence_count))
    via = event.context.get(MetaKey.VIA.value)
    if via:
        info.add_row("Via", escape(via))
    console.print(info)

    context = event.context
    ctx_table = Table(title="Context")
    ctx_table.add_column("Key", style="cyan")
    ctx_table.add_column("Value")
    for key in sorted(context):
        ctx_table.add_row(key, escape(context[key]))
    console.print(ctx_table)

    logger_info = registry.get(event.logger_slug)
    fields = logger_info.diff_fields if logger_info is not None else None
    changes = [row for row in context_diff_rows(context, fields) if row.old != row.new]
    extra = []
    if logger_info is not None and logger_info.details is not None:
        extra = logger_info.details(event.message_key, context)
    if changes or extra:
        diff_table = Table(title="Details")
        diff_table.add_column("Field", style="cyan")
        diff_table.add_column("Value")
        for label, old, new in changes:
            diff_table.add_row(label, f"[green]{escape(new)}[/green] [red strike]{escape(old)}[/red strike]")
        for label, value in extra:
            diff_table.add_row(label, escape(value))
        console.print(diff_table)


@events_app.command(name="newer")
def count_newer(
    max_id: Annotated[int, typer.Argument(min=0, help="Highest event id already seen")],
    levels: LevelOption = None,
    types: TypeOption = None,
    users: UserOption = None,
    actors: ActorOption = None,
    search: SearchOption = None,
    last_days: LastDaysOption = None,
    month: MonthOption = None,
    date_from: FromOption = None,
    date_to: ToOption = None,
    db_url: DbOption = None,
) -> None:
    """Print how many matching events were added after MAX_ID."""
    from auditlog_db.errors import AuditLogError
    from auditlog_db.loggers import default_registry
    from auditlog_db.query import EventQuery

    db = open_database(db_url)
    try:
        flt = build_cli_filter(
            levels, types, users, actors, search, last_days, month, date_from, date_to
        )
        newer = EventQuery(db, registry=default_registry()).count_newer_than(flt, max_id)
    except AuditLogError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    typer.echo(str(newer))


@events_app.command(name="capture")
def capture_event(
    logger_slug: Annotated[str, typer.Argument(help="Producing logger, e.g. UserLogger")],
    message_key: Annotated[str, typer.Argument(help="Message key, e.g. user_created")],
    level: Annotated[
        str,
        typer.Option("--level", "-l", help="Severity"),
    ] = "info",
    context: Annotated[
        Optional[list[str]],
        typer.Option("--context", "-c", help="Context entry as key=value (repeatable)"),
    ] = None,
    occasion: Annotated[
        Optional[str],
        typer.Option("--occasion", help="Explicit occasion id"),
    ] = None,
    tool: Annotated[
        str,
        typer.Option("--tool", help="Name recorded as the automation initiator"),
    ] = "cli",
    via: Annotated[
        Optional[str],
        typer.Option("--via", help="Channel the event came through, e.g. cron"),
    ] = None,
    db_url: DbOption = None,
) -> None:
    """
    Capture an event on behalf of an automation (scripts, cron jobs).
    """
    from pydantic import ValidationError

    from auditlog_db.errors import AuditLogError
    from auditlog_db.loggers import default_registry
    from auditlog_db.models.initiator import Automation
    from auditlog_db.models.schemas import CaptureRequest
    from auditlog_db.services import EventStore

    try:
        request = CaptureRequest(
            logger_slug=logger_slug,
            message_key=message_key,
            severity=level.lower(),
            context=CaptureRequest.parse_pairs(context or []),
            occasion_id=occasion,
            tool=tool,
            via=via,
        )
    except (ValidationError, ValueError) as e:
        console.print(f"[red]✗[/red] Invalid event: {e}")
        raise typer.Exit(code=1)

    db = open_database(db_url)
    try:
        event_id = EventStore(db, registry=default_registry()).capture(
            request.logger_slug,
            request.message_key,
            request.severity,
            Automation(tool=request.tool),
            request.context,
            occasion_id=request.occasion_id,
            via=request.via,
        )
    except AuditLogError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    console.print(f"[green]✓[/green] Stored event {event_id}")


def _emit(text: str, output_file: Path | None) -> None:
    if output_file is None:
        typer.echo(text)
        return
    output_file.write_text(text)
    console.print(f"[green]✓[/green] Wrote {output_file}")
