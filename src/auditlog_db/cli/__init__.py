"""Console script for auditlog_db."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

app = typer.Typer(
    name="auditlog-db",
    help="Audit event log CLI - capture, query and maintain the event store",
    no_args_is_help=True,
)
console = Console()

# Import subcommand apps
from auditlog_db.cli.db_commands import db_app  # noqa: E402
from auditlog_db.cli.event_commands import events_app  # noqa: E402

# Register subcommands
app.add_typer(db_app, name="db", help="Database management operations")
app.add_typer(events_app, name="events", help="Query, inspect and capture events")


@app.callback()
def main(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Log level (default: AUDITLOG_LOG_LEVEL)"),
    ] = "",
) -> None:
    """Configure logging before any command runs."""
    from auditlog_db.config import get_settings
    from auditlog_db.utils import setup_logging

    setup_logging(log_level or get_settings().log_level)


if __name__ == "__main__":
    app()
