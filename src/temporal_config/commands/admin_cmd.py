"""Cache, audit trail and server commands."""

from pathlib import Path

import typer
from rich.table import Table

from temporal_config.commands import (
    DB_OPTION,
    JSON_OPTION,
    cli_errors,
    format_value,
    open_service,
    print_json,
)
from temporal_config.config.messages import INFO_MESSAGES, SUCCESS_MESSAGES
from temporal_config.constants import DEFAULT_AUDIT_LIST_LIMIT
from temporal_config.utils import console, print_info, print_panel, print_success
from temporal_config.utils.timeutils import to_iso

cache_app = typer.Typer(
    name="cache",
    help="Inspect or clear the resolution cache",
    no_args_is_help=True,
)


@cache_app.command("stats")
def stats(db: Path | None = DB_OPTION) -> None:
    """Show resolution cache statistics for this process."""
    with cli_errors(), open_service(db) as service:
        print_json(dict(service.cache_stats()))


@cache_app.command("clear")
def clear(db: Path | None = DB_OPTION) -> None:
    """Drop every cached resolution."""
    with cli_errors(), open_service(db) as service:
        service.clear_cache()
    print_success(SUCCESS_MESSAGES["cache_cleared"])


def audit_command(
    actor: str | None = typer.Option(None, "--actor", help="Only this actor"),
    limit: int = typer.Option(DEFAULT_AUDIT_LIST_LIMIT, "--limit", "-n", min=1),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Show the audit trail of API write requests, newest first."""
    with cli_errors(), open_service(db) as service:
        activities = service.list_activity(limit, actor=actor)

    if json_output:
        print_json(
            [
                {
                    "id": activity.id,
                    "actor": activity.actor,
                    "operation": activity.operation,
                    "target": activity.target,
                    "details": activity.details,
                    "timestamp": to_iso(activity.timestamp),
                }
                for activity in activities
            ]
        )
        return
    if not activities:
        print_info(INFO_MESSAGES["no_activity"])
        return

    table = Table(title="Audit trail")
    table.add_column("When")
    table.add_column("Actor", style="cyan")
    table.add_column("Operation")
    table.add_column("Target")
    table.add_column("Details", style="dim")
    for activity in activities:
        table.add_row(
            to_iso(activity.timestamp),
            activity.actor,
            activity.operation,
            activity.target,
            format_value(activity.details),
        )
    console.print(table)


def serve_command(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Rotating log file"),
    db: Path | None = DB_OPTION,
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from temporal_config.api import configure_logging, create_app
    from temporal_config.config.settings import api_settings

    host = host or api_settings.host
    port = port or api_settings.port
    configure_logging(
        log_level or api_settings.log_level,
        log_file or api_settings.log_file,
        max_bytes=api_settings.log_max_bytes,
        backup_count=api_settings.log_backup_count,
    )
    with cli_errors():
        app = create_app(db_path=db)
    print_panel(INFO_MESSAGES["serving"].format(host=host, port=port), title="temporal-config")
    uvicorn.run(app, host=host, port=port, log_level="warning")
