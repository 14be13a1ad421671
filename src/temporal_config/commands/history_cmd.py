"""History commands: versions, changes."""

from pathlib import Path

import typer
from rich.table import Table

from temporal_config.commands import (
    AGENT_OPTION,
    DB_OPTION,
    JSON_OPTION,
    PERSONA_OPTION,
    WORKFLOW_OPTION,
    build_scope,
    cli_errors,
    format_value,
    open_service,
    parse_date,
    print_json,
)
from temporal_config.config.messages import INFO_MESSAGES
from temporal_config.constants import DEFAULT_CHANGE_HISTORY_LIMIT, DEFAULT_VERSION_HISTORY_LIMIT
from temporal_config.models.enums import ChangeOperation
from temporal_config.utils import console, print_info
from temporal_config.utils.timeutils import to_iso

history_app = typer.Typer(
    name="history",
    help="Inspect version and change history",
    no_args_is_help=True,
)


@history_app.command("versions")
def versions(
    key: str = typer.Argument(..., help="Configuration key"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    limit: int = typer.Option(DEFAULT_VERSION_HISTORY_LIMIT, "--limit", "-n", min=1),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Versions of a setting at exactly the given scope, newest first."""
    scope = build_scope(persona, agent, workflow)
    with cli_errors(), open_service(db) as service:
        history = service.get_version_history(key, scope, limit=limit)

    if json_output:
        print_json([version.to_dict() for version in history])
        return
    if not history:
        print_info(INFO_MESSAGES["no_versions"].format(key=key, scope=scope))
        return

    table = Table(title=f"{key} @ {scope}")
    table.add_column("Version", justify="right", style="cyan")
    table.add_column("Value")
    table.add_column("From")
    table.add_column("To")
    table.add_column("By", style="dim")
    for version in history:
        table.add_row(
            str(version.version),
            format_value(version.value),
            to_iso(version.effective_from),
            to_iso(version.effective_to) or "[green]open[/green]",
            version.created_by,
        )
    console.print(table)


@history_app.command("changes")
def changes(
    key: str = typer.Argument(..., help="Configuration key (use '*' for bulk summaries)"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    all_scopes: bool = typer.Option(False, "--all-scopes", help="Ignore the scope filter"),
    from_date: str | None = typer.Option(None, "--from", help="Earliest timestamp"),
    to_date: str | None = typer.Option(None, "--to", help="Latest timestamp"),
    operation: ChangeOperation | None = typer.Option(None, "--operation", "-o"),
    limit: int = typer.Option(DEFAULT_CHANGE_HISTORY_LIMIT, "--limit", "-n", min=1),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Change-log rows for a key, newest first."""
    scope = None if all_scopes else build_scope(persona, agent, workflow)
    start = parse_date(from_date)
    end = parse_date(to_date)
    with cli_errors(), open_service(db) as service:
        rows = service.get_change_history(
            key, scope, from_date=start, to_date=end, limit=limit, operation=operation
        )

    if json_output:
        print_json([row.to_dict() for row in rows])
        return
    if not rows:
        print_info(INFO_MESSAGES["no_changes"].format(key=key))
        return

    table = Table(title=f"Changes to {key}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("When")
    table.add_column("Operation")
    table.add_column("Scope")
    table.add_column("Previous")
    table.add_column("New")
    table.add_column("Actor", style="dim")
    table.add_column("OK")
    for row in rows:
        table.add_row(
            str(row.id),
            to_iso(row.timestamp),
            row.operation.value,
            str(row.scope),
            format_value(row.previous_value),
            format_value(row.new_value),
            row.actor,
            "[green]yes[/green]" if row.success else "[red]no[/red]",
        )
    console.print(table)
