"""Snapshot commands: create, list, show, restore."""

from pathlib import Path

import typer
from rich.table import Table

from temporal_config.commands import (
    ACTOR_OPTION,
    AGENT_OPTION,
    DB_OPTION,
    JSON_OPTION,
    PERSONA_OPTION,
    WORKFLOW_OPTION,
    build_scope,
    cli_errors,
    open_service,
    print_json,
)
from temporal_config.config.messages import ERROR_MESSAGES, INFO_MESSAGES, SUCCESS_MESSAGES
from temporal_config.constants import DEFAULT_SNAPSHOT_LIST_LIMIT
from temporal_config.utils import console, print_error, print_info, print_success
from temporal_config.utils.timeutils import to_iso

snapshot_app = typer.Typer(
    name="snapshot",
    help="Capture and restore whole-configuration snapshots",
    no_args_is_help=True,
)


@snapshot_app.command("create")
def create(
    name: str = typer.Argument(..., help="Unique snapshot name"),
    description: str | None = typer.Option(None, "--description", help="Description"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Capture the resolved value of every key for a scope.

    Example:
        tcfg snapshot create before-q3-launch --persona rachel
    """
    with cli_errors(), open_service(db) as service:
        snapshot = service.create_snapshot(
            name,
            actor=actor,
            description=description,
            scope_filter=build_scope(persona, agent, workflow),
        )
    print_success(
        SUCCESS_MESSAGES["snapshot_created"].format(
            snapshot_id=snapshot.id, name=snapshot.name, count=snapshot.metrics["entries"]
        )
    )


@snapshot_app.command("list")
def list_snapshots(
    limit: int = typer.Option(DEFAULT_SNAPSHOT_LIST_LIMIT, "--limit", "-n", min=1),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """List snapshots, newest first."""
    with cli_errors(), open_service(db) as service:
        snapshots = service.list_snapshots(limit)

    if json_output:
        print_json([snapshot.to_dict() for snapshot in snapshots])
        return
    if not snapshots:
        print_info(INFO_MESSAGES["no_snapshots"])
        return

    table = Table(title="Snapshots")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Scope")
    table.add_column("Entries", justify="right")
    table.add_column("Captured")
    table.add_column("By", style="dim")
    for snapshot in snapshots:
        table.add_row(
            str(snapshot.id),
            snapshot.name,
            str(snapshot.scope_filter),
            str(snapshot.metrics["entries"]),
            to_iso(snapshot.captured_at),
            snapshot.created_by,
        )
    console.print(table)


@snapshot_app.command("show")
def show(
    snapshot_id: int = typer.Argument(..., help="Snapshot id"),
    db: Path | None = DB_OPTION,
) -> None:
    """Show a snapshot with its captured values."""
    with cli_errors(), open_service(db) as service:
        snapshot = service.get_snapshot(snapshot_id)
    print_json(snapshot.to_dict())


@snapshot_app.command("restore")
def restore(
    snapshot_id: int = typer.Argument(..., help="Snapshot id"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    reason: str | None = typer.Option(None, "--reason", "-r", help="Reason for the restore"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Write a snapshot's values back, effective now.

    Restores at the snapshot's own scope unless a scope option is given.
    """
    scope = None
    if persona is not None or agent is not None or workflow is not None:
        scope = build_scope(persona, agent, workflow)
    with cli_errors("restore_failed"), open_service(db) as service:
        result = service.restore_from_snapshot(
            snapshot_id, actor=actor, scope=scope, reason=reason
        )

    if result["success"]:
        print_success(
            SUCCESS_MESSAGES["snapshot_restored"].format(
                count=result["affected_count"], snapshot_id=snapshot_id
            )
        )
        return
    details = result.get("error_details", {})
    print_error(ERROR_MESSAGES["restore_failed"].format(error=details.get("message", details)))
    raise typer.Exit(code=1)
