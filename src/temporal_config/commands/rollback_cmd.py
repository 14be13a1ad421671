"""Rollback commands: validate, preview, version, date."""

from pathlib import Path

import typer

from temporal_config.commands import (
    ACTOR_OPTION,
    AGENT_OPTION,
    DB_OPTION,
    PERSONA_OPTION,
    WORKFLOW_OPTION,
    build_scope,
    cli_errors,
    format_value,
    open_service,
    parse_date,
    print_json,
)
from temporal_config.config.messages import (
    ERROR_MESSAGES,
    INFO_MESSAGES,
    SUCCESS_MESSAGES,
    WARNING_MESSAGES,
)
from temporal_config.models.results import RollbackResult
from temporal_config.utils import console, print_error, print_info, print_success, print_warning

rollback_app = typer.Typer(
    name="rollback",
    help="Roll settings back to an earlier version or date",
    no_args_is_help=True,
)


def _report(result: RollbackResult) -> None:
    if result["success"]:
        print_success(
            SUCCESS_MESSAGES["rolled_back"].format(
                count=result["affected_count"],
                elapsed=result["execution_time_ms"],
                change_log_id=result["change_log_id"],
            )
        )
        return
    details = result.get("error_details", {})
    print_error(ERROR_MESSAGES["rollback_failed"].format(error=details.get("message", details)))
    if details:
        print_json(details)
    raise typer.Exit(code=1)


def _single_target(version: int | None, date: str | None) -> None:
    if (version is None) == (date is None):
        print_error(ERROR_MESSAGES["target_required"])
        raise typer.Exit(code=1)


@rollback_app.command("validate")
def validate(
    key: str | None = typer.Argument(None, help="Configuration key (omit for a bulk rollback)"),
    version: int | None = typer.Option(None, "--version", "-v", help="Target version"),
    date: str | None = typer.Option(None, "--date", "-d", help="Target date (ISO 8601)"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Check a rollback target without writing anything."""
    target_date = parse_date(date)
    with cli_errors(), open_service(db) as service:
        validation = service.validate_rollback(
            key,
            build_scope(persona, agent, workflow),
            target_version=version,
            target_date=target_date,
        )

    for warning in validation["warnings"]:
        print_warning(warning)
    if not validation["is_valid"]:
        for error in validation["errors"]:
            print_error(error)
        raise typer.Exit(code=1)
    print_success(f"Valid rollback target ({len(validation['affected_keys'])} key(s))")
    for affected in validation["affected_keys"]:
        console.print(f"  {affected}")


@rollback_app.command("preview")
def preview(
    key: str = typer.Argument(..., help="Configuration key"),
    version: int | None = typer.Option(None, "--version", "-v", help="Target version"),
    date: str | None = typer.Option(None, "--date", "-d", help="Target date (ISO 8601)"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Show what a single-key rollback would change."""
    _single_target(version, date)
    target_date = parse_date(date)
    with cli_errors(), open_service(db) as service:
        result = service.preview_rollback_changes(
            key,
            build_scope(persona, agent, workflow),
            target_version=version,
            target_date=target_date,
        )

    console.print(f"current: {format_value(result['current_value'])}")
    console.print(f"target:  {format_value(result['target_value'])}")
    if not result["will_change"]:
        print_warning(WARNING_MESSAGES["no_change"])


@rollback_app.command("version")
def to_version(
    key: str = typer.Argument(..., help="Configuration key"),
    version: int = typer.Argument(..., help="Target version"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    reason: str | None = typer.Option(None, "--reason", "-r", help="Reason for the rollback"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Roll a key back to a version at exactly the given scope."""
    with cli_errors("rollback_failed"), open_service(db) as service:
        result = service.rollback_setting(
            key,
            version,
            scope=build_scope(persona, agent, workflow),
            actor=actor,
            reason=reason,
        )
    _report(result)


@rollback_app.command("date")
def to_date(
    date: str = typer.Argument(..., help="Target date (ISO 8601)"),
    key: str | None = typer.Option(None, "--key", "-k", help="Key (default: every key)"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    reason: str | None = typer.Option(None, "--reason", "-r", help="Reason for the rollback"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation for bulk rollbacks"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Roll one key, or every key at the scope, back to a date.

    Example:
        tcfg rollback date 2026-03-01T00:00:00Z --agent 7 --reason "bad deploy"
    """
    target_date = parse_date(date)
    scope = build_scope(persona, agent, workflow)
    with cli_errors("rollback_failed"), open_service(db) as service:
        if key is None and not yes:
            validation = service.validate_rollback(None, scope, target_date=target_date)
            if not validation["affected_keys"]:
                print_info(INFO_MESSAGES["nothing_to_change"])
                return
            for warning in validation["warnings"]:
                print_warning(warning)
            typer.confirm(
                f"Roll back {len(validation['affected_keys'])} key(s) at {scope}?", abort=True
            )
        result = service.rollback_to_date(
            key, target_date, scope=scope, actor=actor, reason=reason  # type: ignore[arg-type]
        )
    _report(result)
