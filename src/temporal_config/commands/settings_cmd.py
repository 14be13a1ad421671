"""Setting commands: get, set."""

from pathlib import Path

import typer

from temporal_config.commands import (
    ACTOR_OPTION,
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
    parse_value,
    print_json,
)
from temporal_config.config.messages import SUCCESS_MESSAGES
from temporal_config.utils import console, print_success
from temporal_config.utils.timeutils import to_iso


def get_command(
    key: str = typer.Argument(..., help="Configuration key"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    as_of: str | None = typer.Option(None, "--as-of", help="Point in time (ISO 8601)"),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Resolve a setting for a scope, now or at --as-of.

    Example:
        tcfg get max_workflows --persona rachel --agent 7
    """
    scope = build_scope(persona, agent, workflow)
    when = parse_date(as_of)
    with cli_errors(), open_service(db) as service:
        value = service.get_setting(key, scope, when)

    if json_output:
        print_json({"key": key, "scope": scope.to_dict(), "as_of": to_iso(when), "value": value})
    else:
        console.print(format_value(value))


def set_command(
    key: str = typer.Argument(..., help="Configuration key"),
    value: str = typer.Argument(..., help="New value (JSON, or a plain string)"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    effective_from: str | None = typer.Option(
        None, "--from", help="Start of the effective window (default: now)"
    ),
    effective_to: str | None = typer.Option(
        None, "--to", help="End of the effective window (default: open)"
    ),
    reason: str | None = typer.Option(None, "--reason", "-r", help="Reason for the change"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Append a new version of a setting at exactly the given scope.

    Example:
        tcfg set max_workflows 25 --agent 7 --reason "Q3 capacity"
    """
    scope = build_scope(persona, agent, workflow)
    start = parse_date(effective_from)
    end = parse_date(effective_to)
    with cli_errors(), open_service(db) as service:
        version = service.set_setting(
            key,
            parse_value(value),
            scope=scope,
            effective_from=start,
            effective_to=end,
            actor=actor,
            reason=reason,
        )
    print_success(
        SUCCESS_MESSAGES["set"].format(
            key=key, value=format_value(version.value), version=version.version, scope=scope
        )
    )
