"""Business rule and template commands."""

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
    open_service,
    parse_date,
    parse_value,
    print_json,
)
from temporal_config.constants import DEFAULT_RULE_ENGINE, DEFAULT_TEMPLATE_LOCALE

rule_app = typer.Typer(
    name="rule",
    help="Scoped business rules",
    no_args_is_help=True,
)

template_app = typer.Typer(
    name="template",
    help="Scoped, per-channel templates",
    no_args_is_help=True,
)


@rule_app.command("get")
def get_rule(
    rule_key: str = typer.Argument(..., help="Rule key"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    as_of: str | None = typer.Option(None, "--as-of", help="Point in time (ISO 8601)"),
    db: Path | None = DB_OPTION,
) -> None:
    """Show the rule in effect for a scope."""
    when = parse_date(as_of)
    with cli_errors(), open_service(db) as service:
        rule = service.get_rule(rule_key, build_scope(persona, agent, workflow), when)
    print_json(rule.model_dump(mode="json"))


@rule_app.command("set")
def set_rule(
    rule_key: str = typer.Argument(..., help="Rule key"),
    expression: str = typer.Argument(..., help="Rule expression (JSON, or a plain string)"),
    params: str | None = typer.Option(None, "--params", help="Parameters as a JSON object"),
    engine: str = typer.Option(DEFAULT_RULE_ENGINE, "--engine", "-e", help="Evaluation engine"),
    description: str = typer.Option("", "--description", help="Description"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    effective_from: str | None = typer.Option(None, "--from", help="Window start"),
    effective_to: str | None = typer.Option(None, "--to", help="Window end"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Append a new version of a business rule."""
    start = parse_date(effective_from)
    end = parse_date(effective_to)
    with cli_errors(), open_service(db) as service:
        rule = service.set_rule(
            rule_key,
            parse_value(expression),
            scope=build_scope(persona, agent, workflow),
            params=parse_value(params) if params else None,
            engine=engine,
            description=description,
            effective_from=start,
            effective_to=end,
            actor=actor,
        )
    print_json(rule.model_dump(mode="json"))


@template_app.command("get")
def get_template(
    template_key: str = typer.Argument(..., help="Template key"),
    channel: str = typer.Option(..., "--channel", "-c", help="email, voice, ui or sms"),
    locale: str = typer.Option(DEFAULT_TEMPLATE_LOCALE, "--locale", help="Locale"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    as_of: str | None = typer.Option(None, "--as-of", help="Point in time (ISO 8601)"),
    db: Path | None = DB_OPTION,
) -> None:
    """Show the template in effect for a scope, channel and locale."""
    when = parse_date(as_of)
    with cli_errors(), open_service(db) as service:
        template = service.get_template(
            template_key,
            channel,
            build_scope(persona, agent, workflow),
            locale=locale,
            as_of=when,
        )
    print_json(template.model_dump(mode="json"))


@template_app.command("set")
def set_template(
    template_key: str = typer.Argument(..., help="Template key"),
    content: str = typer.Argument(..., help="Template content (JSON, or a plain string)"),
    channel: str = typer.Option(..., "--channel", "-c", help="email, voice, ui or sms"),
    locale: str = typer.Option(DEFAULT_TEMPLATE_LOCALE, "--locale", help="Locale"),
    persona: str | None = PERSONA_OPTION,
    agent: int | None = AGENT_OPTION,
    workflow: int | None = WORKFLOW_OPTION,
    effective_from: str | None = typer.Option(None, "--from", help="Window start"),
    effective_to: str | None = typer.Option(None, "--to", help="Window end"),
    actor: str = ACTOR_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """Append a new version of a template."""
    start = parse_date(effective_from)
    end = parse_date(effective_to)
    with cli_errors(), open_service(db) as service:
        template = service.set_template(
            template_key,
            channel,
            parse_value(content),
            scope=build_scope(persona, agent, workflow),
            locale=locale,
            effective_from=start,
            effective_to=end,
            actor=actor,
        )
    print_json(template.model_dump(mode="json"))
