"""Registry commands: register, load, list, show, retire.

A registry file is YAML with a top-level ``entries`` list, for example::

    entries:
      - key: max_workflows
        value_type: number
        default_value: 10
        allowed_levels: [global, persona, agent]
        category: business
"""

from pathlib import Path

import typer
import yaml
from rich.table import Table

from temporal_config.commands import (
    DB_OPTION,
    JSON_OPTION,
    cli_errors,
    format_value,
    open_service,
    parse_value,
    print_json,
)
from temporal_config.config.messages import ERROR_MESSAGES, INFO_MESSAGES, SUCCESS_MESSAGES
from temporal_config.models.enums import ScopeLevel, ValueType
from temporal_config.utils import console, print_error, print_info, print_success, read_yaml

registry_app = typer.Typer(
    name="registry",
    help="Declare and inspect configuration keys",
    no_args_is_help=True,
)


@registry_app.command("register")
def register(
    key: str = typer.Argument(..., help="Configuration key"),
    value_type: ValueType = typer.Option(..., "--type", "-t", help="Declared value type"),
    default: str | None = typer.Option(None, "--default", "-d", help="Default value (JSON)"),
    levels: list[ScopeLevel] = typer.Option(
        None, "--level", "-l", help="Allowed override level (repeatable)"
    ),
    description: str = typer.Option("", "--description", help="Description"),
    category: str = typer.Option("general", "--category", "-c", help="Category"),
    db: Path | None = DB_OPTION,
) -> None:
    """Declare a key, or update an existing declaration.

    Example:
        tcfg registry register max_workflows --type number --default 10 -l global -l agent
    """
    with cli_errors(), open_service(db) as service:
        entry = service.register(
            key,
            value_type,
            default_value=parse_value(default) if default is not None else None,
            allowed_levels=levels or None,
            description=description,
            category=category,
        )
    print_success(
        SUCCESS_MESSAGES["registered"].format(key=entry.key, value_type=entry.value_type.value)
    )


@registry_app.command("load")
def load(
    path: Path = typer.Argument(..., help="YAML registry file", exists=True, dir_okay=False),
    db: Path | None = DB_OPTION,
) -> None:
    """Register every entry listed in a YAML file."""
    try:
        data = read_yaml(path)
    except yaml.YAMLError:
        data = None
    entries = data.get("entries") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        print_error(ERROR_MESSAGES["registry_file_invalid"].format(path=path))
        raise typer.Exit(code=1)

    with cli_errors(), open_service(db) as service:
        for item in entries:
            service.register(
                item.get("key"),
                item.get("value_type"),
                default_value=item.get("default_value"),
                allowed_levels=item.get("allowed_levels"),
                description=item.get("description", ""),
                category=item.get("category", "general"),
            )
    print_success(SUCCESS_MESSAGES["loaded"].format(count=len(entries), path=path))


@registry_app.command("list")
def list_entries(
    category: str | None = typer.Option(None, "--category", "-c", help="Filter by category"),
    include_deleted: bool = typer.Option(False, "--all", help="Include retired keys"),
    json_output: bool = JSON_OPTION,
    db: Path | None = DB_OPTION,
) -> None:
    """List registered keys."""
    with cli_errors(), open_service(db) as service:
        entries = service.list_entries(include_deleted=include_deleted, category=category)

    if json_output:
        print_json([entry.model_dump(mode="json") for entry in entries])
        return
    if not entries:
        print_info(INFO_MESSAGES["no_entries"])
        return

    table = Table(title="Registry")
    table.add_column("Key", style="cyan")
    table.add_column("Type")
    table.add_column("Default")
    table.add_column("Levels")
    table.add_column("Category", style="dim")
    for entry in entries:
        key = f"[strike]{entry.key}[/strike]" if entry.deleted else entry.key
        table.add_row(
            key,
            entry.value_type.value,
            format_value(entry.default_value),
            ", ".join(level.value for level in entry.allowed_levels),
            entry.category,
        )
    console.print(table)


@registry_app.command("show")
def show(
    key: str = typer.Argument(..., help="Configuration key"),
    db: Path | None = DB_OPTION,
) -> None:
    """Show one registry entry as JSON."""
    with cli_errors(), open_service(db) as service:
        entry = service.get_entry(key)
    print_json(entry.model_dump(mode="json"))


@registry_app.command("retire")
def retire(
    key: str = typer.Argument(..., help="Configuration key"),
    db: Path | None = DB_OPTION,
) -> None:
    """Retire a key. Its history stays readable; new writes are rejected."""
    with cli_errors(), open_service(db) as service:
        service.retire(key)
    print_success(SUCCESS_MESSAGES["retired"].format(key=key))
