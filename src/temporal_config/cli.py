"""Main CLI entry point for temporal-config."""

from pathlib import Path

import typer
from dotenv import load_dotenv

from temporal_config.commands.admin_cmd import audit_command, cache_app, serve_command
from temporal_config.commands.content_cmd import rule_app, template_app
from temporal_config.commands.history_cmd import history_app
from temporal_config.commands.registry_cmd import registry_app
from temporal_config.commands.rollback_cmd import rollback_app
from temporal_config.commands.settings_cmd import get_command, set_command
from temporal_config.commands.snapshot_cmd import snapshot_app
from temporal_config.constants import VERSION
from temporal_config.utils import console

# Load .env file from current directory if it exists
load_dotenv(Path.cwd() / ".env", verbose=False)

app = typer.Typer(
    name="tcfg",
    help="Scoped, effective-dated configuration with rollback",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(registry_app, name="registry")
app.add_typer(rule_app, name="rule")
app.add_typer(template_app, name="template")
app.add_typer(history_app, name="history")
app.add_typer(rollback_app, name="rollback")
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(cache_app, name="cache")

app.command("get")(get_command)
app.command("set")(set_command)
app.command("audit")(audit_command)
app.command("serve")(serve_command)


@app.command("version")
def version() -> None:
    """Show the installed version."""
    console.print(f"temporal-config {VERSION}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
