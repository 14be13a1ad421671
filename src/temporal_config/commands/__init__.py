"""tcfg CLI commands - shared utilities.

Every command opens a ConfigService on ``--db`` (or ``TCFG_STORE_DB_PATH``)
and reports engine errors through :func:`cli_errors`.
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from temporal_config.config.messages import ERROR_MESSAGES
from temporal_config.exceptions import TemporalConfigError
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService
from temporal_config.utils import console, print_error
from temporal_config.utils.timeutils import ensure_utc

logger = logging.getLogger(__name__)

DB_OPTION = typer.Option(
    None,
    "--db",
    envvar="TCFG_STORE_DB_PATH",
    help="SQLite database file",
)
ACTOR_OPTION = typer.Option("cli", "--actor", envvar="TCFG_ACTOR", help="Actor recorded in logs")
PERSONA_OPTION = typer.Option(None, "--persona", "-p", help="Persona dimension")
AGENT_OPTION = typer.Option(None, "--agent", "-a", help="Agent dimension")
WORKFLOW_OPTION = typer.Option(None, "--workflow", "-w", help="Workflow dimension")
JSON_OPTION = typer.Option(False, "--json", help="Output JSON")


@contextmanager
def open_service(db_path: Path | None) -> Iterator[ConfigService]:
    """Open a service for one command and close it afterwards."""
    with ConfigService(db_path=db_path) as service:
        yield service


@contextmanager
def cli_errors(template: str = "generic_error") -> Iterator[None]:
    """Print engine errors with ``ERROR_MESSAGES[template]`` and exit with code 1."""
    try:
        yield
    except TemporalConfigError as e:
        logger.debug(f"Command failed: {e!r}")
        print_error(ERROR_MESSAGES[template].format(error=e))
        raise typer.Exit(code=1) from e


def build_scope(persona: str | None, agent: int | None, workflow: int | None) -> Scope:
    return Scope(persona=persona, agent_id=agent, workflow_id=workflow)


def parse_value(raw: str) -> Any:
    """JSON when it parses, the raw string otherwise."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_date(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 option value; naive values are UTC."""
    if raw is None:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError as e:
        print_error(ERROR_MESSAGES["invalid_date"])
        raise typer.Exit(code=1) from e


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)
