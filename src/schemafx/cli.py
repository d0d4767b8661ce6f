"""SchemaFX operator CLI.

Wires a data service over a JSON file or SQLite store to inspect schemas,
query tables and run actions from the shell.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import structlog
import typer
from pydantic import ValidationError
from pydantic_core import to_json

from schemafx.errors import SchemaFXError, SchemaNotFoundError
from schemafx.models.schema import AppSchema
from schemafx.services.data_service import DataService
from schemafx.services.factory import create_data_service

T = TypeVar("T")

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="schemafx",
    help="""Inspect schemas, query tables and run actions against a SchemaFX store.

Examples:

  # Store a schema
  uv run schemafx load-schema ./crm.json --db ./schemafx.db

  # Show a schema
  uv run schemafx schema crm --db ./schemafx.db

  # Query a table
  uv run schemafx query crm customers --spec '{"filters": [{"field": "active", "operator": "eq", "value": true}], "limit": 5}'

  # Run an action
  uv run schemafx action crm customers add --rows '[{"id": 1, "name": "Ada"}]'""",
    rich_markup_mode="markdown",
)

DB_OPTION = typer.Option(
    "schemafx.db",
    "--db",
    "-d",
    help="Store holding schemas and system tables (.json for a JSON file, otherwise SQLite)",
)


def _run(db: str, operation: Callable[[DataService], Awaitable[T]]) -> T:
    """Run ``operation`` against a fresh service, mapping service errors to exit code 1."""

    async def run_with_service() -> T:
        async with create_data_service(Path(db)) as service:
            return await operation(service)

    try:
        return asyncio.run(run_with_service())
    except SchemaFXError as e:
        logger.error("command_failed", error=e.kind, message=e.message)
        typer.echo(json.dumps(e.to_payload()), err=True)
        raise typer.Exit(1) from None


def _echo_json(value: Any) -> None:
    typer.echo(to_json(value, indent=2).decode("utf-8"))


def _parse_json_option(value: str, option: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        logger.error("invalid_json_option", option=option, error=str(e))
        typer.echo(f"{option} is not valid JSON: {e}", err=True)
        raise typer.Exit(2) from None


@app.command("load-schema")
def load_schema(
    schema_file: str = typer.Argument(
        ...,
        help="JSON file describing the application schema",
    ),
    owner: Optional[str] = typer.Option(
        None,
        "--owner",
        "-o",
        help="E-mail granted Admin on a newly created app",
    ),
    db: str = DB_OPTION,
) -> None:
    """Create or replace an application schema."""
    path = Path(schema_file)
    if not path.exists():
        logger.error("schema_file_not_found", schema_file=str(path))
        raise typer.Exit(1)

    try:
        schema = AppSchema.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        typer.echo(f"Invalid schema: {e}", err=True)
        raise typer.Exit(2) from None

    saved = _run(db, lambda service: service.set_schema(schema, owner=owner))
    typer.echo(f"Saved schema '{saved.id}' ({len(saved.tables)} tables, {len(saved.views)} views)")


@app.command()
def schema(
    app_id: str = typer.Argument(..., help="Application id"),
    db: str = DB_OPTION,
) -> None:
    """Print an application schema as JSON."""

    async def fetch(service: DataService) -> AppSchema:
        found = await service.get_schema(app_id)
        if found is None:
            raise SchemaNotFoundError(app_id)
        return found

    _echo_json(_run(db, fetch).to_record())


@app.command()
def query(
    app_id: str = typer.Argument(..., help="Application id"),
    table_id: str = typer.Argument(..., help="Table id"),
    spec: Optional[str] = typer.Option(
        None,
        "--spec",
        "-s",
        help="Query spec as JSON: filters, orderBy, limit, offset",
    ),
    db: str = DB_OPTION,
) -> None:
    """Query a table and print matching rows as JSON."""
    logger.info("starting_query", app_id=app_id, table_id=table_id)
    rows = _run(db, lambda service: service.query_data(app_id, table_id, spec))
    _echo_json(rows)


@app.command()
def action(
    app_id: str = typer.Argument(..., help="Application id"),
    table_id: str = typer.Argument(..., help="Table id"),
    action_id: str = typer.Argument(..., help="Action id declared on the table"),
    rows: str = typer.Option(
        "[]",
        "--rows",
        "-r",
        help="Rows as a JSON array of objects",
    ),
    db: str = DB_OPTION,
) -> None:
    """Run a table action over the given rows."""
    parsed = _parse_json_option(rows, "--rows")
    if not isinstance(parsed, list):
        typer.echo("--rows must be a JSON array", err=True)
        raise typer.Exit(2)

    _run(db, lambda service: service.execute_action(app_id, table_id, action_id, parsed))
    typer.echo(f"Ran action '{action_id}' on {len(parsed)} row(s)")


@app.command()
def version() -> None:
    """Show version information."""
    from schemafx import __version__

    typer.echo(f"schemafx {__version__}")
