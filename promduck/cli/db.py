"""Metrics table management CLI commands."""

import asyncio

import typer
from rich.console import Console

from promduck.cli.output import print_dict, print_success
from promduck.config import get_settings
from promduck.storage import DuckDBWarehouse

console = Console()

app = typer.Typer(help="Metrics table management", no_args_is_help=True)


@app.command("init")
def init_cmd(
    show_sql: bool = typer.Option(False, "--sql", help="Print the DDL instead of executing"),
) -> None:
    """Create the metrics table if it does not exist."""
    settings = get_settings()
    warehouse = DuckDBWarehouse.from_settings(settings)

    if show_sql:
        console.print(warehouse.schema_sql())
        return

    async def _init() -> None:
        try:
            await warehouse.initialize(create_schema=True)
        finally:
            await warehouse.close()

    asyncio.run(_init())
    print_success(f"Metrics table ready: {settings.table_name} ({settings.database_path})")


@app.command("info")
def info_cmd() -> None:
    """Show row count, metric names and time range of the metrics table."""
    settings = get_settings()
    warehouse = DuckDBWarehouse.from_settings(settings)

    async def _info() -> dict:
        try:
            await warehouse.initialize(create_schema=False)
            return await warehouse.info(settings.remote_timeout_seconds)
        finally:
            await warehouse.close()

    print_dict(asyncio.run(_info()), title="Metrics Table")
