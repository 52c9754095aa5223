"""API server command for promduck."""

from typing import Optional

import typer
import uvicorn
from rich.console import Console

from promduck.config import get_settings

console = Console()


def serve(
    host: Optional[str] = typer.Option(
        None,
        "--host",
        "-h",
        help="Host to bind to (default: from config)",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to bind to (default: from config)",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (debug, info, warning, error, critical)",
    ),
    access_log: bool = typer.Option(
        False,
        "--access-log/--no-access-log",
        help="Enable/disable uvicorn access logging",
    ),
) -> None:
    """Start the remote storage server.

    Prometheus should point ``remote_write`` at ``/write`` and
    ``remote_read`` at ``/read``.

    Examples:
        promduck serve

        promduck serve --port 9201

        promduck --config ./promduck.yaml serve --log-level debug
    """
    from promduck.api.app import create_app

    settings = get_settings()

    effective_host = host or settings.promduck_host
    effective_port = port or settings.promduck_port
    effective_log_level = (log_level or settings.log_level).lower()

    console.print("[bold green]Starting promduck[/bold green]")
    console.print(f"  Listen:    http://{effective_host}:{effective_port}")
    console.print(f"  Database:  {settings.database_path}")
    console.print(f"  Table:     {settings.table_name}")
    console.print(f"  Telemetry: {settings.telemetry_path}")

    uvicorn.run(
        create_app(settings),
        host=effective_host,
        port=effective_port,
        log_level=effective_log_level,
        access_log=access_log,
    )
