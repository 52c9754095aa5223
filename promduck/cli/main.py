"""Main CLI entry point for promduck."""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from promduck import __version__
from promduck.config import Settings, get_settings
from promduck.exceptions import PromDuckError
from promduck.logging_config import get_logger, setup_logging

app = typer.Typer(
    name="promduck",
    help="promduck - Prometheus remote storage adapter backed by DuckDB",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=False,
)

console = Console()
console_err = Console(stderr=True)
logger = get_logger(__name__)


class CLIState:
    """Global CLI state."""

    verbose: bool = False
    settings: Optional[Settings] = None


state = CLIState()


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"promduck version: {__version__}")
        console.print(f"Python: {sys.version.split()[0]}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version information and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """
    promduck - Prometheus remote storage adapter

    Accepts Prometheus remote write and remote read requests and stores
    samples in a DuckDB table.
    """
    state.verbose = verbose
    state.settings = get_settings(config_path=config, reload=config is not None)

    if verbose:
        state.settings.log_level = "DEBUG"

    setup_logging(state.settings.log_level)

    ctx.obj = state


def handle_error(error: Exception) -> None:
    """Handle CLI errors with user-friendly messages.

    Args:
        error: Exception to handle
    """
    if isinstance(error, PromDuckError):
        console_err.print(f"\n[red]Error:[/red] {error.message}")

        if state.verbose and error.context:
            console_err.print("\n[yellow]Context:[/yellow]")
            for key, value in error.context.items():
                console_err.print(f"  {key}: {value}")
    else:
        console_err.print(f"\n[red]Unexpected Error:[/red] {str(error)}")

        if state.verbose:
            import traceback

            console_err.print("\n[yellow]Traceback:[/yellow]")
            console_err.print(traceback.format_exc())

    sys.exit(1)


from promduck.cli import config, db, read, server  # noqa: E402

app.command("serve")(server.serve)
app.command("read")(read.read)
app.add_typer(db.app, name="db", help="Metrics table management")
app.add_typer(config.app, name="config", help="Configuration management")


def main_cli() -> None:
    """Entry point for CLI application with error handling."""
    try:
        app()
    except PromDuckError as e:
        handle_error(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        handle_error(e)


if __name__ == "__main__":
    main_cli()
