"""Configuration management CLI commands."""

import json
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from promduck.cli.output import print_error, print_info, print_panel
from promduck.config import _YAML_FIELDS, Settings, get_settings

app = typer.Typer(help="Configuration management")
console = Console()


def settings_to_dict(settings: Settings) -> dict[str, dict[str, Any]]:
    """Nest settings by config file section, using config file keys."""
    return {
        section: {key: getattr(settings, field) for key, field in fields.items()}
        for section, fields in _YAML_FIELDS.items()
    }


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific section: " + ", ".join(_YAML_FIELDS),
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, yaml, json",
    ),
) -> None:
    """
    Show current configuration.

    Values reflect the merged result of environment variables, the config
    file and defaults. The YAML output can be used as a config file.
    """
    config_dict = settings_to_dict(get_settings())

    if section:
        if section not in config_dict:
            print_error(f"Unknown section: {section}")
            print_info(f"Available sections: {', '.join(config_dict)}")
            raise typer.Exit(1)
        config_dict = {section: config_dict[section]}

    if format == "yaml":
        text = yaml.dump(config_dict, default_flow_style=False, sort_keys=False)
        console.print(Syntax(text, "yaml", theme="monokai"))
    elif format == "json":
        console.print(Syntax(json.dumps(config_dict, indent=2), "json", theme="monokai"))
    else:
        console.print()
        print_panel("promduck Configuration", border_style="cyan")
        for name, values in config_dict.items():
            table = Table(
                title=f"{name.title()} Settings", show_header=True, header_style="bold cyan"
            )
            table.add_column("Setting", style="cyan", no_wrap=True)
            table.add_column("Value", style="white")
            for key, value in values.items():
                table.add_row(key, str(value))
            console.print(table)
            console.print()
