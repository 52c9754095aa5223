"""CLI module for promduck."""

from promduck.cli.main import app, main_cli

__all__ = ["app", "main_cli"]
