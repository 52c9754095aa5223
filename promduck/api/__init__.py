"""HTTP surface: remote write/read, health and telemetry."""

from promduck.api.app import create_app

__all__ = ["create_app"]
