"""Prometheus remote write/read wire protocol."""

from promduck.remote.parser import PrometheusParser
from promduck.remote.protocol import PrometheusRemoteStorage

__all__ = ["PrometheusParser", "PrometheusRemoteStorage"]
