"""Shared pytest fixtures."""

import pytest
from prometheus_client import CollectorRegistry

import promduck.config
from promduck.metrics import StorageMetrics
from promduck.models import Label, Sample, TimeSeries
from promduck.storage import DuckDBWarehouse, StorageClient


def _make_series(labels: dict[str, str], samples: list[tuple[int, float]]) -> TimeSeries:
    """Build a series from a label mapping and (timestamp_ms, value) pairs."""
    return TimeSeries(
        labels=[Label(name=k, value=v) for k, v in labels.items()],
        samples=[Sample(timestamp_ms=ts, value=v) for ts, v in samples],
    )


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep tests away from ~/.promduck and the process-wide settings cache."""
    monkeypatch.setenv("HOME", str(tmp_path))
    promduck.config.reset_settings()
    yield
    promduck.config.reset_settings()


@pytest.fixture
def registry():
    """Create an isolated metrics registry."""
    return CollectorRegistry()


@pytest.fixture
def storage_metrics(registry):
    """Create storage metrics bound to the test registry."""
    return StorageMetrics(registry)


@pytest.fixture
async def warehouse():
    """Create an initialized in-memory DuckDB warehouse."""
    wh = DuckDBWarehouse(":memory:", table_name="metrics", pool_size=2)
    await wh.initialize()
    yield wh
    await wh.close()


@pytest.fixture
async def storage_client(warehouse, storage_metrics):
    """Create a storage client over the in-memory warehouse."""
    return StorageClient(warehouse, timeout_seconds=10.0, metrics=storage_metrics)


@pytest.fixture
def make_series():
    """Factory building a series from labels and (timestamp_ms, value) pairs."""
    return _make_series
