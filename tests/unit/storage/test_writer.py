"""Tests for the batch writer."""

import math

import pytest

from promduck.exceptions import WarehouseInsertError, WarehouseTimeoutError
from promduck.storage.warehouse import Warehouse
from promduck.storage.writer import BatchWriter


class FakeWarehouse(Warehouse):
    """Warehouse recording insert calls."""

    name = "fake"

    def __init__(self, error=None):
        self.inserts = []
        self.error = error

    async def insert(self, records, timeout):
        self.inserts.append((list(records), timeout))
        if self.error is not None:
            raise self.error

    async def query(self, sql, timeout):
        return []

    async def ensure_schema(self, timeout=30.0):
        pass

    async def info(self, timeout=30.0):
        return {}


class TestBuildBatch:
    """Test flattening series into records."""

    def test_every_sample_becomes_a_record(self, storage_metrics, make_series):
        writer = BatchWriter(FakeWarehouse(), storage_metrics)

        batch, observed = writer.build_batch(
            [
                make_series({"__name__": "up", "job": "api"}, [(1000, 1.0), (2000, 0.0)]),
                make_series({"__name__": "down"}, [(1000, 3.0)]),
            ]
        )

        assert observed == 3
        assert [(r.metricname, r.tags, r.timestamp_ms) for r in batch] == [
            ("up", '{"job":"api"}', 1000),
            ("up", '{"job":"api"}', 2000),
            ("down", "{}", 1000),
        ]

    def test_records_fetched_counts_before_filtering(
        self, registry, storage_metrics, make_series
    ):
        writer = BatchWriter(FakeWarehouse(), storage_metrics)

        writer.build_batch([make_series({"__name__": "up"}, [(1, 1.0), (2, math.nan)])])

        assert registry.get_sample_value("storage_duckdb_records_fetched_total") == 2.0
        assert registry.get_sample_value("storage_duckdb_ignored_samples_total") == 1.0


class TestWrite:
    """Test the insertion call."""

    @pytest.mark.asyncio
    async def test_single_insert_call(self, storage_metrics, make_series):
        """Test that all records go to the warehouse in one call."""
        warehouse = FakeWarehouse()
        writer = BatchWriter(warehouse, storage_metrics)

        result = await writer.write(
            [
                make_series({"__name__": "a"}, [(1, 1.0)]),
                make_series({"__name__": "b"}, [(1, 2.0), (2, math.inf)]),
            ],
            timeout=5.0,
        )

        assert len(warehouse.inserts) == 1
        records, timeout = warehouse.inserts[0]
        assert len(records) == 2
        assert timeout == 5.0
        assert result.records_observed == 3
        assert result.records_written == 2
        assert result.records_skipped == 1

    @pytest.mark.asyncio
    async def test_empty_batch_skips_insert(self, registry, storage_metrics, make_series):
        """Test that an all-NaN request never touches the warehouse."""
        warehouse = FakeWarehouse()
        writer = BatchWriter(warehouse, storage_metrics)

        result = await writer.write([make_series({"__name__": "a"}, [(1, math.nan)])], 5.0)

        assert warehouse.inserts == []
        assert result.records_written == 0
        assert (
            registry.get_sample_value("storage_duckdb_batch_write_duration_seconds_count")
            == 0.0
        )

    @pytest.mark.asyncio
    async def test_duration_observed_on_success(self, registry, storage_metrics, make_series):
        writer = BatchWriter(FakeWarehouse(), storage_metrics)

        await writer.write([make_series({"__name__": "a"}, [(1, 1.0)])], 5.0)

        assert (
            registry.get_sample_value("storage_duckdb_batch_write_duration_seconds_count")
            == 1.0
        )

    @pytest.mark.asyncio
    async def test_insert_error_propagates(self, storage_metrics, make_series):
        """Test that row errors surface to the caller without retry."""
        error = WarehouseInsertError("boom", rows=1, row_errors=["row 0: bad"])
        warehouse = FakeWarehouse(error=error)
        writer = BatchWriter(warehouse, storage_metrics)

        with pytest.raises(WarehouseInsertError) as exc_info:
            await writer.write([make_series({"__name__": "a"}, [(1, 1.0)])], 5.0)

        assert exc_info.value.row_errors == ["row 0: bad"]
        assert len(warehouse.inserts) == 1

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, storage_metrics, make_series):
        warehouse = FakeWarehouse(error=WarehouseTimeoutError("insert", 5.0))
        writer = BatchWriter(warehouse, storage_metrics)

        with pytest.raises(WarehouseTimeoutError):
            await writer.write([make_series({"__name__": "a"}, [(1, 1.0)])], 5.0)


class TestWarehouseInterface:
    """Test the abstract warehouse contract."""

    def test_schema_and_info_are_required(self):
        class InsertOnly(Warehouse):
            async def insert(self, records, timeout):
                pass

            async def query(self, sql, timeout):
                return []

        with pytest.raises(TypeError):
            InsertOnly()
