"""End-to-end tests for the storage client against in-memory DuckDB."""

import math
import time

import pytest

from promduck.exceptions import (
    ConfigurationError,
    InvalidLabelNameError,
    MalformedTagsError,
    WarehouseQueryError,
    WarehouseTimeoutError,
)
from promduck.models import Label, LabelMatcher, MatchType, Query, ReadRequest, Sample
from promduck.storage import DuckDBWarehouse, StorageClient

NOW_MS = 1_700_000_000_000


def read_one(matchers, start=NOW_MS - 60_000, end=NOW_MS + 60_000):
    return ReadRequest(queries=[Query(start, end, matchers)])


def names(response):
    return sorted(
        (ts.metric_name, ts.label_dict().get("job", "")) for ts in response.results[0].timeseries
    )


class TestRoundTrip:
    """Scenarios writing through the client and reading back."""

    @pytest.mark.asyncio
    async def test_write_then_read_single_series(self, storage_client, make_series):
        """Test that a written series reads back unchanged."""
        series = make_series({"__name__": "first_metric", "label": "first"}, [(NOW_MS, 42.0)])

        await storage_client.write([series])
        response = await storage_client.read(
            read_one([LabelMatcher("__name__", "first_metric")])
        )

        assert len(response.results) == 1
        result = response.results[0].timeseries
        assert len(result) == 1
        assert result[0].labels == [
            Label("__name__", "first_metric"),
            Label("label", "first"),
        ]
        assert result[0].samples == [Sample(NOW_MS, 42.0)]

    @pytest.mark.asyncio
    async def test_nan_series_is_discarded(self, registry, storage_client, make_series):
        """Test that only the finite series is stored and the discard is counted."""
        await storage_client.write(
            [
                make_series({"__name__": "nan_metric"}, [(NOW_MS, math.nan)]),
                make_series({"__name__": "finite_metric"}, [(NOW_MS, 1.5)]),
            ]
        )

        response = await storage_client.read(read_one([]))

        assert [ts.metric_name for ts in response.results[0].timeseries] == ["finite_metric"]
        assert registry.get_sample_value("storage_duckdb_ignored_samples_total") == 1.0

    @pytest.mark.asyncio
    async def test_metric_name_neq_excludes(self, storage_client, make_series):
        """Test that __name__ != x excludes x and keeps other metrics."""
        await storage_client.write(
            [
                make_series(
                    {"__name__": "first_metric", "job": "api", "env": "prod"}, [(NOW_MS, 1.0)]
                ),
                make_series({"__name__": "second_metric", "job": "db"}, [(NOW_MS, 2.0)]),
            ]
        )

        response = await storage_client.read(
            read_one([LabelMatcher("__name__", "first_metric", MatchType.NEQ)])
        )

        assert names(response) == [("second_metric", "db")]

    @pytest.mark.asyncio
    async def test_two_subqueries_merge_distinct_series(self, storage_client, make_series):
        """Test that sub-queries on different metrics return both series once."""
        await storage_client.write(
            [
                make_series({"__name__": "alpha"}, [(NOW_MS, 1.0), (NOW_MS + 1000, 2.0)]),
                make_series({"__name__": "beta"}, [(NOW_MS + 500, 3.0)]),
            ]
        )

        response = await storage_client.read(
            ReadRequest(
                queries=[
                    Query(NOW_MS - 1000, NOW_MS + 2000, [LabelMatcher("__name__", "alpha")]),
                    Query(NOW_MS, NOW_MS + 1000, [LabelMatcher("__name__", "beta")]),
                ]
            )
        )

        series = response.results[0].timeseries
        assert [ts.metric_name for ts in series] == ["alpha", "beta"]
        assert series[0].samples == [Sample(NOW_MS, 1.0), Sample(NOW_MS + 1000, 2.0)]
        assert series[1].samples == [Sample(NOW_MS + 500, 3.0)]

    @pytest.mark.asyncio
    async def test_overlapping_subqueries_deduplicate_series(self, storage_client, make_series):
        """Test that a series matched by two sub-queries comes back once."""
        await storage_client.write([make_series({"__name__": "alpha"}, [(NOW_MS, 1.0)])])

        response = await storage_client.read(
            ReadRequest(
                queries=[
                    Query(NOW_MS - 10, NOW_MS - 1, [LabelMatcher("__name__", "alpha")]),
                    Query(NOW_MS, NOW_MS + 10, [LabelMatcher("__name__", "alpha")]),
                ]
            )
        )

        assert len(response.results[0].timeseries) == 1


class TestMatchers:
    """Matcher semantics evaluated by DuckDB."""

    @pytest.fixture
    async def populated(self, storage_client, make_series):
        await storage_client.write(
            [
                make_series({"__name__": "http", "job": "api", "code": "200"}, [(NOW_MS, 1.0)]),
                make_series({"__name__": "http", "job": "api-v2", "code": "500"}, [(NOW_MS, 2.0)]),
                make_series({"__name__": "http", "job": "db"}, [(NOW_MS, 3.0)]),
                make_series({"__name__": "http"}, [(NOW_MS, 4.0)]),
                make_series({"__name__": "ops", "job": "it's"}, [(NOW_MS, 5.0)]),
            ]
        )
        return storage_client

    @pytest.mark.asyncio
    async def test_label_eq(self, populated):
        response = await populated.read(read_one([LabelMatcher("job", "api")]))

        assert names(response) == [("http", "api")]

    @pytest.mark.asyncio
    async def test_label_neq_negates_eq(self, populated):
        """Test that NEQ keeps every series EQ drops, including unlabeled ones."""
        response = await populated.read(
            read_one([LabelMatcher("__name__", "http"), LabelMatcher("job", "api", MatchType.NEQ)])
        )

        assert names(response) == [("http", ""), ("http", "api-v2"), ("http", "db")]

    @pytest.mark.asyncio
    async def test_label_regex_is_anchored(self, populated):
        """Test that a regex must match the whole value."""
        response = await populated.read(read_one([LabelMatcher("job", "api", MatchType.RE)]))
        assert names(response) == [("http", "api")]

        response = await populated.read(read_one([LabelMatcher("job", "api.*", MatchType.RE)]))
        assert names(response) == [("http", "api"), ("http", "api-v2")]

    @pytest.mark.asyncio
    async def test_label_regex_alternation(self, populated):
        response = await populated.read(read_one([LabelMatcher("job", "api|db", MatchType.RE)]))

        assert names(response) == [("http", "api"), ("http", "db")]

    @pytest.mark.asyncio
    async def test_label_nre(self, populated):
        response = await populated.read(
            read_one([LabelMatcher("__name__", "http"), LabelMatcher("job", "api.*", MatchType.NRE)])
        )

        assert names(response) == [("http", ""), ("http", "db")]

    @pytest.mark.asyncio
    async def test_empty_value_selects_missing_label(self, populated):
        """Test that label="" matches series without the label."""
        response = await populated.read(
            read_one([LabelMatcher("__name__", "http"), LabelMatcher("job", "")])
        )

        assert names(response) == [("http", "")]

    @pytest.mark.asyncio
    async def test_metric_name_regex(self, populated):
        response = await populated.read(read_one([LabelMatcher("__name__", "o.*", MatchType.RE)]))

        assert names(response) == [("ops", "it's")]

    @pytest.mark.asyncio
    async def test_metric_name_regex_is_anchored(self, populated):
        """Test that a metric-name regex does not match a prefix."""
        response = await populated.read(read_one([LabelMatcher("__name__", "htt", MatchType.RE)]))

        assert response.results[0].timeseries == []

    @pytest.mark.asyncio
    async def test_quote_in_value(self, populated):
        """Test that a single quote in a value matches literally."""
        response = await populated.read(read_one([LabelMatcher("job", "it's")]))

        assert names(response) == [("ops", "it's")]

    @pytest.mark.asyncio
    async def test_time_window_is_inclusive(self, populated):
        response = await populated.read(read_one([LabelMatcher("__name__", "ops")], NOW_MS, NOW_MS))
        assert len(response.results[0].timeseries) == 1

        response = await populated.read(
            read_one([LabelMatcher("__name__", "ops")], NOW_MS + 1, NOW_MS + 10)
        )
        assert response.results[0].timeseries == []

    @pytest.mark.asyncio
    async def test_invalid_label_name_fails_read(self, populated):
        with pytest.raises(InvalidLabelNameError):
            await populated.read(read_one([LabelMatcher('bad"name', "x")]))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value, pattern",
        [
            ('a"b', 'a"b'),
            ("a\\b", "a\\\\b"),
            ("line1\nline2", "line1\\nline2"),
            ("tab\there", "tab\\there"),
            ("plain", "pl.*"),
        ],
    )
    async def test_label_regex_matches_raw_value(self, storage_client, make_series, value, pattern):
        """Test that regexes see label values unescaped."""
        await storage_client.write([make_series({"__name__": "m", "v": value}, [(NOW_MS, 1.0)])])

        matched = await storage_client.read(read_one([LabelMatcher("v", pattern, MatchType.RE)]))
        excluded = await storage_client.read(
            read_one([LabelMatcher("__name__", "m"), LabelMatcher("v", pattern, MatchType.NRE)])
        )
        by_equality = await storage_client.read(read_one([LabelMatcher("v", value)]))

        assert [ts.label_dict()["v"] for ts in matched.results[0].timeseries] == [value]
        assert excluded.results[0].timeseries == []
        assert len(by_equality.results[0].timeseries) == 1

    @pytest.mark.asyncio
    async def test_dotted_label_name(self, storage_client, make_series):
        """Test that UTF-8 label names can be written and read back."""
        await storage_client.write(
            [
                make_series({"__name__": "m", "service.name": "api"}, [(NOW_MS, 1.0)]),
                make_series({"__name__": "m", "service.name": "db"}, [(NOW_MS, 2.0)]),
            ]
        )

        response = await storage_client.read(
            read_one([LabelMatcher("service.name", "api")])
        )
        assert [ts.label_dict()["service.name"] for ts in response.results[0].timeseries] == [
            "api"
        ]

        response = await storage_client.read(
            read_one([LabelMatcher("service.name", "d.", MatchType.RE)])
        )
        assert [ts.label_dict()["service.name"] for ts in response.results[0].timeseries] == [
            "db"
        ]


class TestFailures:
    """Failure paths of reads and writes."""

    @pytest.mark.asyncio
    async def test_malformed_tags_abort_read(self, warehouse, storage_client, make_series):
        """Test that one corrupt row fails the whole read."""
        await storage_client.write([make_series({"__name__": "good"}, [(NOW_MS, 1.0)])])

        async with warehouse.pool.acquire() as conn:
            conn.execute(
                f"INSERT INTO metrics VALUES ('bad', '[1,2]', 1.0, epoch_ms({NOW_MS}))"
            )

        with pytest.raises(MalformedTagsError):
            await storage_client.read(read_one([]))

    def test_invalid_table_name(self):
        with pytest.raises(ConfigurationError):
            DuckDBWarehouse(":memory:", table_name="metrics; DROP TABLE x")

    @pytest.mark.asyncio
    async def test_query_error(self, storage_metrics):
        """Test that a missing table surfaces as a query error."""
        warehouse = DuckDBWarehouse(":memory:", table_name="missing")
        await warehouse.initialize(create_schema=False)
        client = StorageClient(warehouse, metrics=storage_metrics, table_name="missing")
        try:
            with pytest.raises(WarehouseQueryError):
                await client.read(read_one([LabelMatcher("__name__", "up")]))
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_call_timeout(self, warehouse):
        """Test that an overrunning call raises and frees its pool slot."""
        before = warehouse.pool.total_connections

        with pytest.raises(WarehouseTimeoutError):
            await warehouse._call("query", lambda conn: time.sleep(0.5), timeout=0.05)

        assert warehouse.pool.total_connections == before - 1
        assert await warehouse.query("SELECT 1 AS one", timeout=5.0) == [{"one": 1}]

    @pytest.mark.asyncio
    async def test_query_metrics(self, registry, storage_client):
        """Test that each sub-query is counted and timed."""
        await storage_client.read(
            ReadRequest(queries=[Query(0, 1, []), Query(0, 1, [])])
        )

        assert registry.get_sample_value("storage_duckdb_sql_query_count_total") == 2.0
        assert (
            registry.get_sample_value("storage_duckdb_sql_query_duration_seconds_count") == 2.0
        )


class TestWarehouseInfo:
    """Table summary used by the CLI."""

    @pytest.mark.asyncio
    async def test_info(self, warehouse, storage_client, make_series):
        await storage_client.write(
            [
                make_series({"__name__": "a"}, [(NOW_MS, 1.0), (NOW_MS + 5, 1.0)]),
                make_series({"__name__": "b"}, [(NOW_MS + 1, 1.0)]),
            ]
        )

        info = await warehouse.info()

        assert info["total_rows"] == 3
        assert info["unique_metrics"] == 2
        assert info["min_timestamp_ms"] == NOW_MS
        assert info["max_timestamp_ms"] == NOW_MS + 5
        assert info["table"] == "metrics"
