"""Adapter self-monitoring metrics.

Every component receives a metrics object instead of touching the global
``prometheus_client`` registry, so tests can build isolated registries.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram


class StorageMetrics:
    """Counters and histograms owned by the storage client."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.ignored_samples = Counter(
            "storage_duckdb_ignored_samples",
            "The total number of samples not sent to DuckDB due to unsupported "
            "float values (Inf, -Inf, NaN).",
            registry=self.registry,
        )
        self.records_fetched = Counter(
            "storage_duckdb_records_fetched",
            "Total number of records received for writing, before filtering.",
            registry=self.registry,
        )
        self.batch_write_duration = Histogram(
            "storage_duckdb_batch_write_duration_seconds",
            "The duration it takes to write a batch of samples to DuckDB.",
            registry=self.registry,
        )
        self.sql_query_count = Counter(
            "storage_duckdb_sql_query_count",
            "Total number of SQL queries executed.",
            registry=self.registry,
        )
        self.sql_query_duration = Histogram(
            "storage_duckdb_sql_query_duration_seconds",
            "Duration of the SQL reads from DuckDB.",
            registry=self.registry,
        )


class APIMetrics:
    """Counters recorded by the remote write/read HTTP handlers."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.received_samples = Counter(
            "storage_duckdb_received_samples",
            "Total number of received samples.",
            registry=self.registry,
        )
        self.sent_samples = Counter(
            "storage_duckdb_sent_samples",
            "Total number of processed samples sent to remote storage.",
            ["remote"],
            registry=self.registry,
        )
        self.failed_samples = Counter(
            "storage_duckdb_failed_samples",
            "Total number of processed samples which failed on send to remote storage.",
            ["remote"],
            registry=self.registry,
        )
        self.sent_batch_duration = Histogram(
            "storage_duckdb_sent_batch_duration_seconds",
            "Duration of sample batch send calls to the remote storage.",
            ["remote"],
            registry=self.registry,
        )
        self.write_errors = Counter(
            "storage_duckdb_write_errors",
            "Total number of write errors to DuckDB.",
            registry=self.registry,
        )
        self.read_errors = Counter(
            "storage_duckdb_read_errors",
            "Total number of read errors from DuckDB.",
            registry=self.registry,
        )
        self.write_processing_duration = Histogram(
            "storage_duckdb_write_api_seconds",
            "Duration of the write api processing.",
            ["remote"],
            registry=self.registry,
        )
        self.read_processing_duration = Histogram(
            "storage_duckdb_read_api_seconds",
            "Duration of the read api processing.",
            ["remote"],
            registry=self.registry,
        )
