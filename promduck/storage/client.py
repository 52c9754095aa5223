"""Storage client exposing remote write and remote read.

This is the object the HTTP layer talks to. It owns the translation engine
(batch writer, matcher translator, result merger) and a warehouse.
"""

import logging
import time
from typing import Sequence

from promduck.metrics import StorageMetrics
from promduck.models import QueryResult, ReadRequest, ReadResponse, TimeSeries, WriteResult
from promduck.storage.merger import ResultMerger
from promduck.storage.translator import MatcherTranslator
from promduck.storage.warehouse import Warehouse
from promduck.storage.writer import BatchWriter

logger = logging.getLogger(__name__)


class StorageClient:
    """
    Remote storage backend for one warehouse table.

    Usage:
        warehouse = DuckDBWarehouse(":memory:")
        await warehouse.initialize()
        client = StorageClient(warehouse, timeout_seconds=30)

        await client.write(timeseries)
        response = await client.read(ReadRequest(queries=[...]))
    """

    def __init__(
        self,
        warehouse: Warehouse,
        timeout_seconds: float = 30.0,
        metrics: StorageMetrics | None = None,
        table_name: str = "metrics",
    ) -> None:
        """
        Initialize client.

        Args:
            warehouse: Warehouse holding the metrics table
            timeout_seconds: Deadline applied to every warehouse call
            metrics: Metrics sinks (a private registry is used if omitted)
            table_name: Metrics table queried on read
        """
        self.warehouse = warehouse
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics if metrics is not None else StorageMetrics()
        self.writer = BatchWriter(warehouse, self.metrics)
        self.translator = MatcherTranslator(table_name)

    @property
    def name(self) -> str:
        """Identifies this backend in per-remote metric labels."""
        return self.warehouse.name

    async def write(self, timeseries: Sequence[TimeSeries]) -> WriteResult:
        """Store a batch of series.

        Raises:
            WarehouseInsertError: If insertion fails
            WarehouseTimeoutError: If insertion exceeds the deadline
        """
        return await self.writer.write(timeseries, self.timeout_seconds)

    async def read(self, request: ReadRequest) -> ReadResponse:
        """Answer a read request with one merged result set.

        Sub-queries run sequentially and share one merge map. Any failure
        aborts the whole read; no partial series are returned.

        Raises:
            TranslationError: If a matcher cannot be translated
            WarehouseQueryError: If a query fails
            WarehouseTimeoutError: If a query exceeds the deadline
            MalformedTagsError: If a stored tag blob is invalid
        """
        merger = ResultMerger()

        for query in request.queries:
            sql = self.translator.translate(query)

            self.metrics.sql_query_count.inc()
            begin = time.perf_counter()
            rows = await self.warehouse.query(sql, self.timeout_seconds)
            fetched = merger.add_rows(rows)
            duration = time.perf_counter() - begin

            self.metrics.sql_query_duration.observe(duration)
            logger.debug(
                "duckdb sql query",
                extra={"rows": fetched, "duration": duration},
            )

        return ReadResponse(results=[QueryResult(timeseries=merger.series())])

    async def close(self) -> None:
        """Close the underlying warehouse."""
        await self.warehouse.close()
