"""DuckDB implementation of the metrics warehouse."""

import asyncio
import logging
from typing import Any, Callable, Sequence

import duckdb
import pyarrow as pa

from promduck.exceptions import (
    ConfigurationError,
    WarehouseInsertError,
    WarehouseQueryError,
    WarehouseTimeoutError,
)
from promduck.models import Record
from promduck.storage.escaping import quote_identifier
from promduck.storage.pool import DuckDBConnectionPool
from promduck.storage.warehouse import SCHEMA_COLUMNS, Warehouse

logger = logging.getLogger(__name__)

BATCH_VIEW = "promduck_insert_batch"
FETCH_SIZE = 10_000

ARROW_SCHEMA = pa.schema(
    [
        pa.field("metricname", pa.string(), nullable=False),
        pa.field("tags", pa.string(), nullable=False),
        pa.field("value", pa.float64(), nullable=False),
        pa.field("timestamp", pa.timestamp("ms"), nullable=False),
    ]
)


def records_to_arrow(records: Sequence[Record]) -> pa.Table:
    """Build an Arrow table matching the metrics table columns."""
    return pa.table(
        {
            "metricname": pa.array([r.metricname for r in records], type=pa.string()),
            "tags": pa.array([r.tags for r in records], type=pa.string()),
            "value": pa.array([r.value for r in records], type=pa.float64()),
            "timestamp": pa.array(
                [r.timestamp_ms for r in records], type=pa.timestamp("ms")
            ),
        },
        schema=ARROW_SCHEMA,
    )


class DuckDBWarehouse(Warehouse):
    """
    Metrics warehouse stored in a DuckDB table.

    Inserts go through a registered Arrow table and a single
    ``INSERT ... SELECT`` statement, so a batch lands atomically. Every call
    runs on a pooled connection in the thread executor and is bounded by
    ``asyncio.wait_for``; on deadline the connection is interrupted and
    dropped from the pool.

    Usage:
        warehouse = DuckDBWarehouse(":memory:", table_name="metrics")
        await warehouse.initialize()

        await warehouse.insert(records, timeout=30)
        rows = await warehouse.query("SELECT ...", timeout=30)
    """

    name = "duckdb"

    def __init__(
        self,
        database_path: str = ":memory:",
        table_name: str = "metrics",
        pool_size: int = 4,
        memory_limit: str | None = None,
        threads: int | None = None,
    ) -> None:
        """
        Initialize warehouse.

        Args:
            database_path: DuckDB database file or ":memory:"
            table_name: Metrics table, optionally schema-qualified
            pool_size: Maximum number of concurrent connections
            memory_limit: DuckDB memory limit (e.g., "4GB")
            threads: Number of DuckDB worker threads

        Raises:
            ConfigurationError: If table_name is not a valid identifier
        """
        self.database_path = database_path
        self.table_name = table_name
        try:
            self._table = quote_identifier(table_name)
        except ValueError as e:
            raise ConfigurationError(str(e), table_name=table_name) from e
        self.pool = DuckDBConnectionPool(
            database_path=database_path,
            max_connections=pool_size,
            memory_limit=memory_limit,
            threads=threads,
        )

    @classmethod
    def from_settings(cls, settings) -> "DuckDBWarehouse":
        """Create a warehouse from application settings."""
        return cls(
            database_path=settings.database_path,
            table_name=settings.table_name,
            pool_size=settings.duckdb_pool_size,
            memory_limit=settings.duckdb_memory_limit,
            threads=settings.duckdb_threads,
        )

    async def initialize(self, create_schema: bool = True) -> None:
        """Open the database and optionally create the metrics table."""
        await self.pool.initialize()
        if create_schema:
            await self.ensure_schema()

    def schema_sql(self) -> str:
        """CREATE TABLE statement for the metrics table."""
        columns = ", ".join(
            f'"{column}" {column_type} NOT NULL' for column, column_type in SCHEMA_COLUMNS
        )
        return f"CREATE TABLE IF NOT EXISTS {self._table} ({columns})"

    async def ensure_schema(self, timeout: float = 30.0) -> None:
        """Create the metrics table if it does not exist."""
        sql = self.schema_sql()

        def create(conn: duckdb.DuckDBPyConnection) -> None:
            conn.execute(sql)

        try:
            await self._call("schema", create, timeout)
        except duckdb.Error as e:
            raise WarehouseQueryError(f"Failed to create metrics table: {e}", query=sql) from e
        logger.info(f"Metrics table ready: {self.table_name}")

    async def _call(
        self,
        operation: str,
        fn: Callable[[duckdb.DuckDBPyConnection], Any],
        timeout: float,
    ) -> Any:
        """Run ``fn`` on a pooled connection under a deadline."""
        try:
            async with self.pool.acquire() as conn:
                return await asyncio.wait_for(self.pool.run(conn, fn), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"DuckDB {operation} timed out",
                extra={"operation": operation, "timeout_seconds": timeout},
            )
            raise WarehouseTimeoutError(operation, timeout)

    async def insert(self, records: Sequence[Record], timeout: float) -> None:
        """Insert all records with one statement."""
        if not records:
            return

        batch = records_to_arrow(records)
        sql = (
            f'INSERT INTO {self._table} (metricname, tags, value, "timestamp") '
            f'SELECT metricname, tags, value, "timestamp" FROM {BATCH_VIEW}'
        )

        def do_insert(conn: duckdb.DuckDBPyConnection) -> None:
            conn.register(BATCH_VIEW, batch)
            try:
                conn.execute(sql)
            finally:
                conn.unregister(BATCH_VIEW)

        try:
            await self._call("insert", do_insert, timeout)
        except duckdb.Error as e:
            # DuckDB inserts are all-or-nothing, so the failure covers every row
            raise WarehouseInsertError(
                f"Failed to insert {len(records)} records: {e}",
                rows=len(records),
                row_errors=[str(e)],
            ) from e

    async def query(self, sql: str, timeout: float) -> list[dict[str, Any]]:
        """Run a query and return rows as dictionaries."""

        def fetch(conn: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
            cursor = conn.execute(sql)
            columns = [d[0] for d in cursor.description]
            rows: list[dict[str, Any]] = []
            while True:
                chunk = cursor.fetchmany(FETCH_SIZE)
                if not chunk:
                    break
                rows.extend(dict(zip(columns, row)) for row in chunk)
            return rows

        try:
            return await self._call("query", fetch, timeout)
        except duckdb.Error as e:
            raise WarehouseQueryError(f"Query failed: {e}", query=sql) from e

    async def info(self, timeout: float = 30.0) -> dict[str, Any]:
        """Summary of the metrics table: rows, metric names, time range."""
        rows = await self.query(
            "SELECT count(*) AS total_rows, "
            "count(DISTINCT metricname) AS unique_metrics, "
            'epoch_ms(min("timestamp")) AS min_timestamp_ms, '
            'epoch_ms(max("timestamp")) AS max_timestamp_ms '
            f"FROM {self._table}",
            timeout,
        )
        result = rows[0]
        result["table"] = self.table_name
        result["database"] = self.database_path
        return result

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()
