"""Warehouse interface for promduck.

The storage client needs two calls from the backing warehouse: a batched
insert into the fixed metrics table and a SQL query returning rows. Both are
bounded by a caller-supplied deadline. Schema creation and the table summary
serve the CLI.

Schema (fixed, not negotiated by the adapter):

    metricname  VARCHAR   value of the __name__ label
    tags        VARCHAR   JSON object with every other label
    value       DOUBLE    sample value
    timestamp   TIMESTAMP sample time, UTC
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

from promduck.models import Record

SCHEMA_COLUMNS: tuple[tuple[str, str], ...] = (
    ("metricname", "VARCHAR"),
    ("tags", "VARCHAR"),
    ("value", "DOUBLE"),
    ("timestamp", "TIMESTAMP"),
)


class Warehouse(ABC):
    """Abstract base class for warehouses holding metric records."""

    name: str = "warehouse"

    @abstractmethod
    async def insert(self, records: Sequence[Record], timeout: float) -> None:
        """Insert all records in a single call.

        Args:
            records: Records to store
            timeout: Deadline in seconds for the call

        Raises:
            WarehouseInsertError: If the insertion fails fully or partially
            WarehouseTimeoutError: If the deadline is exceeded
        """
        pass

    @abstractmethod
    async def query(self, sql: str, timeout: float) -> list[dict[str, Any]]:
        """Run a query and return its rows in warehouse order.

        Args:
            sql: Query text
            timeout: Deadline in seconds for the call

        Returns:
            Rows as column name -> value dictionaries

        Raises:
            WarehouseQueryError: If the query fails
            WarehouseTimeoutError: If the deadline is exceeded
        """
        pass

    @abstractmethod
    async def ensure_schema(self, timeout: float = 30.0) -> None:
        """Create the metrics table if it does not exist."""
        pass

    @abstractmethod
    async def info(self, timeout: float = 30.0) -> dict[str, Any]:
        """Summary of the metrics table (row count, metric names, time range)."""
        pass

    async def close(self) -> None:
        """Release warehouse resources."""
        return None
