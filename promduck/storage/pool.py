"""DuckDB connection pool for the metrics warehouse."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import duckdb

from promduck.exceptions import ConnectionPoolExhaustedError, WarehouseError

logger = logging.getLogger(__name__)


class DuckDBConnectionPool:
    """
    Connection pool over a single DuckDB database.

    DuckDB connections must not be shared between threads, so every pooled
    connection is a cursor of one root connection. Cursors share the database
    (including an in-memory one) but keep their own registered views and
    transaction state. DuckDB is not async; all work runs in a thread
    executor.

    Usage:
        pool = DuckDBConnectionPool(":memory:", max_connections=4)
        await pool.initialize()

        async with pool.acquire() as conn:
            rows = await pool.run(conn, lambda c: c.execute("SELECT 1").fetchall())
    """

    def __init__(
        self,
        database_path: str = ":memory:",
        max_connections: int = 4,
        memory_limit: str | None = None,
        threads: int | None = None,
        acquire_timeout: float = 5.0,
    ) -> None:
        """
        Initialize connection pool.

        Args:
            database_path: DuckDB database file or ":memory:"
            max_connections: Maximum number of pooled cursors
            memory_limit: DuckDB memory limit (e.g., "4GB")
            threads: Number of DuckDB worker threads
            acquire_timeout: Seconds to wait for a free connection
        """
        self.database_path = database_path
        self.max_connections = max_connections
        self.memory_limit = memory_limit
        self.threads = threads
        self.acquire_timeout = acquire_timeout

        self._root: duckdb.DuckDBPyConnection | None = None
        self._pool: asyncio.Queue[duckdb.DuckDBPyConnection] = asyncio.Queue(
            maxsize=max_connections
        )
        self._created_connections = 0
        self._lock = asyncio.Lock()
        self._closed = False

    async def initialize(self, min_connections: int = 1) -> None:
        """
        Open the database and pre-create connections.

        Args:
            min_connections: Number of connections to create upfront
        """
        if self._closed:
            raise ConnectionPoolExhaustedError(self.max_connections)

        loop = asyncio.get_running_loop()
        if self._root is None:
            self._root = await loop.run_in_executor(None, self._open_root)

        for _ in range(min(min_connections, self.max_connections)):
            conn = await self._create_connection()
            await self._pool.put(conn)

        logger.debug(
            "DuckDB connection pool initialized",
            extra={
                "database": self.database_path,
                "connections": self._created_connections,
            },
        )

    def _open_root(self) -> duckdb.DuckDBPyConnection:
        """Open and configure the root connection (runs in executor)."""
        conn = duckdb.connect(self.database_path)
        if self.memory_limit:
            conn.execute(f"SET memory_limit='{self.memory_limit}'")
        if self.threads:
            conn.execute(f"SET threads={int(self.threads)}")
        conn.execute("SET enable_progress_bar=false")
        return conn

    async def _create_connection(self) -> duckdb.DuckDBPyConnection:
        if self._root is None:
            raise WarehouseError("Connection pool is not initialized")

        loop = asyncio.get_running_loop()
        conn = await loop.run_in_executor(None, self._root.cursor)
        self._created_connections += 1
        logger.debug(
            f"Created connection (total: {self._created_connections}/{self.max_connections})"
        )
        return conn

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[duckdb.DuckDBPyConnection]:
        """
        Acquire a connection, returning it to the pool afterwards.

        Raises:
            ConnectionPoolExhaustedError: If no connection frees up in time
        """
        if self._closed:
            raise ConnectionPoolExhaustedError(self.max_connections)

        conn: duckdb.DuckDBPyConnection | None = None

        if self._pool.empty():
            async with self._lock:
                if self._created_connections < self.max_connections:
                    conn = await self._create_connection()

        if conn is None:
            try:
                conn = await asyncio.wait_for(
                    self._pool.get(), timeout=self.acquire_timeout
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"Connection pool exhausted: {self._created_connections}/{self.max_connections}"
                )
                raise ConnectionPoolExhaustedError(self.max_connections)

        discard = False
        try:
            yield conn
        except asyncio.TimeoutError:
            discard = True
            raise
        finally:
            if discard:
                await self._discard(conn)
            else:
                await self._pool.put(conn)

    async def _discard(self, conn: duckdb.DuckDBPyConnection) -> None:
        """Interrupt and drop a connection whose call overran its deadline."""
        try:
            conn.interrupt()
            conn.close()
        except duckdb.Error as e:
            logger.warning(f"Failed to close abandoned connection: {e}")
        self._created_connections -= 1

    async def run(
        self,
        conn: duckdb.DuckDBPyConnection,
        fn: Callable[[duckdb.DuckDBPyConnection], Any],
    ) -> Any:
        """Run ``fn(conn)`` in the thread executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, conn)

    async def close(self) -> None:
        """Close all pooled connections and the database."""
        if self._closed:
            return

        self._closed = True
        closed_count = 0
        while not self._pool.empty():
            conn = self._pool.get_nowait()
            conn.close()
            closed_count += 1

        if self._root is not None:
            self._root.close()
            self._root = None

        logger.info(f"Connection pool closed ({closed_count} connections)")

    @property
    def total_connections(self) -> int:
        """Get total number of created connections."""
        return self._created_connections
