"""Batch writer: time series to one warehouse insertion."""

import logging
import time
from typing import Sequence

from promduck.exceptions import WarehouseInsertError
from promduck.metrics import StorageMetrics
from promduck.models import Record, TimeSeries, WriteResult
from promduck.storage.codec import RowCodec, encode_tags, split_labels
from promduck.storage.warehouse import Warehouse

logger = logging.getLogger(__name__)


class BatchWriter:
    """Flattens every sample of every series into a single insert.

    Only the insertion call is timed. Failures are raised to the caller
    without retrying.

    Example:
        writer = BatchWriter(warehouse, metrics)
        result = await writer.write(timeseries, timeout=30)
        print(f"Wrote {result.records_written} records")
    """

    def __init__(self, warehouse: Warehouse, metrics: StorageMetrics) -> None:
        self.warehouse = warehouse
        self.metrics = metrics
        self.codec = RowCodec(metrics.ignored_samples)

    def build_batch(self, timeseries: Sequence[TimeSeries]) -> tuple[list[Record], int]:
        """Encode all samples.

        Returns:
            Tuple of (records to insert, samples observed before filtering)
        """
        batch: list[Record] = []
        observed = 0

        for ts in timeseries:
            observed += len(ts.samples)
            self.metrics.records_fetched.inc(len(ts.samples))

            metric_name, tags = split_labels(ts.labels)
            blob = encode_tags(tags)

            for sample in ts.samples:
                record = self.codec.encode_split(
                    metric_name, blob, sample.value, sample.timestamp_ms
                )
                if record is not None:
                    batch.append(record)

        return batch, observed

    async def write(self, timeseries: Sequence[TimeSeries], timeout: float) -> WriteResult:
        """Write all series in one insertion call.

        Raises:
            WarehouseInsertError: If the warehouse rejects the batch
            WarehouseTimeoutError: If the insert exceeds ``timeout``
        """
        batch, observed = self.build_batch(timeseries)
        result = WriteResult(
            records_observed=observed,
            records_written=len(batch),
            records_skipped=observed - len(batch),
        )

        if not batch:
            logger.debug(
                "No finite samples to write", extra={"observed": observed}
            )
            return result

        begin = time.perf_counter()
        try:
            await self.warehouse.insert(batch, timeout)
        except WarehouseInsertError as e:
            for row_error in e.row_errors:
                logger.error(f"Row insertion failed: {row_error}")
            raise
        duration = time.perf_counter() - begin

        self.metrics.batch_write_duration.observe(duration)
        result.duration_seconds = duration

        logger.debug("Batch written", extra=result.to_dict())
        return result
