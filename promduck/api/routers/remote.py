"""Prometheus remote write and remote read endpoints.

Prometheus configuration:
```yaml
remote_write:
  - url: http://localhost:9201/write
remote_read:
  - url: http://localhost:9201/read
```
"""

import asyncio
import logging
import time
from typing import Sequence

from fastapi import APIRouter, Request, Response, status

from promduck.exceptions import PromDuckError, ProtocolError
from promduck.metrics import APIMetrics
from promduck.models import TimeSeries
from promduck.remote import PrometheusParser, PrometheusRemoteStorage
from promduck.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["remote"])


def _sample_count(timeseries: Sequence[TimeSeries]) -> int:
    return sum(len(ts.samples) for ts in timeseries)


async def send_samples(
    writer: StorageClient,
    timeseries: Sequence[TimeSeries],
    metrics: APIMetrics,
) -> None:
    """Write to one backend, recording sent or failed samples for it.

    Raises:
        Exception: The backend failure, after it has been counted
    """
    num_samples = _sample_count(timeseries)
    begin = time.perf_counter()
    try:
        await writer.write(timeseries)
    except Exception as e:
        logger.warning(
            f"Error sending samples to remote storage: {e}",
            extra={"storage": writer.name, "num_samples": num_samples, "error": str(e)},
        )
        metrics.failed_samples.labels(remote=writer.name).inc(num_samples)
        metrics.write_errors.inc()
        raise

    duration = time.perf_counter() - begin
    metrics.sent_samples.labels(remote=writer.name).inc(num_samples)
    metrics.sent_batch_duration.labels(remote=writer.name).observe(duration)
    logger.debug("Sent samples", extra={"storage": writer.name, "num_samples": num_samples})


@router.post(
    "/write",
    status_code=status.HTTP_200_OK,
    summary="Prometheus remote write endpoint",
)
async def remote_write(request: Request) -> Response:
    """Decode a remote write request and store it in every writer.

    Writers run concurrently. If any of them fails, the first failure
    decides the status code so that Prometheus retries the batch.

    Raises:
        ProtocolError: If the payload cannot be decoded (400)
        WarehouseError: If a writer fails (5xx)
    """
    metrics: APIMetrics = request.app.state.api_metrics
    writers: list[StorageClient] = request.app.state.writers
    settings = request.app.state.settings

    begin = time.perf_counter()
    body = await request.body()

    try:
        PrometheusParser.parse_request(
            request.headers, body, settings.max_request_size_bytes, kind="write"
        )
        timeseries = PrometheusRemoteStorage.decode_write_request(body)
    except ProtocolError:
        metrics.write_errors.inc()
        raise

    metrics.received_samples.inc(_sample_count(timeseries))

    results = await asyncio.gather(
        *(send_samples(writer, timeseries, metrics) for writer in writers),
        return_exceptions=True,
    )

    duration = time.perf_counter() - begin
    if writers:
        metrics.write_processing_duration.labels(remote=writers[0].name).observe(duration)
    logger.debug("Write request completed", extra={"duration": duration})

    for result in results:
        if isinstance(result, BaseException):
            raise result

    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/read",
    status_code=status.HTTP_200_OK,
    summary="Prometheus remote read endpoint",
    response_class=Response,
)
async def remote_read(request: Request) -> Response:
    """Answer a remote read request from the single configured reader.

    Returns:
        Snappy-compressed protobuf ReadResponse

    Raises:
        ProtocolError: If the payload cannot be decoded (400)
        TranslationError: If a matcher cannot be translated (400)
        WarehouseError: If the query fails (5xx)
    """
    metrics: APIMetrics = request.app.state.api_metrics
    readers: list[StorageClient] = request.app.state.readers
    settings = request.app.state.settings

    begin = time.perf_counter()
    body = await request.body()

    try:
        PrometheusParser.parse_request(
            request.headers, body, settings.max_request_size_bytes, kind="read"
        )
        read_request = PrometheusRemoteStorage.decode_read_request(body)

        if len(readers) != 1:
            metrics.read_errors.inc()
            return Response(
                content=f"expected exactly one reader, found {len(readers)} readers",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                media_type="text/plain",
            )
        reader = readers[0]

        response = await reader.read(read_request)
    except PromDuckError as e:
        logger.warning(
            f"Error executing query: {e}",
            extra={"storage": readers[0].name if readers else None, "error": str(e)},
        )
        metrics.read_errors.inc()
        raise

    payload = PrometheusRemoteStorage.encode_read_response(response)

    duration = time.perf_counter() - begin
    metrics.read_processing_duration.labels(remote=reader.name).observe(duration)
    logger.debug("Read request completed", extra={"duration": duration})

    return Response(
        content=payload,
        status_code=status.HTTP_200_OK,
        headers=PrometheusParser.read_response_headers(),
    )
