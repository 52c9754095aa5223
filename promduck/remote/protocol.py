"""Prometheus remote storage protocol handler.

This module decodes remote write and remote read requests (Snappy-compressed
Protobuf) into ``promduck.models`` and encodes read responses back onto the
wire.
"""

import logging
from typing import Any

import snappy
from google.protobuf.message import DecodeError

from promduck.exceptions import ProtocolError
from promduck.models import (
    Label,
    LabelMatcher,
    MatchType,
    Query,
    QueryResult,
    ReadRequest,
    ReadResponse,
    Sample,
    TimeSeries,
)
from promduck.remote import prompb

logger = logging.getLogger(__name__)


def _match_type(value: int) -> MatchType | int:
    """Map a wire enum value, passing unknown values through untouched."""
    try:
        return MatchType(value)
    except ValueError:
        return value


def _decompress(compressed_data: bytes, kind: str) -> bytes:
    try:
        return snappy.decompress(compressed_data)
    except Exception as e:
        logger.error(f"Failed to decompress Snappy data: {e}")
        raise ProtocolError(
            f"Failed to decompress Prometheus {kind} request: {e}", kind=kind
        ) from e


class PrometheusRemoteStorage:
    """Handler for the Prometheus remote write and remote read protocols.

    Both directions travel as HTTP POST bodies:
    - Content-Type: application/x-protobuf
    - Content-Encoding: snappy
    - Body: Snappy-compressed Protobuf WriteRequest / ReadRequest

    Read responses use the same framing with a ReadResponse message.

    Example:
        handler = PrometheusRemoteStorage()

        timeseries = handler.decode_write_request(body)
        request = handler.decode_read_request(body)
        payload = handler.encode_read_response(response)
    """

    @staticmethod
    def decode_write_request(compressed_data: bytes) -> list[TimeSeries]:
        """Decode a remote write request into time series.

        Args:
            compressed_data: Snappy-compressed Protobuf WriteRequest

        Returns:
            List of series with labels and samples in wire order

        Raises:
            ProtocolError: If decompression or decoding fails
        """
        decompressed = _decompress(compressed_data, "write")

        write_request = prompb.WriteRequest()
        try:
            write_request.ParseFromString(decompressed)
        except DecodeError as e:
            logger.error(f"Failed to decode Prometheus write request: {e}")
            raise ProtocolError(
                f"Failed to decode Prometheus write request: {e}", kind="write"
            ) from e

        timeseries = [
            TimeSeries(
                labels=[Label(name=label.name, value=label.value) for label in ts.labels],
                samples=[
                    Sample(timestamp_ms=sample.timestamp, value=sample.value)
                    for sample in ts.samples
                ],
            )
            for ts in write_request.timeseries
        ]

        logger.debug(f"Decoded WriteRequest with {len(timeseries)} time series")
        return timeseries

    @staticmethod
    def decode_read_request(compressed_data: bytes) -> ReadRequest:
        """Decode a remote read request.

        Matcher types outside EQ/NEQ/RE/NRE are kept as raw integers; the
        translator rejects them.

        Raises:
            ProtocolError: If decompression or decoding fails
        """
        decompressed = _decompress(compressed_data, "read")

        read_request = prompb.ReadRequest()
        try:
            read_request.ParseFromString(decompressed)
        except DecodeError as e:
            logger.error(f"Failed to decode Prometheus read request: {e}")
            raise ProtocolError(
                f"Failed to decode Prometheus read request: {e}", kind="read"
            ) from e

        request = ReadRequest(
            queries=[
                Query(
                    start_timestamp_ms=query.start_timestamp_ms,
                    end_timestamp_ms=query.end_timestamp_ms,
                    matchers=[
                        LabelMatcher(
                            name=matcher.name,
                            value=matcher.value,
                            type=_match_type(matcher.type),
                        )
                        for matcher in query.matchers
                    ],
                )
                for query in read_request.queries
            ]
        )

        logger.debug(f"Decoded ReadRequest with {len(request.queries)} queries")
        return request

    @staticmethod
    def encode_read_response(response: ReadResponse) -> bytes:
        """Encode a read response as Snappy-compressed Protobuf."""
        message = prompb.ReadResponse()
        for result in response.results:
            result_message = message.results.add()
            for series in result.timeseries:
                _fill_timeseries(result_message.timeseries.add(), series)
        return snappy.compress(message.SerializeToString())

    @staticmethod
    def decode_read_response(compressed_data: bytes) -> ReadResponse:
        """Decode a read response; used by the CLI and tests.

        Raises:
            ProtocolError: If decompression or decoding fails
        """
        decompressed = _decompress(compressed_data, "read response")

        message = prompb.ReadResponse()
        try:
            message.ParseFromString(decompressed)
        except DecodeError as e:
            raise ProtocolError(
                f"Failed to decode Prometheus read response: {e}", kind="read response"
            ) from e

        return ReadResponse(
            results=[
                QueryResult(
                    timeseries=[
                        TimeSeries(
                            labels=[Label(name=lb.name, value=lb.value) for lb in ts.labels],
                            samples=[
                                Sample(timestamp_ms=s.timestamp, value=s.value)
                                for s in ts.samples
                            ],
                        )
                        for ts in result.timeseries
                    ]
                )
                for result in message.results
            ]
        )

    @staticmethod
    def encode_write_request(timeseries: list[TimeSeries]) -> bytes:
        """Encode series as a Snappy-compressed WriteRequest."""
        message = prompb.WriteRequest()
        for series in timeseries:
            _fill_timeseries(message.timeseries.add(), series)
        return snappy.compress(message.SerializeToString())

    @staticmethod
    def encode_read_request(request: ReadRequest) -> bytes:
        """Encode a ReadRequest as Snappy-compressed Protobuf."""
        message = prompb.ReadRequest()
        for query in request.queries:
            query_message = message.queries.add()
            query_message.start_timestamp_ms = query.start_timestamp_ms
            query_message.end_timestamp_ms = query.end_timestamp_ms
            for matcher in query.matchers:
                matcher_message = query_message.matchers.add()
                matcher_message.type = int(matcher.type)
                matcher_message.name = matcher.name
                matcher_message.value = matcher.value
        return snappy.compress(message.SerializeToString())


def _fill_timeseries(message: Any, series: TimeSeries) -> None:
    for label in series.labels:
        label_message = message.labels.add()
        label_message.name = label.name
        label_message.value = label.value
    for sample in series.samples:
        sample_message = message.samples.add()
        sample_message.value = sample.value
        sample_message.timestamp = sample.timestamp_ms
