"""HTTP request checks for the remote storage endpoints.

Validates the framing headers Prometheus sends with remote write and remote
read bodies, and the body size limit.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from promduck.exceptions import ProtocolError

logger = logging.getLogger(__name__)


class PrometheusParser:
    """Parser for Prometheus remote storage HTTP requests.

    Expected request format:
    - Method: POST
    - Content-Type: application/x-protobuf
    - Content-Encoding: snappy
    - X-Prometheus-Remote-Write-Version or X-Prometheus-Remote-Read-Version (optional)
    - Body: Snappy-compressed Protobuf message

    Example:
        parser = PrometheusParser()

        info = parser.parse_request(request.headers, body, max_size=32 * 1024 * 1024)
        print(f"Received {info['body_size']} bytes")
    """

    EXPECTED_CONTENT_TYPE = "application/x-protobuf"
    EXPECTED_CONTENT_ENCODING = "snappy"
    SUPPORTED_WRITE_VERSIONS = ["0.1.0", "1.0.0"]
    SUPPORTED_READ_VERSIONS = ["0.1.0"]

    @staticmethod
    def _normalize(headers: Mapping[str, str]) -> Dict[str, str]:
        return {k.lower(): v for k, v in headers.items()}

    @staticmethod
    def validate_headers(
        headers: Mapping[str, str], kind: str = "write"
    ) -> tuple[bool, Optional[str]]:
        """Validate framing headers.

        Missing headers are accepted, since older senders omit them; a header
        with a different value is rejected. An unknown protocol version only
        logs a warning.

        Args:
            headers: HTTP request headers
            kind: ``"write"`` or ``"read"``

        Returns:
            tuple: (is_valid, error_message)
        """
        normalized = PrometheusParser._normalize(headers)

        content_type = normalized.get("content-type", "")
        if content_type and PrometheusParser.EXPECTED_CONTENT_TYPE not in content_type:
            return (
                False,
                f"Invalid Content-Type: expected '{PrometheusParser.EXPECTED_CONTENT_TYPE}', "
                f"got '{content_type}'",
            )

        content_encoding = normalized.get("content-encoding", "")
        if (
            content_encoding
            and PrometheusParser.EXPECTED_CONTENT_ENCODING not in content_encoding.lower()
        ):
            return (
                False,
                f"Invalid Content-Encoding: expected "
                f"'{PrometheusParser.EXPECTED_CONTENT_ENCODING}', got '{content_encoding}'",
            )

        if kind == "read":
            version = normalized.get("x-prometheus-remote-read-version", "")
            supported = PrometheusParser.SUPPORTED_READ_VERSIONS
        else:
            version = normalized.get("x-prometheus-remote-write-version", "")
            supported = PrometheusParser.SUPPORTED_WRITE_VERSIONS

        if version and version not in supported:
            logger.warning(
                f"Unsupported Prometheus remote {kind} version: {version}. "
                f"Supported versions: {supported}"
            )

        return True, None

    @staticmethod
    def validate_request_size(body_size: int, max_size: int) -> tuple[bool, Optional[str]]:
        """Check the body against the configured limit.

        Returns:
            tuple: (is_valid, error_message)
        """
        if body_size <= 0:
            return False, "Request body is empty"

        if body_size > max_size:
            return (
                False,
                f"Request body too large: {body_size} bytes "
                f"(max: {max_size} bytes, {max_size / (1024 * 1024):.1f} MB)",
            )

        return True, None

    @staticmethod
    def parse_request(
        headers: Mapping[str, str],
        body: bytes,
        max_size: int,
        kind: str = "write",
    ) -> Dict[str, Any]:
        """Validate headers and size, returning request information.

        Returns:
            dict: body_size, content_type, content_encoding, version, user_agent

        Raises:
            ProtocolError: If headers or size are invalid
        """
        is_valid, error = PrometheusParser.validate_headers(headers, kind)
        if not is_valid:
            raise ProtocolError(f"Invalid Prometheus remote {kind} request: {error}", kind=kind)

        is_valid, error = PrometheusParser.validate_request_size(len(body), max_size)
        if not is_valid:
            raise ProtocolError(
                f"Invalid Prometheus remote {kind} request: {error}",
                kind=kind,
                body_size=len(body),
            )

        normalized = PrometheusParser._normalize(headers)
        info = {
            "body_size": len(body),
            "content_type": normalized.get("content-type", ""),
            "content_encoding": normalized.get("content-encoding", ""),
            "version": normalized.get(f"x-prometheus-remote-{kind}-version", "unknown"),
            "user_agent": normalized.get("user-agent"),
        }

        logger.debug(
            f"Parsed Prometheus {kind} request: {info['body_size']} bytes, "
            f"version {info['version']}"
        )

        return info

    @staticmethod
    def read_response_headers() -> Dict[str, str]:
        """Headers for a remote read response body."""
        return {
            "Content-Type": PrometheusParser.EXPECTED_CONTENT_TYPE,
            "Content-Encoding": PrometheusParser.EXPECTED_CONTENT_ENCODING,
        }
