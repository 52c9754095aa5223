"""Custom exceptions for promduck."""

from typing import Any


class PromDuckError(Exception):
    """Base exception for all promduck errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(PromDuckError):
    """Configuration-related errors."""

    pass


class TranslationError(PromDuckError):
    """Read request could not be translated into SQL."""

    pass


class UnsupportedMatcherError(TranslationError):
    """Label matcher type is not one of EQ, NEQ, RE, NRE."""

    def __init__(self, match_type: Any, label: str) -> None:
        super().__init__(
            f"Unsupported matcher type {match_type!r} for label {label!r}",
            match_type=match_type,
            label=label,
        )


class InvalidLabelNameError(TranslationError):
    """Label name cannot be used inside a JSON path."""

    def __init__(self, label: str) -> None:
        super().__init__(f"Invalid label name: {label!r}", label=label)


class UnquotableValueError(TranslationError):
    """Matcher value cannot be embedded in a SQL string literal."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Value contains a NUL character: {value!r}", value=value)


class MalformedTagsError(PromDuckError):
    """Stored tag blob is not a JSON object of strings."""

    def __init__(self, details: str, tags: str | None = None) -> None:
        super().__init__(f"Malformed tags: {details}", details=details, tags=tags)


class WarehouseError(PromDuckError):
    """Base class for warehouse call failures."""

    pass


class WarehouseInsertError(WarehouseError):
    """Insertion of a batch failed, fully or partially."""

    def __init__(
        self,
        message: str,
        rows: int,
        row_errors: list[str] | None = None,
    ) -> None:
        super().__init__(message, rows=rows, row_errors=row_errors or [])
        self.row_errors = row_errors or []


class WarehouseQueryError(WarehouseError):
    """Query execution failed."""

    def __init__(self, message: str, query: str | None = None) -> None:
        super().__init__(message, query=query)


class WarehouseTimeoutError(WarehouseError):
    """Warehouse call exceeded its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Warehouse {operation} timed out after {timeout_seconds}s",
            operation=operation,
            timeout_seconds=timeout_seconds,
        )


class ConnectionPoolExhaustedError(WarehouseError):
    """Connection pool exhausted."""

    def __init__(self, max_connections: int) -> None:
        super().__init__(
            f"Connection pool exhausted: all {max_connections} connections in use",
            max_connections=max_connections,
        )


class ProtocolError(PromDuckError):
    """Remote read/write payload could not be decoded."""

    pass


def get_http_status(error: Exception) -> int:
    """Map exception to HTTP status code."""
    status_map = {
        ProtocolError: 400,
        TranslationError: 400,
        WarehouseTimeoutError: 504,
        ConnectionPoolExhaustedError: 503,
        MalformedTagsError: 500,
        WarehouseError: 500,
        ConfigurationError: 500,
    }

    for exc_type, status in status_map.items():
        if isinstance(error, exc_type):
            return status

    return 500
