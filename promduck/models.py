"""Time series, matcher, and stored record types.

These are the in-process shapes exchanged between the remote protocol layer
and the storage engine. They mirror the Prometheus ``prompb`` messages without
depending on protobuf.
"""

from dataclasses import dataclass, field
from enum import IntEnum

METRIC_NAME_LABEL = "__name__"


class MatchType(IntEnum):
    """Label matcher kinds, numbered as on the wire."""

    EQ = 0
    NEQ = 1
    RE = 2
    NRE = 3


@dataclass(frozen=True)
class Label:
    """Single label name/value pair."""

    name: str
    value: str


@dataclass(frozen=True)
class Sample:
    """Single observation of a series."""

    timestamp_ms: int
    value: float


@dataclass
class TimeSeries:
    """
    Label set plus ordered samples.

    On the write side this is what the remote-write request carries. On the
    read side it is built incrementally by the result merger.
    """

    labels: list[Label] = field(default_factory=list)
    samples: list[Sample] = field(default_factory=list)

    def label_dict(self) -> dict[str, str]:
        """Return labels as a name -> value mapping."""
        return {label.name: label.value for label in self.labels}

    @property
    def metric_name(self) -> str:
        """Value of the ``__name__`` label, empty if absent."""
        for label in self.labels:
            if label.name == METRIC_NAME_LABEL:
                return label.value
        return ""


@dataclass(frozen=True)
class LabelMatcher:
    """Selects series whose label ``name`` matches ``value`` under ``type``."""

    name: str
    value: str
    type: MatchType = MatchType.EQ


@dataclass
class Query:
    """One read sub-query: inclusive time range plus matchers."""

    start_timestamp_ms: int
    end_timestamp_ms: int
    matchers: list[LabelMatcher] = field(default_factory=list)


@dataclass
class ReadRequest:
    """Remote-read request made of independent sub-queries."""

    queries: list[Query] = field(default_factory=list)


@dataclass
class QueryResult:
    """Series returned for a read."""

    timeseries: list[TimeSeries] = field(default_factory=list)


@dataclass
class ReadResponse:
    """Remote-read response."""

    results: list[QueryResult] = field(default_factory=list)


@dataclass(frozen=True)
class Record:
    """
    Row stored in the warehouse.

    Attributes:
        value: Sample value, always finite
        metricname: Value of the ``__name__`` label
        timestamp_ms: Milliseconds since the Unix epoch
        tags: JSON object of all other labels, never containing ``__name__``
    """

    value: float
    metricname: str
    timestamp_ms: int
    tags: str


@dataclass
class WriteResult:
    """Outcome of one batch write."""

    records_observed: int = 0
    records_written: int = 0
    records_skipped: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Convert result to dictionary for logging."""
        return {
            "records_observed": self.records_observed,
            "records_written": self.records_written,
            "records_skipped": self.records_skipped,
            "duration_seconds": self.duration_seconds,
        }
