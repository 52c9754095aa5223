"""Row codec: observations to stored records and back.

A record keeps the metric name in its own column and folds every other
label into a single JSON object stored in the ``tags`` column.
"""

import json
import logging
import math
from typing import Iterable, Mapping

from prometheus_client import Counter

from promduck.exceptions import MalformedTagsError
from promduck.models import METRIC_NAME_LABEL, Label, Record

logger = logging.getLogger(__name__)


def split_labels(labels: Iterable[Label] | Mapping[str, str]) -> tuple[str, dict[str, str]]:
    """Separate the metric name from the remaining labels.

    Args:
        labels: Label list or name -> value mapping

    Returns:
        Tuple of (metric name, other labels). The metric name is empty when
        the ``__name__`` label is missing.
    """
    if isinstance(labels, Mapping):
        pairs = labels.items()
    else:
        pairs = ((label.name, label.value) for label in labels)

    metric_name = ""
    tags: dict[str, str] = {}
    for name, value in pairs:
        if name == METRIC_NAME_LABEL:
            metric_name = value
        else:
            tags[name] = value
    return metric_name, tags


def encode_tags(tags: Mapping[str, str]) -> str:
    """Serialize non-name labels as a compact JSON object.

    Keys are sorted so identical label sets always produce identical blobs.
    """
    return json.dumps(
        {name: value for name, value in tags.items() if name != METRIC_NAME_LABEL},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def decode_tags(blob: str | bytes | None) -> dict[str, str]:
    """Parse a stored tag blob.

    Args:
        blob: JSON text read from the ``tags`` column

    Returns:
        Label name -> value mapping

    Raises:
        MalformedTagsError: If the blob is not a JSON object of strings
    """
    if blob is None:
        raise MalformedTagsError("tags column is NULL")
    if isinstance(blob, bytes):
        blob = blob.decode("utf-8")
    if not isinstance(blob, str):
        raise MalformedTagsError(f"expected text, got {type(blob).__name__}")

    try:
        parsed = json.loads(blob)
    except json.JSONDecodeError as e:
        raise MalformedTagsError(str(e), tags=blob) from e

    if not isinstance(parsed, dict):
        raise MalformedTagsError(
            f"expected JSON object, got {type(parsed).__name__}", tags=blob
        )

    for name, value in parsed.items():
        if not isinstance(value, str):
            raise MalformedTagsError(
                f"label {name!r} has non-string value {value!r}", tags=blob
            )

    return parsed


def is_finite(value: float) -> bool:
    """Whether a sample value can be stored."""
    return not (math.isnan(value) or math.isinf(value))


class RowCodec:
    """Converts one observation into a storable record.

    Non-finite values are rejected: the warehouse column cannot hold them.

    Example:
        codec = RowCodec(metrics.ignored_samples)
        record = codec.encode(labels, 1.0, 1698765432000)
        if record is None:
            ...  # skipped
    """

    def __init__(self, ignored_samples: Counter | None = None) -> None:
        """
        Initialize codec.

        Args:
            ignored_samples: Counter incremented once per skipped sample
        """
        self.ignored_samples = ignored_samples

    def encode(
        self,
        labels: Iterable[Label] | Mapping[str, str],
        value: float,
        timestamp_ms: int,
    ) -> Record | None:
        """Encode an observation, or return None to skip it."""
        metric_name, tags = split_labels(labels)
        return self.encode_split(metric_name, encode_tags(tags), value, timestamp_ms)

    def encode_split(
        self,
        metric_name: str,
        tags: str,
        value: float,
        timestamp_ms: int,
    ) -> Record | None:
        """Encode with the label split already done.

        The batch writer splits labels once per series and reuses the blob for
        every sample of that series.
        """
        value = float(value)
        if not is_finite(value):
            logger.debug(
                "cannot send to duckdb, skipping sample",
                extra={"value": value, "metric": metric_name, "timestamp": timestamp_ms},
            )
            if self.ignored_samples is not None:
                self.ignored_samples.inc()
            return None

        return Record(
            value=value,
            metricname=metric_name,
            timestamp_ms=int(timestamp_ms),
            tags=tags,
        )
