"""Merge warehouse rows back into time series.

Rows from every sub-query of one read land in the same map, keyed by the
fingerprint of their reconstructed label set, so a series matched by two
sub-queries comes back once.
"""

import hashlib
import logging
from typing import Any, Iterable, Mapping

from promduck.models import METRIC_NAME_LABEL, Label, Sample, TimeSeries
from promduck.storage.codec import decode_tags

logger = logging.getLogger(__name__)

# separators that cannot appear in valid UTF-8 label text
_NAME_SEP = b"\xff"
_PAIR_SEP = b"\xfe"


def fingerprint(labels: Mapping[str, str]) -> int:
    """Order-independent 64-bit hash of a label set.

    Only meaningful within one merge; never persisted.
    """
    digest = hashlib.blake2b(digest_size=8)
    for name in sorted(labels):
        digest.update(name.encode("utf-8"))
        digest.update(_NAME_SEP)
        digest.update(labels[name].encode("utf-8"))
        digest.update(_PAIR_SEP)
    return int.from_bytes(digest.digest(), "big")


def row_labels(row: Mapping[str, Any]) -> dict[str, str]:
    """Rebuild the full label set of a row (tags plus metric name)."""
    labels = decode_tags(row["tags"])
    labels[METRIC_NAME_LABEL] = row["metricname"]
    return labels


def row_sample(row: Mapping[str, Any]) -> Sample:
    """Extract the sample of a row."""
    return Sample(timestamp_ms=int(row["timestamp_ms"]), value=float(row["value"]))


class ResultMerger:
    """Accumulates rows into series for one read call.

    Usage:
        merger = ResultMerger()
        for rows in results_per_subquery:
            merger.add_rows(rows)
        series = merger.series()
    """

    def __init__(self) -> None:
        self._series: dict[int, TimeSeries] = {}
        self.rows_merged = 0

    def add_row(self, row: Mapping[str, Any]) -> None:
        """Append one row to its series, creating the series if needed.

        Raises:
            MalformedTagsError: If the row's tag blob is invalid
        """
        labels = row_labels(row)
        key = fingerprint(labels)

        ts = self._series.get(key)
        if ts is None:
            ts = TimeSeries(
                labels=[Label(name=name, value=labels[name]) for name in sorted(labels)]
            )
            self._series[key] = ts

        ts.samples.append(row_sample(row))
        self.rows_merged += 1

    def add_rows(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Merge a sub-query result; returns the number of rows consumed."""
        count = 0
        for row in rows:
            self.add_row(row)
            count += 1
        return count

    def series(self) -> list[TimeSeries]:
        """Series in first-seen order."""
        return list(self._series.values())

    def __len__(self) -> int:
        return len(self._series)


def merge(results: Iterable[Iterable[Mapping[str, Any]]]) -> list[TimeSeries]:
    """Merge sub-query results, in order, into a series list."""
    merger = ResultMerger()
    for rows in results:
        merger.add_rows(rows)
    logger.debug(
        "merged rows into series",
        extra={"rows": merger.rows_merged, "series": len(merger)},
    )
    return merger.series()
