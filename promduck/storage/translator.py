"""Label matcher to SQL translation.

Each read sub-query becomes one SELECT against the metrics table. Matchers on
``__name__`` compare the ``metricname`` column; every other matcher reads its
label from the ``tags`` JSON blob. An absent label reads as the empty string,
so ``label=""`` selects series without the label and ``label!="x"`` keeps
them.

Regex matchers are anchored and must match the whole value, as in PromQL.
This differs from a bare containment test: ``__name__=~"first"`` does not
select ``first_metric``.
"""

import logging

from promduck.exceptions import InvalidLabelNameError, UnsupportedMatcherError
from promduck.models import METRIC_NAME_LABEL, LabelMatcher, MatchType, Query
from promduck.storage.escaping import (
    is_valid_label_name,
    json_path,
    quote_identifier,
    quote_json_string,
    quote_literal,
    quote_regex,
)

logger = logging.getLogger(__name__)

METRIC_NAME_COLUMN = "metricname"
TAGS_COLUMN = "tags"
VALUE_COLUMN = "value"
TIMESTAMP_COLUMN = '"timestamp"'
TIMESTAMP_MS_ALIAS = "timestamp_ms"

# results when the label is missing: the JSON empty string, and its text
ABSENT_LABEL_JSON = '""'
ABSENT_LABEL_TEXT = ""


def _label_path(label_name: str) -> str:
    if not is_valid_label_name(label_name):
        raise InvalidLabelNameError(label_name)
    return quote_literal(json_path(label_name))


def _label_json_expression(label_name: str) -> str:
    """SQL expression yielding the JSON-quoted value of a tag label."""
    return (
        f"coalesce(CAST(json_extract({TAGS_COLUMN}, {_label_path(label_name)}) "
        f"AS VARCHAR), {quote_literal(ABSENT_LABEL_JSON)})"
    )


def _label_text_expression(label_name: str) -> str:
    """SQL expression yielding the unescaped value of a tag label."""
    return (
        f"coalesce(json_extract_string({TAGS_COLUMN}, {_label_path(label_name)}), "
        f"{quote_literal(ABSENT_LABEL_TEXT)})"
    )


def metric_name_predicate(matcher: LabelMatcher) -> str:
    """Predicate on the metric-name column."""
    match_type = matcher.type
    if match_type == MatchType.EQ:
        return f"{METRIC_NAME_COLUMN} = {quote_literal(matcher.value)}"
    if match_type == MatchType.NEQ:
        return f"{METRIC_NAME_COLUMN} <> {quote_literal(matcher.value)}"
    if match_type == MatchType.RE:
        return f"regexp_matches({METRIC_NAME_COLUMN}, {quote_regex(matcher.value)})"
    if match_type == MatchType.NRE:
        return f"NOT regexp_matches({METRIC_NAME_COLUMN}, {quote_regex(matcher.value)})"
    raise UnsupportedMatcherError(match_type, matcher.name)


def label_predicate(matcher: LabelMatcher) -> str:
    """Predicate on a label stored in the tag blob."""
    match_type = matcher.type
    if match_type not in (MatchType.EQ, MatchType.NEQ, MatchType.RE, MatchType.NRE):
        raise UnsupportedMatcherError(match_type, matcher.name)

    # equality compares JSON-encoded text on both sides; regexes need the raw value
    if match_type == MatchType.EQ:
        return f"{_label_json_expression(matcher.name)} = {quote_json_string(matcher.value)}"
    if match_type == MatchType.NEQ:
        return f"{_label_json_expression(matcher.name)} <> {quote_json_string(matcher.value)}"

    expression = _label_text_expression(matcher.name)
    pattern = quote_regex(matcher.value)
    if match_type == MatchType.RE:
        return f"regexp_matches({expression}, {pattern})"
    return f"NOT regexp_matches({expression}, {pattern})"


def matcher_predicate(matcher: LabelMatcher) -> str:
    """Translate one matcher into a WHERE fragment.

    Raises:
        UnsupportedMatcherError: If the matcher type is unknown
        InvalidLabelNameError: If a tag label name cannot form a JSON path
        UnquotableValueError: If a value cannot be embedded in SQL
    """
    if matcher.name == METRIC_NAME_LABEL:
        return metric_name_predicate(matcher)
    return label_predicate(matcher)


def time_range_predicates(start_ms: int, end_ms: int) -> list[str]:
    """Inclusive bounds on the timestamp column."""
    return [
        f"{TIMESTAMP_COLUMN} >= epoch_ms({int(start_ms)})",
        f"{TIMESTAMP_COLUMN} <= epoch_ms({int(end_ms)})",
    ]


class MatcherTranslator:
    """Builds the SELECT for one read sub-query.

    Rows come back ordered by timestamp so the merger can append samples
    without sorting.

    Example:
        translator = MatcherTranslator("metrics")
        sql = translator.translate(
            Query(0, 10_000, [LabelMatcher("__name__", "up")])
        )
    """

    def __init__(self, table_name: str = "metrics") -> None:
        self.table_name = table_name
        self._table = quote_identifier(table_name)

    def where_clause(self, query: Query) -> str:
        """Conjunction of all matcher and time predicates."""
        predicates = [matcher_predicate(m) for m in query.matchers]
        predicates.extend(
            time_range_predicates(query.start_timestamp_ms, query.end_timestamp_ms)
        )
        return " AND ".join(predicates)

    def translate(self, query: Query) -> str:
        """Return the SQL text for ``query``."""
        sql = (
            f"SELECT {METRIC_NAME_COLUMN}, {TAGS_COLUMN}, "
            f"epoch_ms({TIMESTAMP_COLUMN}) AS {TIMESTAMP_MS_ALIAS}, {VALUE_COLUMN} "
            f"FROM {self._table} "
            f"WHERE {self.where_clause(query)} "
            f"ORDER BY {TIMESTAMP_COLUMN} ASC"
        )
        logger.debug("duckdb read", extra={"sql": sql})
        return sql
