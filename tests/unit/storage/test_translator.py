"""Tests for label matcher translation."""

import pytest

from promduck.exceptions import (
    InvalidLabelNameError,
    UnquotableValueError,
    UnsupportedMatcherError,
)
from promduck.models import LabelMatcher, MatchType, Query
from promduck.storage.translator import MatcherTranslator, matcher_predicate

TAG = "coalesce(CAST(json_extract(tags, '$.\"{name}\"') AS VARCHAR), '\"\"')"
TAG_TEXT = "coalesce(json_extract_string(tags, '$.\"{name}\"'), '')"


@pytest.fixture
def translator():
    """Create a translator for the default table."""
    return MatcherTranslator("metrics")


class TestMetricNamePredicates:
    """Test matchers on __name__."""

    def test_eq(self):
        assert matcher_predicate(LabelMatcher("__name__", "up")) == "metricname = 'up'"

    def test_neq(self):
        """Test that NEQ is a real negation."""
        assert (
            matcher_predicate(LabelMatcher("__name__", "up", MatchType.NEQ))
            == "metricname <> 'up'"
        )

    def test_re(self):
        assert (
            matcher_predicate(LabelMatcher("__name__", "up|down", MatchType.RE))
            == "regexp_matches(metricname, '^(?:up|down)$')"
        )

    def test_nre(self):
        assert (
            matcher_predicate(LabelMatcher("__name__", "go_.*", MatchType.NRE))
            == "NOT regexp_matches(metricname, '^(?:go_.*)$')"
        )

    def test_quote_in_value_is_escaped(self):
        """Test that a quote cannot break out of the literal."""
        assert (
            matcher_predicate(LabelMatcher("__name__", "a' OR '1'='1"))
            == "metricname = 'a'' OR ''1''=''1'"
        )


class TestLabelPredicates:
    """Test matchers on tag labels."""

    def test_eq(self):
        assert (
            matcher_predicate(LabelMatcher("job", "api"))
            == TAG.format(name="job") + " = '\"api\"'"
        )

    def test_neq(self):
        assert (
            matcher_predicate(LabelMatcher("job", "api", MatchType.NEQ))
            == TAG.format(name="job") + " <> '\"api\"'"
        )

    def test_re(self):
        assert (
            matcher_predicate(LabelMatcher("job", "api.*", MatchType.RE))
            == f"regexp_matches({TAG_TEXT.format(name='job')}, '^(?:api.*)$')"
        )

    def test_nre(self):
        assert (
            matcher_predicate(LabelMatcher("job", "api.*", MatchType.NRE))
            == f"NOT regexp_matches({TAG_TEXT.format(name='job')}, '^(?:api.*)$')"
        )

    def test_empty_value_compares_to_json_empty_string(self):
        """Test that label="" compares against the absent-label sentinel."""
        assert matcher_predicate(LabelMatcher("job", "")).endswith(" = '\"\"'")

    def test_regex_value_with_quote(self):
        """Test that a regex is matched against the raw label value."""
        assert matcher_predicate(LabelMatcher("v", 'a"b', MatchType.RE)).endswith(
            "'^(?:a\"b)$')"
        )

    @pytest.mark.parametrize("name", ["service.name", "a-b", "1x", "é"])
    def test_utf8_label_name(self, name):
        """Test that any name usable as a quoted JSON key is accepted."""
        assert f'$."{name}"' in matcher_predicate(LabelMatcher(name, "v"))

    @pytest.mark.parametrize("name", ['x"y', "a\\b", "a\x00b", ""])
    def test_invalid_label_name(self, name):
        with pytest.raises(InvalidLabelNameError):
            matcher_predicate(LabelMatcher(name, "v"))

    @pytest.mark.parametrize("label", ["__name__", "job"])
    def test_nul_in_value(self, label):
        """Test that a NUL value fails as a translation error."""
        with pytest.raises(UnquotableValueError):
            matcher_predicate(LabelMatcher(label, "a\x00b", MatchType.RE))

    @pytest.mark.parametrize("label", ["__name__", "job"])
    def test_unsupported_type(self, label):
        """Test that unknown matcher types are rejected for both columns."""
        with pytest.raises(UnsupportedMatcherError):
            matcher_predicate(LabelMatcher(label, "v", 7))


class TestTranslate:
    """Test full query generation."""

    def test_select_shape(self, translator):
        """Test columns, table, time bounds and ordering."""
        sql = translator.translate(Query(1000, 2000, [LabelMatcher("__name__", "up")]))

        assert sql == (
            'SELECT metricname, tags, epoch_ms("timestamp") AS timestamp_ms, value '
            'FROM "metrics" '
            "WHERE metricname = 'up' "
            'AND "timestamp" >= epoch_ms(1000) AND "timestamp" <= epoch_ms(2000) '
            'ORDER BY "timestamp" ASC'
        )

    def test_no_matchers_only_time_bounds(self, translator):
        assert translator.where_clause(Query(0, 10, [])) == (
            '"timestamp" >= epoch_ms(0) AND "timestamp" <= epoch_ms(10)'
        )

    def test_matchers_are_conjoined_in_order(self, translator):
        where = translator.where_clause(
            Query(
                0,
                10,
                [
                    LabelMatcher("__name__", "up"),
                    LabelMatcher("job", "api", MatchType.NEQ),
                ],
            )
        )

        assert where.startswith("metricname = 'up' AND coalesce(")

    def test_schema_qualified_table(self):
        sql = MatcherTranslator("main.metrics").translate(Query(0, 1, []))

        assert 'FROM "main"."metrics"' in sql

    def test_invalid_table_name(self):
        with pytest.raises(ValueError):
            MatcherTranslator("metrics; DROP TABLE metrics")

    def test_unsupported_matcher_aborts(self, translator):
        with pytest.raises(UnsupportedMatcherError):
            translator.translate(Query(0, 1, [LabelMatcher("job", "x", 9)]))
