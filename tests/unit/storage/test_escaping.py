"""Tests for SQL quoting helpers."""

import pytest

from promduck.exceptions import UnquotableValueError
from promduck.storage.escaping import (
    escape_regex,
    is_valid_label_name,
    json_path,
    quote_identifier,
    quote_json_string,
    quote_literal,
    quote_regex,
)


class TestLiterals:
    """Test string literal quoting."""

    def test_plain(self):
        assert quote_literal("up") == "'up'"

    def test_single_quote_is_doubled(self):
        """Test that quotes cannot terminate the literal."""
        assert quote_literal("it's") == "'it''s'"
        assert quote_literal("') OR 1=1 --") == "''') OR 1=1 --'"

    def test_backslash_is_untouched(self):
        """Test that backslashes pass through."""
        assert quote_literal("a\\b") == "'a\\b'"

    def test_nul_is_rejected(self):
        with pytest.raises(UnquotableValueError):
            quote_literal("a\x00b")

    def test_json_string(self):
        """Test that the JSON-quoted form is wrapped as a literal."""
        assert quote_json_string("api") == "'\"api\"'"
        assert quote_json_string("") == "'\"\"'"
        assert quote_json_string("it's") == "'\"it''s\"'"


class TestRegex:
    """Test regex anchoring."""

    def test_anchored_group(self):
        """Test that alternations are grouped before anchoring."""
        assert escape_regex("a|b") == "^(?:a|b)$"

    def test_quoted(self):
        assert quote_regex("it's.*") == "'^(?:it''s.*)$'"


class TestNames:
    """Test label names and identifiers."""

    @pytest.mark.parametrize(
        "name", ["job", "_private", "http_code_2xx", "A1", "service.name", "a-b", "é"]
    )
    def test_valid_label_names(self, name):
        assert is_valid_label_name(name)

    @pytest.mark.parametrize("name", ["", 'a"b', "a\\b", "a\x00b"])
    def test_invalid_label_names(self, name):
        assert not is_valid_label_name(name)

    def test_json_path(self):
        assert json_path("job") == '$."job"'

    def test_quote_identifier(self):
        assert quote_identifier("metrics") == '"metrics"'
        assert quote_identifier("main.metrics") == '"main"."metrics"'

    @pytest.mark.parametrize("name", ["", "metrics;drop", 'a"b', "a..b"])
    def test_quote_identifier_rejects(self, name):
        with pytest.raises(ValueError):
            quote_identifier(name)
