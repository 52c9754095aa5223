"""Quoting helpers for generated SQL.

Each helper handles one delimiter class. DuckDB string literals are delimited
by single quotes and do not treat backslashes specially, so a quote is the
only character that needs escaping inside a literal. Regular expressions are
embedded in such literals and anchored so a containment test behaves like
Prometheus' full-string match.
"""

import json
import re

from promduck.exceptions import UnquotableValueError

LITERAL_QUOTE = "'"
IDENTIFIER_QUOTE = '"'

_IDENTIFIER_PART = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

# characters that would end or escape a quoted JSON path key
_JSON_PATH_RESERVED = ('"', "\\", "\x00")


def escape_literal(value: str) -> str:
    """Double every single quote so the text can sit inside '...'."""
    return value.replace(LITERAL_QUOTE, LITERAL_QUOTE * 2)


def quote_literal(value: str) -> str:
    """Return ``value`` as a complete SQL string literal.

    Raises:
        UnquotableValueError: If ``value`` contains a NUL character
    """
    if "\x00" in value:
        raise UnquotableValueError(value)
    return f"{LITERAL_QUOTE}{escape_literal(value)}{LITERAL_QUOTE}"


def json_string(value: str) -> str:
    """Encode ``value`` the way DuckDB renders a JSON string.

    Non-ASCII characters are written verbatim, as DuckDB's JSON writer does.
    """
    return json.dumps(value, ensure_ascii=False)


def quote_json_string(value: str) -> str:
    """SQL literal holding the JSON-quoted form of ``value``."""
    return quote_literal(json_string(value))


def escape_regex(pattern: str) -> str:
    """Anchor an RE2 pattern for full-string matching."""
    return f"^(?:{pattern})$"


def quote_regex(pattern: str) -> str:
    """SQL literal holding the anchored form of ``pattern``."""
    return quote_literal(escape_regex(pattern))


def is_valid_label_name(name: str) -> bool:
    """Whether ``name`` can be used as a quoted JSON path key.

    Any non-empty UTF-8 name is accepted, including dotted names such as
    ``service.name``.
    """
    return bool(name) and not any(c in name for c in _JSON_PATH_RESERVED)


def json_path(label_name: str) -> str:
    """JSON path selecting ``label_name`` from a tag object.

    Callers validate the name first; valid names never contain quotes.
    """
    return f'$."{label_name}"'


def quote_identifier(name: str) -> str:
    """Quote a possibly schema-qualified identifier such as ``main.metrics``.

    Raises:
        ValueError: If any part is not a plain identifier
    """
    parts = name.split(".")
    for part in parts:
        if not _IDENTIFIER_PART.match(part):
            raise ValueError(f"Invalid identifier: {name!r}")
    return ".".join(f"{IDENTIFIER_QUOTE}{part}{IDENTIFIER_QUOTE}" for part in parts)
