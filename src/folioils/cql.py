"""Helpers for building CQL queries for FOLIO list endpoints."""

ALL_RECORDS = "cql.allRecords=1"


def escape_cql(value) -> str:
    """Escape a string for use inside a quoted CQL term.

    Ampersands are percent-encoded and double quotes backslash-escaped:

        >>> escape_cql('He said "hi" & left')
        'He said \\\\"hi\\\\" %26 left'
    """
    return str(value).replace("&", "%26").replace('"', '\\"')


def cql_equals(field: str, value) -> str:
    """Exact match clause, e.g. ``id=="abc"``."""
    return f'{field}=="{escape_cql(value)}"'


def cql_not_equals(field: str, value) -> str:
    return f'{field}<>"{escape_cql(value)}"'


def cql_and(*clauses: str) -> str:
    """Join clauses with ``and``, parenthesizing the result. Empty clauses are skipped."""
    parts = [c for c in clauses if c]
    if not parts:
        return ALL_RECORDS
    return "(" + " and ".join(parts) + ")"


def cql_or(*clauses: str) -> str:
    parts = [c for c in clauses if c]
    if not parts:
        return ALL_RECORDS
    return "(" + " or ".join(parts) + ")"


def with_sortby(query: str, field: str, direction: str | None = None) -> str:
    """Append a sortby clause, optionally with ``/sort.ascending`` or ``/sort.descending``."""
    sort = f"{field}/sort.{direction}" if direction else field
    return f"{query or ALL_RECORDS} sortby {sort}"
