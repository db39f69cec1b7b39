"""Indexed column filtering helpers.

This module applies column constraints used by projected queries.
It keeps filter validation and evaluation reusable across storage
backends: in-memory evaluation and SQL predicates for Lance scans.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from core.errors import DocshiftConfigError
from core.types import ColumnFilter, ScalarValue


def validate_filter(filter_spec: ColumnFilter, column_names: Iterable[str]) -> None:
    """Reject filters over columns that are not indexed.

    Args:
        filter_spec: Filter constraints.
        column_names: Declared indexed column names.

    Raises:
        DocshiftConfigError: If a constrained column is not declared.
    """
    declared = set(column_names)
    unknown = [name for name in filter_spec.referenced_columns() if name not in declared]
    if unknown:
        raise DocshiftConfigError(
            f"Query filters reference non-indexed column(s): {', '.join(unknown)}. "
            "Only indexed columns can be queried without decoding documents."
        )


def matches_columns(columns: Mapping[str, ScalarValue], filter_spec: ColumnFilter) -> bool:
    """Evaluate a filter against one row's indexed columns.

    Null values never satisfy range bounds.

    Args:
        columns: Indexed column values.
        filter_spec: Filter constraints.

    Returns:
        Whether the row matches every constraint.
    """
    for name, expected in filter_spec.equals.items():
        actual = columns.get(name)
        if actual != expected or isinstance(actual, bool) != isinstance(expected, bool):
            return False
    for name, lower in filter_spec.min_values.items():
        value = columns.get(name)
        if value is None or not _comparable(value, lower) or value < lower:  # type: ignore[operator]
            return False
    for name, upper in filter_spec.max_values.items():
        value = columns.get(name)
        if value is None or not _comparable(value, upper) or value > upper:  # type: ignore[operator]
            return False
    return True


def build_filter_expression(filter_spec: ColumnFilter) -> str | None:
    """Render a filter as a SQL predicate for columnar scans.

    Args:
        filter_spec: Filter constraints.

    Returns:
        Predicate string, or None when the filter is empty.
    """
    clauses: list[str] = []
    for name, expected in filter_spec.equals.items():
        if expected is None:
            clauses.append(f"{_quote_identifier(name)} IS NULL")
        else:
            clauses.append(f"{_quote_identifier(name)} = {render_literal(expected)}")
    for name, lower in filter_spec.min_values.items():
        clauses.append(f"{_quote_identifier(name)} >= {render_literal(lower)}")
    for name, upper in filter_spec.max_values.items():
        clauses.append(f"{_quote_identifier(name)} <= {render_literal(upper)}")
    if not clauses:
        return None
    return " AND ".join(clauses)


def render_literal(value: ScalarValue) -> str:
    """Render one scalar as a SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def _quote_identifier(name: str) -> str:
    escaped = name.replace("`", "``")
    return f"`{escaped}`"


def _comparable(value: ScalarValue, bound: ScalarValue) -> bool:
    if isinstance(value, bool) or isinstance(bound, bool):
        return False
    numeric = (int, float)
    if isinstance(value, numeric) and isinstance(bound, numeric):
        return True
    return isinstance(value, str) and isinstance(bound, str)
