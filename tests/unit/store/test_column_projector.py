"""Unit tests for indexed column projection."""

from __future__ import annotations

import pytest

from core.errors import DocshiftConfigError
from core.types import IndexedColumn
from document.generic_document import from_python
from store.column_projector import IndexedColumnProjector


def _projector() -> IndexedColumnProjector:
    return IndexedColumnProjector(
        (
            IndexedColumn("customer_name", "name", "string"),
            IndexedColumn("city", "address.city", "string"),
            IndexedColumn("order_count", "stats.orders", "int"),
            IndexedColumn("balance", "account.balance", "float"),
            IndexedColumn("active", "active", "bool"),
        )
    )


def test_project_extracts_declared_paths() -> None:
    """Every declared column should be read from its document path."""
    document = from_python(
        {
            "entityVersion": 1,
            "name": "Ada",
            "address": {"city": "London"},
            "stats": {"orders": 4},
            "account": {"balance": 10},
            "active": True,
        }
    )

    assert _projector().project(document) == {
        "customer_name": "Ada",
        "city": "London",
        "order_count": 4,
        "balance": 10.0,
        "active": True,
    }


def test_project_yields_none_for_missing_paths() -> None:
    """Optional sub-paths should project to None without raising."""
    document = from_python({"entityVersion": 1, "name": "Ada", "address": None})

    columns = _projector().project(document)

    assert columns["city"] is None and columns["order_count"] is None


def test_project_yields_none_for_type_mismatch() -> None:
    """Values that do not fit the declared type should not be coerced."""
    document = from_python(
        {"entityVersion": 1, "name": 42, "stats": {"orders": 2.5}, "active": "yes"}
    )

    columns = _projector().project(document)

    assert (columns["customer_name"], columns["order_count"], columns["active"]) == (
        None,
        None,
        None,
    )


def test_project_column_rejects_unknown_column() -> None:
    """Unknown column names should fail loudly."""
    with pytest.raises(DocshiftConfigError, match="Unknown indexed column"):
        _projector().project_column("email", from_python({"entityVersion": 1}))


def test_projector_rejects_reserved_names() -> None:
    """Indexed columns may not reuse storage column names."""
    with pytest.raises(DocshiftConfigError):
        IndexedColumnProjector((IndexedColumn("object_id", "id", "string"),))


def test_project_yields_none_for_int_beyond_float_range() -> None:
    """Huge ints should not abort projection into a float column."""
    document = from_python({"entityVersion": 1, "account": {"balance": 10**400}})

    assert _projector().project(document)["balance"] is None


@pytest.mark.parametrize("orders", [2**63, -(2**63) - 1, 2**70, 1e300])
def test_project_yields_none_for_int_outside_64_bit_range(orders: object) -> None:
    """Int columns only mirror values that fit in 64 bits."""
    document = from_python({"entityVersion": 1, "stats": {"orders": orders}})

    assert _projector().project(document)["order_count"] is None


def test_project_keeps_int_at_64_bit_bounds() -> None:
    """The extreme 64-bit values are still projected."""
    document = from_python({"entityVersion": 1, "stats": {"orders": 2**63 - 1}})

    assert _projector().project(document)["order_count"] == 2**63 - 1


def test_project_reads_digit_map_keys_through_segment_paths() -> None:
    """Tuple paths keep digit segments as map keys."""
    projector = IndexedColumnProjector((IndexedColumn("orders_2024", ("stats", "2024"), "int"),))
    document = from_python({"entityVersion": 1, "stats": {"2024": 7}})

    assert projector.project(document) == {"orders_2024": 7}
