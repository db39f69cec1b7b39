"""Unit tests for the tagged-variant document tree."""

from __future__ import annotations

import pytest

from core.errors import DocumentPathError, DocumentTypeError, MalformedDocumentError
from document.generic_document import (
    GenericDocument,
    array,
    boolean,
    from_python,
    mapping,
    number,
    parse_path,
    string,
)


def _customer() -> GenericDocument:
    return from_python(
        {
            "entityVersion": 2,
            "name": "Ada",
            "address": {"city": "London", "lines": ["1 Main St", "Flat 2"]},
            "active": True,
        }
    )


def test_from_python_assigns_variants() -> None:
    """Plain Python values should map onto the six document variants."""
    document = from_python({"a": None, "b": True, "c": 3, "d": 1.5, "e": "x", "f": [1]})

    assert [node.kind for _, node in document.items()] == [
        "null",
        "bool",
        "number",
        "number",
        "string",
        "array",
    ]


def test_from_python_rejects_unsupported_values() -> None:
    """Values without a document variant should be rejected."""
    with pytest.raises(DocumentTypeError):
        from_python({"when": object()})


def test_bool_is_not_a_number() -> None:
    """Booleans should stay distinct from numbers for equality and as_int."""
    with pytest.raises(DocumentTypeError):
        boolean(True).as_int()

    assert boolean(True) != number(1)


def test_get_resolves_nested_paths() -> None:
    """Dotted paths should traverse maps and array indexes."""
    document = _customer()

    assert document.get("address.lines.1") == string("Flat 2")


def test_get_returns_none_for_missing_paths() -> None:
    """Missing keys, out-of-range indexes and scalar traversal yield None."""
    document = _customer()

    assert (
        document.get("address.zip") is None
        and document.get("address.lines.5") is None
        and document.get("name.first") is None
    )


def test_set_returns_new_document_and_keeps_original() -> None:
    """Updates should leave the source document unchanged."""
    original = _customer()

    updated = original.set("address.city", "Paris")

    assert original.get("address.city") == string("London") and updated.get(
        "address.city"
    ) == string("Paris")


def test_set_creates_intermediate_maps() -> None:
    """Setting a deep missing path should create empty maps along the way."""
    updated = _customer().set("stats.orders.count", 4)

    assert updated.get("stats") == mapping({"orders": {"count": 4}})


def test_set_keeps_key_order_when_replacing() -> None:
    """Replacing a value should not move its key."""
    updated = _customer().set("name", "Grace")

    assert updated.keys() == ("entityVersion", "name", "address", "active")


def test_set_appends_to_array_at_length() -> None:
    """Index equal to the array length should append."""
    updated = _customer().set("address.lines.2", "Floor 3")

    assert updated.get("address.lines") == array(["1 Main St", "Flat 2", "Floor 3"])


def test_set_raises_when_crossing_scalar() -> None:
    """Setting beneath a scalar node should fail."""
    with pytest.raises(DocumentPathError):
        _customer().set("name.first", "Ada")


def test_remove_drops_key_and_ignores_missing() -> None:
    """Remove should drop present keys and be a no-op for missing ones."""
    document = _customer()

    removed = document.remove("active")

    assert "active" not in removed.keys() and document.remove("nope") is document


def test_rename_keeps_position_within_same_map() -> None:
    """Renaming a sibling key should keep its entry position."""
    renamed = _customer().rename("name", "fullName")

    assert renamed.keys() == ("entityVersion", "fullName", "address", "active")


def test_rename_moves_across_maps() -> None:
    """Renaming to another parent should move the value."""
    renamed = _customer().rename("address.city", "city")

    assert renamed.get("city") == string("London") and renamed.get("address.city") is None


def test_rename_rejects_existing_target() -> None:
    """Renaming onto an existing sibling key should fail."""
    with pytest.raises(DocumentPathError):
        _customer().rename("name", "active")


def test_structural_equality_compares_order_and_values() -> None:
    """Equal trees should compare equal; key order is part of identity."""
    first = mapping([("a", 1), ("b", 2)])
    second = mapping([("a", 1), ("b", 2)])
    reordered = mapping([("b", 2), ("a", 1)])

    assert first == second and first != reordered


def test_entity_version_reads_integer_tag() -> None:
    """Root entityVersion should be returned as int."""
    assert _customer().entity_version == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Ada"},
        {"entityVersion": "2"},
        {"entityVersion": 2.0},
        {"entityVersion": True},
    ],
)
def test_entity_version_rejects_missing_or_non_integer(payload: dict[str, object]) -> None:
    """Missing or non-integer tags should be malformed."""
    with pytest.raises(MalformedDocumentError):
        from_python(payload).entity_version


def test_with_entity_version_keeps_field_position() -> None:
    """Stamping an existing tag should not reorder keys."""
    stamped = _customer().with_entity_version(5)

    assert stamped.entity_version == 5 and stamped.keys()[0] == "entityVersion"


def test_to_python_round_trips_plain_values() -> None:
    """Conversion back to Python should reproduce the input tree."""
    payload = {"entityVersion": 1, "tags": ["a", "b"], "score": 2.5, "note": None}

    assert from_python(payload).to_python() == payload


def test_parse_path_supports_tuple_segments() -> None:
    """Tuple paths allow keys containing dots."""
    document = mapping({"a.b": 1})

    assert parse_path("x.0.y") == ("x", 0, "y") and document.get(("a.b",)) == number(1)


def test_parse_path_rejects_empty_segments() -> None:
    """Empty dotted segments should be rejected."""
    with pytest.raises(DocumentPathError):
        parse_path("a..b")


def test_parse_path_keeps_non_ascii_digits_as_keys() -> None:
    """Only ASCII digit segments become array indexes."""
    document = mapping({"a": {"²": 1}})

    assert parse_path("a.²") == ("a", "²") and document.get("a.²") == number(1)
