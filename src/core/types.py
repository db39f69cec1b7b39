"""Shared typed models.

This module defines immutable data models used by the codec, projector,
row storage, and object store layers to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping, Union

ScalarValue = Union[int, float, str, bool, None]
ColumnType = Literal["int", "float", "string", "bool"]


@dataclass(frozen=True)
class IndexedColumn:
    """One read-only scalar column mirrored from the document.

    Attributes:
        name: Column name in the row storage.
        path: Document path the value is extracted from, dotted or as segments.
        column_type: Declared scalar type of the column.
    """

    name: str
    path: str | tuple[str | int, ...]
    column_type: ColumnType


@dataclass(frozen=True)
class StoreSchema:
    """Declared storage layout for one entity type.

    Attributes:
        entity_name: Logical entity (table) name.
        indexed_columns: Ordered indexed column declarations.
    """

    entity_name: str
    indexed_columns: tuple[IndexedColumn, ...] = ()


@dataclass(frozen=True)
class StoredRow:
    """On-disk representation of one object.

    Attributes:
        object_id: Stable object identifier.
        document: Encoded binary document blob.
        columns: Indexed scalar values computed from the blob.
    """

    object_id: str
    document: bytes
    columns: Mapping[str, ScalarValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ProjectedRow:
    """Indexed columns of one row, fetched without the blob.

    Attributes:
        object_id: Stable object identifier.
        columns: Indexed scalar values.
    """

    object_id: str
    columns: Mapping[str, ScalarValue] = field(default_factory=dict)


@dataclass(frozen=True)
class ColumnFilter:
    """Indexed-column constraints for projected queries.

    Attributes:
        equals: Exact matches by column name.
        min_values: Inclusive lower bounds by column name.
        max_values: Inclusive upper bounds by column name.
    """

    equals: Mapping[str, ScalarValue] = field(default_factory=dict)
    min_values: Mapping[str, int | float | str] = field(default_factory=dict)
    max_values: Mapping[str, int | float | str] = field(default_factory=dict)

    def referenced_columns(self) -> tuple[str, ...]:
        """Return every column name the filter constrains."""
        names = [*self.equals.keys(), *self.min_values.keys(), *self.max_values.keys()]
        return tuple(dict.fromkeys(names))
