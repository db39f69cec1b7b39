"""Indexed column projection.

This module extracts the declared scalar columns mirrored next to the
blob. Columns are recomputed from the document on every write and are
never a source of truth, so extraction is total: missing or mistyped
values become ``None`` instead of failing the write.
"""

from __future__ import annotations

from typing import Iterable

from core.constants import INT64_MAX, INT64_MIN
from core.errors import DocshiftConfigError
from core.logging_config import get_logger
from core.store_schema import validate_indexed_columns
from core.types import ColumnType, IndexedColumn, ScalarValue
from document.generic_document import GenericDocument, parse_path

_LOGGER = get_logger(__name__)


class IndexedColumnProjector:
    """Computes indexed column values from documents."""

    def __init__(self, columns: Iterable[IndexedColumn]) -> None:
        """Validate and bind column declarations.

        Args:
            columns: Indexed column declarations in storage order.

        Raises:
            DocshiftConfigError: If declarations are invalid.
        """
        self._columns = tuple(columns)
        validate_indexed_columns(self._columns)
        self._columns_by_name = {column.name: column for column in self._columns}
        self._paths = {column.name: parse_path(column.path) for column in self._columns}

    @property
    def columns(self) -> tuple[IndexedColumn, ...]:
        return self._columns

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self._columns)

    def column(self, name: str) -> IndexedColumn:
        """Return one column declaration.

        Raises:
            DocshiftConfigError: If the column is not declared.
        """
        try:
            return self._columns_by_name[name]
        except KeyError as error:
            raise DocshiftConfigError(
                f"Unknown indexed column '{name}'. "
                f"Declared columns: {', '.join(self.column_names) or 'none'}."
            ) from error

    def project(self, document: GenericDocument) -> dict[str, ScalarValue]:
        """Extract every declared column from a document.

        Args:
            document: Document at the supported version.

        Returns:
            Column values keyed by column name, ``None`` where absent.
        """
        return {
            column.name: self._extract(column, document) for column in self._columns
        }

    def project_column(self, name: str, document: GenericDocument) -> ScalarValue:
        """Extract a single declared column."""
        return self._extract(self.column(name), document)

    def _extract(self, column: IndexedColumn, document: GenericDocument) -> ScalarValue:
        node = document.get(self._paths[column.name])
        if node is None or node.is_null():
            return None
        value = _coerce(node, column.column_type)
        if value is None:
            _LOGGER.warning(
                "indexed_column_type_mismatch",
                column=column.name,
                path=column.path,
                expected=column.column_type,
                found=node.kind,
            )
        return value


def _coerce(node: GenericDocument, column_type: ColumnType) -> ScalarValue:
    """Convert a node to the column type when lossless, else None.

    Int columns are 64-bit; out-of-range values are not projected.
    """
    if column_type == "string":
        return str(node.value) if node.kind == "string" else None
    if column_type == "bool":
        return bool(node.value) if node.kind == "bool" else None
    if node.kind != "number":
        return None
    if column_type == "float":
        try:
            return float(node.value)  # type: ignore[arg-type]
        except OverflowError:
            return None
    value = node.value
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, int) and INT64_MIN <= value <= INT64_MAX:
        return value
    return None
