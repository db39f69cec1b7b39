"""Apache Lance row storage backend.

This module persists rows as a Lance dataset: an ``object_id`` key, the
binary document column, and one typed column per indexed column. Because
the format is columnar, projected scans read only the indexed columns
and never touch blob bytes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator

from core.constants import DOCUMENT_COLUMN, LANCE_TABLE_SUFFIX, OBJECT_ID_COLUMN, TABLES_DIR_NAME
from core.errors import DocshiftDependencyError, DocshiftStoreError
from core.logging_config import get_logger
from core.types import ColumnFilter, IndexedColumn, ProjectedRow, StoredRow
from store.column_filtering import build_filter_expression, render_literal

_LOGGER = get_logger(__name__)


class LanceRowStorage:
    """Row storage over one Lance dataset directory."""

    def __init__(self, dataset_path: Path, columns: tuple[IndexedColumn, ...]) -> None:
        """Bind the dataset location and its indexed column layout.

        Args:
            dataset_path: Lance dataset directory.
            columns: Indexed columns stored next to the blob.

        Raises:
            DocshiftDependencyError: If lance or pyarrow is unavailable.
        """
        self._lance, self._pa = _import_lance()
        self._dataset_path = dataset_path
        self._columns = columns
        self._column_names = tuple(column.name for column in columns)
        self._schema = _build_schema(self._pa, columns)

    @classmethod
    def for_entity(
        cls,
        data_root: Path,
        entity_name: str,
        columns: tuple[IndexedColumn, ...],
    ) -> "LanceRowStorage":
        """Create storage at the conventional path under ``data_root``."""
        dataset_path = data_root / TABLES_DIR_NAME / f"{entity_name}{LANCE_TABLE_SUFFIX}"
        dataset_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(dataset_path, columns)

    @property
    def dataset_uri(self) -> str:
        return str(self._dataset_path)

    def fetch_row(self, object_id: str) -> StoredRow | None:
        payload = self._fetch_one(object_id, (OBJECT_ID_COLUMN, DOCUMENT_COLUMN, *self._column_names))
        if payload is None:
            return None
        return StoredRow(
            object_id=str(payload[OBJECT_ID_COLUMN]),
            document=bytes(payload[DOCUMENT_COLUMN]),
            columns={name: payload.get(name) for name in self._column_names},
        )

    def fetch_document(self, object_id: str) -> bytes | None:
        payload = self._fetch_one(object_id, (DOCUMENT_COLUMN,))
        if payload is None:
            return None
        return bytes(payload[DOCUMENT_COLUMN])

    def scan_columns(
        self,
        filter_spec: ColumnFilter,
        batch_size: int,
    ) -> Iterator[ProjectedRow]:
        dataset = self._open_dataset()
        if dataset is None:
            return
        expression = build_filter_expression(filter_spec)
        try:
            batches = dataset.to_batches(
                columns=[OBJECT_ID_COLUMN, *self._column_names],
                filter=expression,
                batch_size=batch_size,
            )
            for batch in batches:
                for payload in batch.to_pylist():
                    yield ProjectedRow(
                        object_id=str(payload[OBJECT_ID_COLUMN]),
                        columns={name: payload.get(name) for name in self._column_names},
                    )
        except DocshiftStoreError:
            raise
        except Exception as error:
            raise DocshiftStoreError(
                f"Failed to scan Lance dataset at {self.dataset_uri}: {error}. "
                "Check the filter columns against the store schema."
            ) from error

    def put_row(self, row: StoredRow) -> None:
        payload: dict[str, Any] = {
            OBJECT_ID_COLUMN: row.object_id,
            DOCUMENT_COLUMN: bytes(row.document),
        }
        for name in self._column_names:
            payload[name] = row.columns.get(name)
        try:
            table = self._pa.Table.from_pylist([payload], schema=self._schema)
            dataset = self._open_dataset()
            if dataset is None:
                self._lance.write_dataset(table, self.dataset_uri, schema=self._schema, mode="create")
            else:
                (
                    dataset.merge_insert(OBJECT_ID_COLUMN)
                    .when_matched_update_all()
                    .when_not_matched_insert_all()
                    .execute(table)
                )
        except DocshiftStoreError:
            raise
        except Exception as error:
            raise DocshiftStoreError(
                f"Failed to write row '{row.object_id}' to Lance dataset at "
                f"{self.dataset_uri}: {error}. Validate lance/pyarrow compatibility and retry."
            ) from error
        _LOGGER.debug("lance_row_written", object_id=row.object_id, dataset_uri=self.dataset_uri)

    def iter_object_ids(self) -> Iterator[str]:
        dataset = self._open_dataset()
        if dataset is None:
            return
        for batch in dataset.to_batches(columns=[OBJECT_ID_COLUMN]):
            for payload in batch.to_pylist():
                yield str(payload[OBJECT_ID_COLUMN])

    def _fetch_one(self, object_id: str, columns: tuple[str, ...]) -> dict[str, Any] | None:
        dataset = self._open_dataset()
        if dataset is None:
            return None
        predicate = f"{OBJECT_ID_COLUMN} = {render_literal(object_id)}"
        try:
            rows = dataset.to_table(columns=list(columns), filter=predicate).to_pylist()
        except Exception as error:
            raise DocshiftStoreError(
                f"Failed to read row '{object_id}' from Lance dataset at {self.dataset_uri}: "
                f"{error}."
            ) from error
        if not rows:
            return None
        return rows[0]

    def _open_dataset(self) -> Any | None:
        if not self._dataset_path.exists():
            return None
        try:
            return self._lance.dataset(self.dataset_uri)
        except Exception as error:
            raise DocshiftStoreError(
                f"Failed to open Lance dataset at {self.dataset_uri}: {error}. "
                "Recreate the dataset or point DOCSHIFT_DATA_ROOT elsewhere."
            ) from error


def _import_lance() -> tuple[Any, Any]:
    """Import lance and pyarrow on first use.

    Raises:
        DocshiftDependencyError: If either library is missing.
    """
    try:
        import lance
        import pyarrow as pa
    except ImportError as error:
        raise DocshiftDependencyError(
            "Lance storage requires lance and pyarrow, but they are not installed. "
            "Install pylance and pyarrow or set DOCSHIFT_STORAGE_BACKEND=memory."
        ) from error
    return lance, pa


def _build_schema(pa: Any, columns: tuple[IndexedColumn, ...]) -> Any:
    """Build the Arrow schema for rows with the given indexed columns."""
    arrow_types = {
        "int": pa.int64(),
        "float": pa.float64(),
        "string": pa.string(),
        "bool": pa.bool_(),
    }
    fields = [
        pa.field(OBJECT_ID_COLUMN, pa.string(), nullable=False),
        pa.field(DOCUMENT_COLUMN, pa.binary(), nullable=False),
    ]
    fields.extend(
        pa.field(column.name, arrow_types[column.column_type], nullable=True)
        for column in columns
    )
    return pa.schema(fields)
