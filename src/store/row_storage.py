"""Row storage contract and in-memory backend.

The relational engine owns durability, isolation, and indexing. The
object store only hands it (blob, indexed columns) pairs through this
contract, one atomic row replacement per write.
"""

from __future__ import annotations

from typing import Iterator, Protocol

from core.types import ColumnFilter, ProjectedRow, StoredRow
from store.column_filtering import matches_columns


class RowStorage(Protocol):
    """Storage engine operations the object store depends on."""

    def fetch_row(self, object_id: str) -> StoredRow | None:
        """Return the full row, or None when absent."""

    def fetch_document(self, object_id: str) -> bytes | None:
        """Return only the blob bytes, or None when absent."""

    def scan_columns(
        self,
        filter_spec: ColumnFilter,
        batch_size: int,
    ) -> Iterator[ProjectedRow]:
        """Stream matching rows' indexed columns without reading blobs."""

    def put_row(self, row: StoredRow) -> None:
        """Atomically insert or replace one row."""

    def iter_object_ids(self) -> Iterator[str]:
        """Stream every stored object id."""


class InMemoryRowStorage:
    """Dictionary-backed storage for tests and embedded use.

    Rows are immutable and replaced with a single assignment, so readers
    see either the previous or the next (blob, columns) pair.
    """

    def __init__(self) -> None:
        self._rows: dict[str, StoredRow] = {}
        self.blob_reads = 0

    def fetch_row(self, object_id: str) -> StoredRow | None:
        row = self._rows.get(object_id)
        if row is not None:
            self.blob_reads += 1
        return row

    def fetch_document(self, object_id: str) -> bytes | None:
        row = self.fetch_row(object_id)
        return row.document if row is not None else None

    def scan_columns(
        self,
        filter_spec: ColumnFilter,
        batch_size: int,
    ) -> Iterator[ProjectedRow]:
        snapshot = list(self._rows.values())
        for start in range(0, len(snapshot), batch_size):
            for row in snapshot[start : start + batch_size]:
                if matches_columns(row.columns, filter_spec):
                    yield ProjectedRow(object_id=row.object_id, columns=dict(row.columns))

    def put_row(self, row: StoredRow) -> None:
        self._rows[row.object_id] = StoredRow(
            object_id=row.object_id,
            document=bytes(row.document),
            columns=dict(row.columns),
        )

    def iter_object_ids(self) -> Iterator[str]:
        yield from list(self._rows.keys())

    def __len__(self) -> int:
        return len(self._rows)
