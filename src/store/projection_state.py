"""Lazy projection state machine for loaded objects.

A ``StoredObject`` starts either projected (indexed columns only, blob
unread) or materialized (full document decoded and admitted). Any deep
read or write on a projected object promotes it first, exactly once, so
callers never observe a partial view or write against one.
"""

from __future__ import annotations

from typing import Callable, Literal

from core.constants import ENTITY_VERSION_FIELD
from core.errors import DocshiftError, DocumentPathError
from core.logging_config import get_logger
from core.types import ProjectedRow, ScalarValue
from document.generic_document import (
    DocumentPath,
    GenericDocument,
    mapping,
    parse_path,
)
from store.column_projector import IndexedColumnProjector

_LOGGER = get_logger(__name__)

ProjectionState = Literal["projected", "materialized"]
ALLOWED_STATE_TRANSITIONS: dict[ProjectionState, tuple[ProjectionState, ...]] = {
    "projected": ("materialized",),
    "materialized": (),
}

DocumentLoader = Callable[[], tuple[int, GenericDocument]]


def validate_transition(current: ProjectionState, next_state: ProjectionState) -> None:
    """Validate one lifecycle transition against allowed state machine edges."""
    allowed_states = ALLOWED_STATE_TRANSITIONS[current]
    if next_state not in allowed_states:
        raise DocshiftError(
            f"Invalid projection state transition {current!r} -> {next_state!r}. "
            f"Allowed: {', '.join(allowed_states) or 'none'}."
        )


class StoredObject:
    """One in-memory object: a document plus its projection state."""

    def __init__(
        self,
        object_id: str,
        projector: IndexedColumnProjector,
        state: ProjectionState,
        document: GenericDocument | None = None,
        columns: dict[str, ScalarValue] | None = None,
        loader: DocumentLoader | None = None,
        is_new: bool = False,
        loaded_version: int | None = None,
    ) -> None:
        self._object_id = object_id
        self._projector = projector
        self._state = state
        self._document = document
        self._columns = dict(columns or {})
        self._loader = loader
        self._is_new = is_new
        self._loaded_version = loaded_version

    @classmethod
    def open_projected(
        cls,
        row: ProjectedRow,
        projector: IndexedColumnProjector,
        loader: DocumentLoader,
    ) -> "StoredObject":
        """Build a projected object from indexed columns; no blob decode."""
        return cls(
            object_id=row.object_id,
            projector=projector,
            state="projected",
            columns=dict(row.columns),
            loader=loader,
        )

    @classmethod
    def open_materialized(
        cls,
        object_id: str,
        document: GenericDocument,
        projector: IndexedColumnProjector,
        loaded_version: int,
    ) -> "StoredObject":
        """Wrap an already decoded and admitted document.

        Args:
            object_id: Stable object identifier.
            document: Admitted document, possibly migrated in memory.
            projector: Indexed column projector.
            loaded_version: Version found in the stored blob.
        """
        return cls(
            object_id=object_id,
            projector=projector,
            state="materialized",
            document=document,
            loaded_version=loaded_version,
        )

    @classmethod
    def create(
        cls,
        object_id: str,
        fields: dict[str, object],
        projector: IndexedColumnProjector,
    ) -> "StoredObject":
        """Build a never-persisted object; its version is stamped on first write.

        Raises:
            DocumentPathError: If ``fields`` sets the entity version itself.
        """
        if ENTITY_VERSION_FIELD in fields:
            raise DocumentPathError(
                f"'{ENTITY_VERSION_FIELD}' is stamped by the store on write; "
                "do not pass it as a field."
            )
        return cls(
            object_id=object_id,
            projector=projector,
            state="materialized",
            document=mapping(fields),
            is_new=True,
        )

    @property
    def object_id(self) -> str:
        return self._object_id

    @property
    def state(self) -> ProjectionState:
        return self._state

    @property
    def is_materialized(self) -> bool:
        return self._state == "materialized"

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def loaded_version(self) -> int | None:
        """Version stored on disk when this object was loaded (before migration)."""
        self.promote()
        return self._loaded_version

    @property
    def version(self) -> int | None:
        """Effective in-memory version; None until a new object is first written."""
        document = self.document
        if not document.has_entity_version():
            return None
        return document.entity_version

    @property
    def document(self) -> GenericDocument:
        """Full document; promotes a projected object first."""
        self.promote()
        if self._document is None:
            raise DocshiftError(f"Object '{self._object_id}' has no loaded document.")
        return self._document

    def promote(self) -> None:
        """Load the full document if still projected; no-op when materialized."""
        if self._state == "materialized":
            return
        validate_transition(self._state, "materialized")
        if self._loader is None:
            raise DocshiftError(f"Projected object '{self._object_id}' has no document loader.")
        loaded_version, document = self._loader()
        self._document = document
        self._loaded_version = loaded_version
        self._state = "materialized"
        self._loader = None
        self._columns = {}
        _LOGGER.debug("object_promoted", object_id=self._object_id)

    def column(self, name: str) -> ScalarValue:
        """Read an indexed column value without promoting.

        Raises:
            DocshiftConfigError: If ``name`` is not an indexed column.
        """
        self._projector.column(name)
        if self._state == "projected":
            return self._columns.get(name)
        return self._projector.project_column(name, self.document)

    def get(self, path: DocumentPath, default: object = None) -> object:
        """Read any field as a plain Python value, promoting first."""
        node = self.document.get(path)
        if node is None:
            return default
        return node.to_python()

    def set(self, path: DocumentPath, value: object) -> None:
        """Write a field, promoting first.

        Raises:
            DocumentPathError: If the path targets the root entity version.
        """
        _reject_version_path(path)
        self._document = self.document.set(path, value)

    def remove(self, path: DocumentPath) -> None:
        """Delete a field, promoting first."""
        _reject_version_path(path)
        self._document = self.document.remove(path)

    def to_dict(self) -> dict[str, object]:
        """Return the full document as plain Python values."""
        payload = self.document.to_python()
        if not isinstance(payload, dict):
            raise DocshiftError(f"Object '{self._object_id}' root is not a map.")
        return payload

    def mark_written(self, document: GenericDocument) -> None:
        """Adopt the document exactly as it was persisted."""
        self._document = document
        self._loaded_version = document.entity_version
        self._is_new = False

    def __repr__(self) -> str:
        return f"StoredObject(object_id={self._object_id!r}, state={self._state!r})"


def _reject_version_path(path: DocumentPath) -> None:
    if parse_path(path) == (ENTITY_VERSION_FIELD,):
        raise DocumentPathError(
            f"'{ENTITY_VERSION_FIELD}' is stamped by the store on write and cannot be set directly."
        )
