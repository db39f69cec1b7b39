"""Public SDK surface for docshift.

This module provides a stable import path for applications.
It re-exports the store facade, document model, and migration tools.
"""

from __future__ import annotations

from core.config import StoreConfig
from core.errors import (
    DocshiftError,
    IncompatibleVersionError,
    MalformedDocumentError,
    MissingMigrationStepError,
    ObjectNotFoundError,
)
from core.store_schema import load_store_schema
from core.types import ColumnFilter, IndexedColumn, StoreSchema, StoredRow
from document.blob_codec import decode, encode, peek_version
from document.generic_document import GenericDocument, from_python
from migration.registry import MigrationRegistry, MigrationStep, MigrationSteps
from migration.version_gate import VersionGate, admit
from store.column_projector import IndexedColumnProjector
from store.object_store import ObjectStore, StoreMetrics, build_object_store
from store.projection_state import StoredObject
from store.row_storage import InMemoryRowStorage, RowStorage

__all__ = [
    "ColumnFilter",
    "DocshiftError",
    "GenericDocument",
    "IncompatibleVersionError",
    "IndexedColumn",
    "IndexedColumnProjector",
    "InMemoryRowStorage",
    "MalformedDocumentError",
    "MigrationRegistry",
    "MigrationStep",
    "MigrationSteps",
    "MissingMigrationStepError",
    "ObjectNotFoundError",
    "ObjectStore",
    "RowStorage",
    "StoreConfig",
    "StoreMetrics",
    "StoreSchema",
    "StoredObject",
    "StoredRow",
    "VersionGate",
    "admit",
    "build_object_store",
    "decode",
    "encode",
    "from_python",
    "load_store_schema",
    "peek_version",
]
