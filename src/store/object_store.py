"""Object store facade.

This module ties the blob codec, version gate, and indexed column
projector into the read/write contract: ``read_by_id`` loads and
migrates fully, ``read_by_query`` streams cheap projections, and
``write`` persists one stamped (blob, indexed columns) pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from core.config import StoreConfig
from core.constants import DEFAULT_QUERY_BATCH_SIZE
from core.errors import IncompatibleVersionError, ObjectNotFoundError
from core.logging_config import get_logger
from core.types import ColumnFilter, StoredRow, StoreSchema
from document import blob_codec
from document.generic_document import GenericDocument
from migration.registry import MigrationRegistry
from migration.version_gate import VersionGate, needs_migration
from store.column_filtering import validate_filter
from store.column_projector import IndexedColumnProjector
from store.lance_storage import LanceRowStorage
from store.projection_state import DocumentLoader, StoredObject
from store.row_storage import InMemoryRowStorage, RowStorage

_LOGGER = get_logger(__name__)


@dataclass
class StoreMetrics:
    """Instrumentation counters for one store instance.

    Attributes:
        versions_peeked: Blobs whose version tag was read without decoding.
        documents_decoded: Full blob decodes.
        documents_migrated: Decoded documents migrated in memory.
        objects_promoted: Projected objects promoted to materialized.
        rows_written: Rows persisted by ``write``.
    """

    versions_peeked: int = 0
    documents_decoded: int = 0
    documents_migrated: int = 0
    objects_promoted: int = 0
    rows_written: int = 0


class ObjectStore:
    """Versioned document store over a row storage backend.

    ``supported_version`` is fixed for the lifetime of the store and is
    passed explicitly into the version gate on every read.
    """

    def __init__(
        self,
        storage: RowStorage,
        registry: MigrationRegistry,
        projector: IndexedColumnProjector,
        supported_version: int,
        query_batch_size: int = DEFAULT_QUERY_BATCH_SIZE,
    ) -> None:
        """Wire the store collaborators.

        Args:
            storage: Row storage backend.
            registry: Validated migration chain ending at ``supported_version``.
            projector: Indexed column projector.
            supported_version: Schema version this process operates on.
            query_batch_size: Rows fetched per projected scan batch.

        Raises:
            DocshiftConfigError: If the registry does not end at ``supported_version``.
        """
        self._storage = storage
        self._gate = VersionGate(registry, supported_version)
        self._projector = projector
        self._supported_version = supported_version
        self._query_batch_size = query_batch_size
        self._metrics = StoreMetrics()

    @property
    def supported_version(self) -> int:
        return self._supported_version

    @property
    def projector(self) -> IndexedColumnProjector:
        return self._projector

    @property
    def metrics(self) -> StoreMetrics:
        return self._metrics

    def new_object(self, object_id: str, fields: dict[str, object] | None = None) -> StoredObject:
        """Create an unsaved object; it is stamped with the supported version on write."""
        return StoredObject.create(object_id, dict(fields or {}), self._projector)

    def read_by_id(self, object_id: str) -> StoredObject:
        """Load one object fully, migrating it in memory when older.

        Args:
            object_id: Object identifier.

        Returns:
            Materialized object.

        Raises:
            ObjectNotFoundError: If no row exists.
            MalformedDocumentError: If the blob has no valid version tag.
            IncompatibleVersionError: If the blob is too new to read.
        """
        blob = self._fetch_blob(object_id)
        loaded_version, document = self._admit_blob(object_id, blob)
        return StoredObject.open_materialized(
            object_id, document, self._projector, loaded_version
        )

    def read_by_query(self, column_filter: ColumnFilter | None = None) -> Iterator[StoredObject]:
        """Stream projected objects matching indexed-column constraints.

        Blobs are not read until an object is promoted. The consumer may
        stop iterating at any point.

        Args:
            column_filter: Constraints over indexed columns; all rows when omitted.

        Returns:
            Lazy iterator of projected objects.

        Raises:
            DocshiftConfigError: If the filter names non-indexed columns.
        """
        filter_spec = column_filter or ColumnFilter()
        validate_filter(filter_spec, self._projector.column_names)
        return self._iter_projected(filter_spec)

    def write(self, instance: StoredObject) -> StoredRow:
        """Persist an object as one atomic blob and indexed-columns pair.

        Projected objects are promoted first. The document is stamped with
        the supported version and indexed columns are recomputed from it.

        Args:
            instance: Object to persist.

        Returns:
            The row handed to storage.

        Raises:
            IncompatibleVersionError: If the object was loaded from a newer
                version, since stamping it would lower the stored version.
        """
        document = instance.document
        if document.has_entity_version() and document.entity_version > self._supported_version:
            raise IncompatibleVersionError(
                found=document.entity_version,
                max_version=self._supported_version,
                message=(
                    f"Object '{instance.object_id}' is stored at version "
                    f"{document.entity_version}, newer than supported version "
                    f"{self._supported_version}. Writing it would downgrade the stored "
                    "document; upgrade the software before modifying this object."
                ),
            )
        created = instance.is_new
        stamped = document.with_entity_version(self._supported_version)
        row = StoredRow(
            object_id=instance.object_id,
            document=blob_codec.encode(stamped),
            columns=self._projector.project(stamped),
        )
        self._storage.put_row(row)
        instance.mark_written(stamped)
        self._metrics.rows_written += 1
        _LOGGER.info(
            "object_written",
            object_id=instance.object_id,
            entity_version=self._supported_version,
            created=created,
        )
        return row

    def stored_version(self, object_id: str) -> int:
        """Return the on-disk version of one object without decoding it.

        Raises:
            ObjectNotFoundError: If no row exists.
            MalformedDocumentError: If the blob has no valid version tag.
        """
        blob = self._fetch_blob(object_id)
        self._metrics.versions_peeked += 1
        return blob_codec.peek_version(blob)

    def backfill(self, limit: int | None = None) -> int:
        """Rewrite rows stored below the supported version.

        Rows from newer software are left untouched. Each upgrade is an
        ordinary ``write``; reads never rewrite storage on their own.

        Args:
            limit: Maximum number of rows to upgrade; unbounded when omitted.

        Returns:
            Number of rows upgraded.
        """
        upgraded = 0
        scanned = 0
        for object_id in list(self._storage.iter_object_ids()):
            if limit is not None and upgraded >= limit:
                break
            scanned += 1
            if not needs_migration(self.stored_version(object_id), self._supported_version):
                continue
            self.write(self.read_by_id(object_id))
            upgraded += 1
        _LOGGER.info(
            "backfill_completed",
            scanned=scanned,
            upgraded=upgraded,
            supported_version=self._supported_version,
        )
        return upgraded

    def _iter_projected(self, filter_spec: ColumnFilter) -> Iterator[StoredObject]:
        for projected_row in self._storage.scan_columns(filter_spec, self._query_batch_size):
            yield StoredObject.open_projected(
                projected_row,
                self._projector,
                self._promotion_loader(projected_row.object_id),
            )

    def _promotion_loader(self, object_id: str) -> DocumentLoader:
        def _load() -> tuple[int, GenericDocument]:
            loaded = self._admit_blob(object_id, self._fetch_blob(object_id))
            self._metrics.objects_promoted += 1
            return loaded

        return _load

    def _fetch_blob(self, object_id: str) -> bytes:
        blob = self._storage.fetch_document(object_id)
        if blob is None:
            raise ObjectNotFoundError(
                f"No stored object with id '{object_id}'. "
                "Create it with new_object and write it first."
            )
        return blob

    def _admit_blob(self, object_id: str, blob: bytes) -> tuple[int, GenericDocument]:
        """Peek, gate, decode, and migrate one blob.

        Too-new blobs fail on the peeked tag before paying for a full decode.
        """
        stored_version = blob_codec.peek_version(blob)
        self._metrics.versions_peeked += 1
        self._gate.check(stored_version)
        document = blob_codec.decode(blob)
        self._metrics.documents_decoded += 1
        admitted = self._gate.admit(document)
        if needs_migration(stored_version, self._supported_version):
            self._metrics.documents_migrated += 1
            _LOGGER.debug(
                "object_migrated_on_read",
                object_id=object_id,
                stored_version=stored_version,
                supported_version=self._supported_version,
            )
        return stored_version, admitted


def build_object_store(
    config: StoreConfig,
    schema: StoreSchema,
    registry: MigrationRegistry,
    storage: RowStorage | None = None,
) -> ObjectStore:
    """Build a store from runtime config and a schema declaration.

    Args:
        config: Runtime configuration.
        schema: Entity name and indexed columns.
        registry: Migration chain; must end at ``config.supported_version``.
        storage: Optional storage override; otherwise chosen from config.

    Returns:
        Ready-to-serve object store.

    Raises:
        DocshiftConfigError: If the registry and config disagree.
        DocshiftDependencyError: If the lance backend is missing dependencies.
    """
    projector = IndexedColumnProjector(schema.indexed_columns)
    if storage is None:
        storage = _build_storage(config, schema)
    store = ObjectStore(
        storage=storage,
        registry=registry,
        projector=projector,
        supported_version=config.supported_version,
        query_batch_size=config.query_batch_size,
    )
    _LOGGER.info(
        "object_store_ready",
        entity=schema.entity_name,
        supported_version=config.supported_version,
        storage_backend=type(storage).__name__,
        indexed_columns=list(projector.column_names),
    )
    return store


def _build_storage(config: StoreConfig, schema: StoreSchema) -> RowStorage:
    if config.storage_backend == "lance":
        return LanceRowStorage.for_entity(
            config.data_root, schema.entity_name, schema.indexed_columns
        )
    return InMemoryRowStorage()
