"""Read-time version compatibility gate.

This module decides whether a stored document can be read by software
supporting a given version, migrating older documents in memory. It never
writes back: the same stored bytes always admit to the same result.
"""

from __future__ import annotations

from core.errors import DocshiftConfigError, IncompatibleVersionError
from document.generic_document import GenericDocument
from migration.registry import MigrationRegistry


def check_version(found: int, supported_version: int) -> None:
    """Reject versions beyond the forward-compatibility window.

    Args:
        found: Stored entity version.
        supported_version: Version the running software supports.

    Raises:
        IncompatibleVersionError: If ``found > supported_version + 1``.
    """
    if found > supported_version + 1:
        raise IncompatibleVersionError(found=found, max_version=supported_version)


def needs_migration(found: int, supported_version: int) -> bool:
    """Return whether a stored version is older than the supported one."""
    return found < supported_version


def admit(
    document: GenericDocument,
    supported_version: int,
    registry: MigrationRegistry,
) -> GenericDocument:
    """Admit a decoded document for use at ``supported_version``.

    Documents one version ahead are accepted unmigrated; older documents
    are migrated forward; anything newer fails.

    Args:
        document: Decoded stored document.
        supported_version: Version the running software supports.
        registry: Migration chain ending at ``supported_version``.

    Returns:
        Document ready for in-memory use.

    Raises:
        MalformedDocumentError: If the document has no integer version.
        IncompatibleVersionError: If the document is too new.
    """
    found = document.entity_version
    check_version(found, supported_version)
    if needs_migration(found, supported_version):
        return registry.migrate(document, found, supported_version)
    return document


class VersionGate:
    """Gate bound to one registry and supported version."""

    def __init__(self, registry: MigrationRegistry, supported_version: int) -> None:
        if registry.current_version != supported_version:
            raise DocshiftConfigError(
                f"Migration registry ends at version {registry.current_version} but the "
                f"store supports version {supported_version}. Register steps up to "
                f"{supported_version} before starting the store."
            )
        self._registry = registry
        self._supported_version = supported_version

    @property
    def supported_version(self) -> int:
        return self._supported_version

    def check(self, found: int) -> None:
        check_version(found, self._supported_version)

    def admit(self, document: GenericDocument) -> GenericDocument:
        return admit(document, self._supported_version, self._registry)
