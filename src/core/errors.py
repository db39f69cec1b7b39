"""Docshift exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class DocshiftError(Exception):
    """Base exception for all docshift failures."""


class DocshiftConfigError(DocshiftError):
    """Raised for invalid runtime configuration or store wiring."""


class DocshiftDependencyError(DocshiftError):
    """Raised when an optional runtime dependency is missing."""


class DocumentPathError(DocshiftError):
    """Raised for invalid document paths or traversal through scalars."""


class DocumentTypeError(DocshiftError):
    """Raised when a document node is read as the wrong variant."""


class MalformedDocumentError(DocshiftError):
    """Raised when stored bytes or a document lack a valid entity version."""


class IncompatibleVersionError(DocshiftError):
    """Raised when a document is newer than the forward-compatibility window."""

    def __init__(self, found: int, max_version: int, message: str | None = None) -> None:
        self.found = found
        self.max_version = max_version
        super().__init__(
            message
            or (
                f"Document entityVersion {found} is not readable by software supporting "
                f"version {max_version} (at most {max_version + 1} is accepted). "
                "Upgrade the software before reading this object."
            )
        )


class MissingMigrationStepError(DocshiftError):
    """Raised when the migration chain has gaps up to the supported version."""

    def __init__(self, missing_versions: tuple[int, ...], message: str | None = None) -> None:
        self.missing_versions = missing_versions
        rendered = ", ".join(f"{version}->{version + 1}" for version in missing_versions)
        super().__init__(
            message
            or (
                f"Migration chain is missing step(s) {rendered}. "
                "Register every step before starting the store."
            )
        )


class DocshiftMigrationError(DocshiftError):
    """Raised for invalid registrations or migration step results."""


class DocshiftStoreError(DocshiftError):
    """Raised for row storage and persistence failures."""


class ObjectNotFoundError(DocshiftStoreError):
    """Raised when no stored row exists for an object id."""
