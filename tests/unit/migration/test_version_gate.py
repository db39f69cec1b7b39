"""Unit tests for the read-time version gate."""

from __future__ import annotations

import pytest

from core.errors import DocshiftConfigError, IncompatibleVersionError, MalformedDocumentError
from document.generic_document import GenericDocument, from_python
from migration.registry import MigrationRegistry, MigrationStep
from migration.version_gate import VersionGate, admit, check_version


def _add_field(name: str):
    def _transform(document: GenericDocument) -> GenericDocument:
        return document.set(name, True)

    return _transform


def _registry() -> MigrationRegistry:
    return MigrationRegistry(
        [MigrationStep(1, _add_field("v2")), MigrationStep(2, _add_field("v3"))],
        current_version=3,
    )


def test_admit_migrates_older_documents() -> None:
    """Documents below the supported version are migrated in memory."""
    admitted = admit(from_python({"entityVersion": 1}), 3, _registry())

    assert admitted.entity_version == 3 and admitted.get("v2") is not None


def test_admit_accepts_current_version_unchanged() -> None:
    """Documents at the supported version pass through untouched."""
    document = from_python({"entityVersion": 3, "name": "Ada"})

    assert admit(document, 3, _registry()) is document


def test_admit_accepts_one_version_ahead_unmigrated() -> None:
    """The forward-compatibility window admits supported + 1 as-is."""
    document = from_python({"entityVersion": 4, "newField": 1})

    assert admit(document, 3, _registry()) is document


def test_admit_rejects_two_versions_ahead() -> None:
    """Documents beyond supported + 1 fail with found and max."""
    with pytest.raises(IncompatibleVersionError) as error_info:
        admit(from_python({"entityVersion": 5}), 3, _registry())

    assert (error_info.value.found, error_info.value.max_version) == (5, 3)


def test_admit_rejects_malformed_documents() -> None:
    """A missing version tag should be malformed, not incompatible."""
    with pytest.raises(MalformedDocumentError):
        admit(from_python({"name": "Ada"}), 3, _registry())


def test_admit_is_repeatable_for_same_input() -> None:
    """Re-admitting the same stored document yields the same result."""
    document = from_python({"entityVersion": 1, "name": "Ada"})
    registry = _registry()

    assert admit(document, 3, registry) == admit(document, 3, registry)


@pytest.mark.parametrize("found", [1, 3, 4])
def test_check_version_accepts_window(found: int) -> None:
    """Versions up to supported + 1 pass the peek check."""
    check_version(found, 3)


def test_version_gate_requires_matching_registry() -> None:
    """A gate cannot serve a version its registry does not reach."""
    with pytest.raises(DocshiftConfigError):
        VersionGate(_registry(), supported_version=4)
