"""Unit tests for migration step sequencing."""

from __future__ import annotations

import pytest

from core.errors import (
    DocshiftConfigError,
    DocshiftMigrationError,
    MissingMigrationStepError,
)
from document.generic_document import GenericDocument, from_python
from migration.registry import MigrationRegistry, MigrationStep, MigrationSteps


def _append_marker(marker: str):
    def _transform(document: GenericDocument) -> GenericDocument:
        history = document.get("history")
        existing = history.to_python() if history is not None else []
        return document.set("history", [*existing, marker])  # type: ignore[misc]

    return _transform


def _chain(current_version: int = 3) -> MigrationRegistry:
    steps = [
        MigrationStep(version, _append_marker(f"{version}->{version + 1}"))
        for version in range(1, current_version)
    ]
    return MigrationRegistry(steps, current_version=current_version)


def test_migrate_applies_steps_in_order() -> None:
    """Each step should consume the previous step's output."""
    document = from_python({"entityVersion": 1})

    migrated = _chain().migrate(document, 1, 3)

    assert migrated.get("history").to_python() == ["1->2", "2->3"]  # type: ignore[union-attr]


def test_migrate_stamps_target_version() -> None:
    """Migrated documents should carry the target version."""
    migrated = _chain().migrate(from_python({"entityVersion": 1}), 1, 3)

    assert migrated.entity_version == 3


def test_migrate_is_identity_for_equal_versions() -> None:
    """No steps should run when source equals target."""
    document = from_python({"entityVersion": 3, "name": "Ada"})

    assert _chain().migrate(document, 3, 3) is document


def test_migrate_is_idempotent_on_its_own_output() -> None:
    """Migrating an already migrated document again should be a no-op."""
    registry = _chain()
    migrated = registry.migrate(from_python({"entityVersion": 1}), 1, 3)

    assert registry.migrate(migrated, migrated.entity_version, 3) == migrated


def test_migrate_does_not_mutate_input() -> None:
    """The source document should remain at its stored version."""
    document = from_python({"entityVersion": 2})

    _chain().migrate(document, 2, 3)

    assert document.entity_version == 2 and document.get("history") is None


def test_registry_rejects_gap_at_construction() -> None:
    """A missing intermediate step should fail at startup."""
    steps = [
        MigrationStep(1, _append_marker("1->2")),
        MigrationStep(3, _append_marker("3->4")),
    ]

    with pytest.raises(MissingMigrationStepError) as error_info:
        MigrationRegistry(steps, current_version=4)

    assert error_info.value.missing_versions == (2,)


def test_registry_rejects_gap_below_declared_oldest_version() -> None:
    """Declaring an older supported version requires steps from it."""
    steps = [MigrationStep(2, _append_marker("2->3"))]

    with pytest.raises(MissingMigrationStepError):
        MigrationRegistry(steps, current_version=3, oldest_version=1)


def test_registry_rejects_duplicate_steps() -> None:
    """Two transforms for one source version are ambiguous."""
    steps = [MigrationStep(1, _append_marker("a")), MigrationStep(1, _append_marker("b"))]

    with pytest.raises(DocshiftMigrationError, match="more than once"):
        MigrationRegistry(steps, current_version=2)


def test_registry_rejects_step_beyond_current_version() -> None:
    """Steps producing versions past the current one are invalid."""
    with pytest.raises(DocshiftMigrationError):
        MigrationRegistry([MigrationStep(2, _append_marker("2->3"))], current_version=2)


def test_registry_rejects_oldest_version_after_current() -> None:
    """The oldest readable version cannot be newer than current."""
    with pytest.raises(DocshiftConfigError):
        MigrationRegistry([], current_version=2, oldest_version=3)


def test_migrate_rejects_document_older_than_chain() -> None:
    """Documents predating the first registered step cannot be migrated."""
    registry = MigrationRegistry([MigrationStep(2, _append_marker("2->3"))], current_version=3)

    with pytest.raises(MissingMigrationStepError, match="older than the oldest"):
        registry.migrate(from_python({"entityVersion": 1}), 1, 3)


def test_migrate_rejects_downgrade() -> None:
    """Migrations only run forward."""
    with pytest.raises(DocshiftMigrationError, match="forward"):
        _chain().migrate(from_python({"entityVersion": 3}), 3, 2)


def test_migrate_rejects_non_map_step_result() -> None:
    """A step must return a map document."""
    registry = MigrationRegistry(
        [MigrationStep(1, lambda document: from_python([1, 2]))],
        current_version=2,
    )

    with pytest.raises(DocshiftMigrationError, match="map document"):
        registry.migrate(from_python({"entityVersion": 1}), 1, 2)


def test_migrate_wraps_step_failures() -> None:
    """Exceptions from user transforms should carry step context."""

    def _broken(document: GenericDocument) -> GenericDocument:
        raise KeyError("name")

    registry = MigrationRegistry([MigrationStep(1, _broken, "split name")], current_version=2)

    with pytest.raises(DocshiftMigrationError, match="split name"):
        registry.migrate(from_python({"entityVersion": 1}), 1, 2)


def test_plan_lists_steps_without_running_them() -> None:
    """Plan should expose ordered steps for inspection."""
    plan = _chain(4).plan(2, 4)

    assert [(step.source_version, step.target_version) for step in plan] == [(2, 3), (3, 4)]


def test_migration_steps_decorator_builds_registry() -> None:
    """Decorated transforms should register and validate on build."""
    steps = MigrationSteps()

    @steps.register(1, "rename name to fullName")
    def _rename(document: GenericDocument) -> GenericDocument:
        return document.rename("name", "fullName")

    registry = steps.build(current_version=2)
    migrated = registry.migrate(from_python({"entityVersion": 1, "name": "Ada"}), 1, 2)

    assert migrated.to_python() == {"entityVersion": 2, "fullName": "Ada"}


def test_migration_steps_build_fails_on_gap() -> None:
    """Building a collector with a gap should fail immediately."""
    steps = MigrationSteps()
    steps.register(1)(_append_marker("1->2"))
    steps.register(3)(_append_marker("3->4"))

    with pytest.raises(MissingMigrationStepError):
        steps.build(current_version=4)
