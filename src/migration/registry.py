"""Version-to-version migration registry.

This module holds single-step document transforms keyed by source version
and composes them into forward migrations. The chain is validated when the
registry is built so a gap fails at startup instead of on first read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from core.errors import (
    DocshiftConfigError,
    DocshiftError,
    DocshiftMigrationError,
    MissingMigrationStepError,
)
from core.logging_config import get_logger
from document.generic_document import GenericDocument

_LOGGER = get_logger(__name__)

MigrationTransform = Callable[[GenericDocument], GenericDocument]


@dataclass(frozen=True)
class MigrationStep:
    """One pure transform from ``source_version`` to the next version.

    Attributes:
        source_version: Version the transform consumes.
        transform: Pure function over documents.
        description: Human-readable summary for logs.
    """

    source_version: int
    transform: MigrationTransform
    description: str = ""

    @property
    def target_version(self) -> int:
        """Version the transform produces."""
        return self.source_version + 1


class MigrationRegistry:
    """Validated, immutable chain of migration steps."""

    def __init__(
        self,
        steps: Iterable[MigrationStep],
        current_version: int,
        oldest_version: int | None = None,
    ) -> None:
        """Build and validate the registry.

        Args:
            steps: Single-step transforms.
            current_version: Version every migration targets.
            oldest_version: Oldest stored version that must stay readable.
                Defaults to the lowest registered source version.

        Raises:
            DocshiftConfigError: If version bounds are invalid.
            DocshiftMigrationError: If steps are duplicated or overshoot.
            MissingMigrationStepError: If the chain has gaps.
        """
        self._current_version = current_version
        self._steps_by_source = _index_steps(steps, current_version)
        if oldest_version is None:
            oldest_version = min(self._steps_by_source, default=current_version)
        if oldest_version > current_version:
            raise DocshiftConfigError(
                f"Oldest supported version {oldest_version} is newer than "
                f"current version {current_version}."
            )
        self._oldest_version = oldest_version
        missing_versions = tuple(
            version
            for version in range(oldest_version, current_version)
            if version not in self._steps_by_source
        )
        if missing_versions:
            raise MissingMigrationStepError(missing_versions)
        _LOGGER.info(
            "migration_registry_built",
            oldest_version=oldest_version,
            current_version=current_version,
            step_count=len(self._steps_by_source),
        )

    @property
    def current_version(self) -> int:
        return self._current_version

    @property
    def oldest_version(self) -> int:
        return self._oldest_version

    def plan(self, from_version: int, to_version: int) -> tuple[MigrationStep, ...]:
        """Return the ordered steps between two versions without running them.

        Raises:
            DocshiftMigrationError: If the request is a downgrade or overshoots.
            MissingMigrationStepError: If ``from_version`` predates the chain.
        """
        if from_version > to_version:
            raise DocshiftMigrationError(
                f"Cannot migrate from version {from_version} down to {to_version}; "
                "migrations only run forward."
            )
        if to_version > self._current_version:
            raise DocshiftMigrationError(
                f"Cannot migrate to version {to_version}; the registry ends at "
                f"{self._current_version}."
            )
        missing_versions = tuple(
            version
            for version in range(from_version, to_version)
            if version not in self._steps_by_source
        )
        if missing_versions:
            raise MissingMigrationStepError(
                missing_versions,
                f"Document version {from_version} is older than the oldest supported "
                f"version {self._oldest_version}; no migration path to {to_version}.",
            )
        return tuple(
            self._steps_by_source[version] for version in range(from_version, to_version)
        )

    def migrate(
        self,
        document: GenericDocument,
        from_version: int,
        to_version: int,
    ) -> GenericDocument:
        """Apply every step from ``from_version`` up to ``to_version`` in order.

        Args:
            document: Document stored at ``from_version``.
            from_version: Version of the input document.
            to_version: Target version.

        Returns:
            The input unchanged when versions match, else the migrated copy
            stamped with ``to_version``.

        Raises:
            DocshiftMigrationError: If a step fails or returns a non-map.
            MissingMigrationStepError: If no chain covers the request.
        """
        if from_version == to_version:
            return document
        migrated = document
        steps = self.plan(from_version, to_version)
        for step in steps:
            migrated = _apply_step(step, migrated)
        _LOGGER.debug(
            "document_migrated",
            from_version=from_version,
            to_version=to_version,
            step_count=len(steps),
        )
        return migrated


class MigrationSteps:
    """Collector for steps declared next to their transforms.

    Example::

        steps = MigrationSteps()

        @steps.register(1, "split name into first/last")
        def _split_name(document):
            ...

        registry = steps.build(current_version=2)
    """

    def __init__(self) -> None:
        self._steps: list[MigrationStep] = []

    def register(
        self,
        source_version: int,
        description: str = "",
    ) -> Callable[[MigrationTransform], MigrationTransform]:
        """Decorator registering one transform for ``source_version``."""

        def _decorator(transform: MigrationTransform) -> MigrationTransform:
            self.add(MigrationStep(source_version, transform, description or transform.__name__))
            return transform

        return _decorator

    def add(self, step: MigrationStep) -> None:
        self._steps.append(step)

    def build(self, current_version: int, oldest_version: int | None = None) -> MigrationRegistry:
        """Validate collected steps into a registry."""
        return MigrationRegistry(self._steps, current_version, oldest_version)


def _index_steps(
    steps: Iterable[MigrationStep],
    current_version: int,
) -> dict[int, MigrationStep]:
    """Index steps by source version, rejecting duplicates and overshoots."""
    indexed: dict[int, MigrationStep] = {}
    for step in steps:
        if isinstance(step.source_version, bool) or not isinstance(step.source_version, int):
            raise DocshiftMigrationError(
                f"Migration step source version must be an integer, got {step.source_version!r}."
            )
        if step.source_version in indexed:
            raise DocshiftMigrationError(
                f"Migration step {step.source_version}->{step.target_version} "
                "is registered more than once."
            )
        if step.target_version > current_version:
            raise DocshiftMigrationError(
                f"Migration step {step.source_version}->{step.target_version} targets a "
                f"version beyond current version {current_version}."
            )
        indexed[step.source_version] = step
    return indexed


def _apply_step(step: MigrationStep, document: GenericDocument) -> GenericDocument:
    """Run one transform and stamp its target version."""
    try:
        result = step.transform(document)
    except DocshiftError:
        raise
    except Exception as error:
        raise DocshiftMigrationError(
            f"Migration step {step.source_version}->{step.target_version} "
            f"({step.description or 'unnamed'}) failed: {error}."
        ) from error
    if not isinstance(result, GenericDocument) or result.kind != "map":
        raise DocshiftMigrationError(
            f"Migration step {step.source_version}->{step.target_version} must return a "
            f"map document, got {type(result).__name__}."
        )
    return result.with_entity_version(step.target_version)
