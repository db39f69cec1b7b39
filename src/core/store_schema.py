"""Typed store schema parsing.

This module loads and validates YAML schema files declaring an entity's
indexed columns. One strict schema keeps the projector, the storage
backends, and query filters agreeing on column names and types.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, cast

from core.constants import (
    RESERVED_COLUMN_NAMES,
    STORE_SCHEMA_FORMAT_VERSION,
    SUPPORTED_COLUMN_TYPES,
)
from core.errors import DocshiftConfigError, DocshiftDependencyError
from core.types import ColumnType, IndexedColumn, StoreSchema

_ROOT_KEYS = ("version", "entity", "indexed_columns")
_COLUMN_KEYS = ("name", "path", "type")


def load_store_schema(schema_path: str | Path) -> StoreSchema:
    """Load and validate a YAML store schema from disk.

    Args:
        schema_path: File path to YAML schema.

    Returns:
        Fully validated store schema.

    Raises:
        DocshiftDependencyError: If PyYAML is unavailable.
        DocshiftConfigError: If file is invalid or schema checks fail.
    """
    payload = _load_yaml_payload(Path(schema_path))
    return parse_store_schema(payload)


def parse_store_schema(payload: object) -> StoreSchema:
    """Validate an already-parsed schema payload.

    Args:
        payload: Mapping loaded from YAML or built in code.

    Returns:
        Typed store schema.

    Raises:
        DocshiftConfigError: If schema checks fail.
    """
    root_mapping = _expect_mapping(payload, "store schema root")
    _validate_keys(root_mapping, _ROOT_KEYS, "store schema root")
    version = root_mapping.get("version")
    if version != STORE_SCHEMA_FORMAT_VERSION:
        raise DocshiftConfigError(
            f"Unsupported store schema version {version!r}. "
            f"Set 'version: {STORE_SCHEMA_FORMAT_VERSION}'."
        )
    entity_name = root_mapping.get("entity")
    if not isinstance(entity_name, str) or not entity_name.strip():
        raise DocshiftConfigError("Invalid store schema: 'entity' must be a non-empty string.")
    raw_columns = root_mapping.get("indexed_columns", [])
    if not isinstance(raw_columns, list):
        raise DocshiftConfigError("Invalid store schema: 'indexed_columns' must be a list.")
    columns = tuple(
        _parse_column(item, index) for index, item in enumerate(raw_columns)
    )
    validate_indexed_columns(columns)
    return StoreSchema(entity_name=entity_name.strip(), indexed_columns=columns)


def validate_indexed_columns(columns: tuple[IndexedColumn, ...]) -> None:
    """Reject duplicate, reserved, or untyped column declarations.

    Args:
        columns: Column declarations to check.

    Raises:
        DocshiftConfigError: If any declaration is invalid.
    """
    seen_names: set[str] = set()
    for column in columns:
        if column.name in RESERVED_COLUMN_NAMES:
            raise DocshiftConfigError(
                f"Indexed column name '{column.name}' is reserved. "
                f"Reserved names: {', '.join(RESERVED_COLUMN_NAMES)}."
            )
        if column.name in seen_names:
            raise DocshiftConfigError(
                f"Indexed column '{column.name}' is declared more than once."
            )
        if column.column_type not in SUPPORTED_COLUMN_TYPES:
            raise DocshiftConfigError(
                f"Indexed column '{column.name}' has unsupported type "
                f"'{column.column_type}'. Supported: {', '.join(SUPPORTED_COLUMN_TYPES)}."
            )
        if not column.path:
            raise DocshiftConfigError(f"Indexed column '{column.name}' must declare a path.")
        seen_names.add(column.name)


def _load_yaml_payload(schema_file: Path) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise DocshiftDependencyError(
            "YAML store schemas require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    resolved = schema_file.expanduser().resolve()
    if not resolved.exists():
        raise DocshiftConfigError(
            f"Store schema file does not exist at {resolved}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(resolved.read_text(encoding="utf-8")))
    except OSError as error:
        raise DocshiftConfigError(
            f"Failed to read store schema at {resolved}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise DocshiftConfigError(
            f"Failed to parse YAML store schema at {resolved}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise DocshiftConfigError(
            f"Store schema at {resolved} is empty. Define 'version' and 'entity'."
        )
    return payload


def _parse_column(payload: object, index: int) -> IndexedColumn:
    context = f"indexed_columns[{index}]"
    column_mapping = _expect_mapping(payload, context)
    _validate_keys(column_mapping, _COLUMN_KEYS, context)
    name = column_mapping.get("name")
    column_type = column_mapping.get("type")
    if not isinstance(name, str) or not name:
        raise DocshiftConfigError(f"Invalid {context}: 'name' must be a non-empty string.")
    path = _parse_column_path(column_mapping.get("path", name), context)
    if column_type not in SUPPORTED_COLUMN_TYPES:
        raise DocshiftConfigError(
            f"Invalid {context}: 'type' must be one of {', '.join(SUPPORTED_COLUMN_TYPES)}."
        )
    return IndexedColumn(name=name, path=path, column_type=cast(ColumnType, column_type))


def _parse_column_path(value: object, context: str) -> str | tuple[str | int, ...]:
    """Accept a dotted path or a list of segments.

    Dotted digit segments index arrays, so map keys made of digits
    (``"2024"``) need the list form: ``path: [stats, "2024"]``.
    """
    if isinstance(value, str) and value:
        return value
    if isinstance(value, list) and value:
        segments: list[str | int] = []
        for segment in value:
            if isinstance(segment, bool) or not isinstance(segment, (str, int)):
                raise DocshiftConfigError(
                    f"Invalid {context}: path segments must be strings or integers."
                )
            if segment == "" or (isinstance(segment, int) and segment < 0):
                raise DocshiftConfigError(
                    f"Invalid {context}: path segments must be non-empty keys or indexes >= 0."
                )
            segments.append(segment)
        return tuple(segments)
    raise DocshiftConfigError(
        f"Invalid {context}: 'path' must be a non-empty string or list of segments."
    )


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise DocshiftConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise DocshiftConfigError(f"Invalid {context}: expected a mapping.")


def _validate_keys(mapping: Mapping[str, object], allowed: tuple[str, ...], context: str) -> None:
    unknown_keys = sorted(set(mapping.keys()) - set(allowed))
    if unknown_keys:
        raise DocshiftConfigError(
            f"Invalid {context}: unknown key(s) {', '.join(unknown_keys)}. "
            f"Allowed: {', '.join(allowed)}."
        )
