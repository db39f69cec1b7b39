"""Runtime configuration model for docshift.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_QUERY_BATCH_SIZE,
    DEFAULT_STORAGE_BACKEND,
    DEFAULT_SUPPORTED_VERSION,
    SUPPORTED_STORAGE_BACKENDS,
)
from core.errors import DocshiftConfigError


@dataclass(frozen=True)
class StoreConfig:
    """Validated runtime configuration.

    Attributes:
        supported_version: Schema generation this process fully operates on.
        data_root: Local root directory for persisted tables.
        storage_backend: Row storage backend name.
        query_batch_size: Rows fetched per batch by projected scans.
    """

    supported_version: int
    data_root: Path
    storage_backend: str = DEFAULT_STORAGE_BACKEND
    query_batch_size: int = DEFAULT_QUERY_BATCH_SIZE

    def __post_init__(self) -> None:
        if self.supported_version < 1:
            raise DocshiftConfigError(
                f"Invalid supported_version {self.supported_version}: expected an integer >= 1."
            )
        if self.storage_backend not in SUPPORTED_STORAGE_BACKENDS:
            raise DocshiftConfigError(
                f"Unsupported storage backend '{self.storage_backend}'. "
                f"Supported: {', '.join(SUPPORTED_STORAGE_BACKENDS)}."
            )
        if self.query_batch_size < 1:
            raise DocshiftConfigError(
                f"Invalid query_batch_size {self.query_batch_size}: expected an integer >= 1."
            )

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            DocshiftConfigError: If environment values are invalid.
        """
        supported_version = _parse_int_env(
            "DOCSHIFT_SUPPORTED_VERSION", str(DEFAULT_SUPPORTED_VERSION)
        )
        data_root_value = os.getenv("DOCSHIFT_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        storage_backend = os.getenv("DOCSHIFT_STORAGE_BACKEND", DEFAULT_STORAGE_BACKEND)
        query_batch_size = _parse_int_env(
            "DOCSHIFT_QUERY_BATCH_SIZE", str(DEFAULT_QUERY_BATCH_SIZE)
        )
        return cls(
            supported_version=supported_version,
            data_root=Path(data_root_value).expanduser().resolve(),
            storage_backend=storage_backend.strip().lower(),
            query_batch_size=query_batch_size,
        )


def _parse_int_env(variable_name: str, default_value: str) -> int:
    """Parse one integer environment value.

    Args:
        variable_name: Environment variable name.
        default_value: Raw default when the variable is unset.

    Returns:
        Parsed integer.

    Raises:
        DocshiftConfigError: If value cannot be parsed into int.
    """
    raw_value = os.getenv(variable_name, default_value)
    try:
        return int(raw_value)
    except ValueError as error:
        raise DocshiftConfigError(
            f"Invalid {variable_name} value: "
            f"expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
