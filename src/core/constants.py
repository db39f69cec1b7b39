"""Core constants used across docshift modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

ENTITY_VERSION_FIELD = "entityVersion"
DEFAULT_DATA_ROOT = Path(".docshift")
DEFAULT_SUPPORTED_VERSION = 1
DEFAULT_QUERY_BATCH_SIZE = 256
DEFAULT_STORAGE_BACKEND = "memory"
SUPPORTED_STORAGE_BACKENDS = ("memory", "lance")
TABLES_DIR_NAME = "tables"
LANCE_TABLE_SUFFIX = ".lance"
OBJECT_ID_COLUMN = "object_id"
DOCUMENT_COLUMN = "document"
RESERVED_COLUMN_NAMES = (OBJECT_ID_COLUMN, DOCUMENT_COLUMN)
SUPPORTED_COLUMN_TYPES = ("int", "float", "string", "bool")
STORE_SCHEMA_FORMAT_VERSION = 1
BLOB_MAGIC = b"GD"
BLOB_FORMAT_VERSION = 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
MAX_DOCUMENT_DEPTH = 256
