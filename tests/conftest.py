"""Pytest configuration for docshift test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolate_docshift_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host DOCSHIFT_* variables out of config-driven tests."""
    for name in (
        "DOCSHIFT_SUPPORTED_VERSION",
        "DOCSHIFT_DATA_ROOT",
        "DOCSHIFT_STORAGE_BACKEND",
        "DOCSHIFT_QUERY_BATCH_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
