"""Shared fixture path helpers for tests."""

from __future__ import annotations

from pathlib import Path


def fixture_path(relative_path: str) -> Path:
    """Resolve a file under tests/fixtures, e.g. ``schemas/customer.yaml``."""
    return Path(__file__).resolve().parent / "fixtures" / relative_path
