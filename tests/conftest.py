"""Shared test fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

import callspy


@pytest.fixture
def temp_dir() -> Path:
    """Temporary directory for filesystem-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def restore_spies():
    """Leave the process-wide registry empty after every test."""
    yield
    callspy.restore(callspy.ALL)


@pytest.fixture
def registry() -> callspy.SpyRegistry:
    """A private registry, drained after the test."""
    reg = callspy.SpyRegistry()
    yield reg
    reg.restore_all()
