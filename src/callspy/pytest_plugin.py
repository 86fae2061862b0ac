"""pytest fixtures for callspy.

Usage:
    def test_sends_once(spies):
        spy = spies.on(Mailer, "send")
        notify_user()
        assert spy.call_count == 1

Every spy left in the process-wide registry is restored when the test that
requested the fixture finishes.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from callspy.registry import SpyRegistry, get_registry


@pytest.fixture
def spies() -> Generator[SpyRegistry, None, None]:
    """Process-wide registry, drained after the test."""
    registry = get_registry()
    try:
        yield registry
    finally:
        registry.restore_all()
