"""
Shared fixtures.
"""

import pytest

from hubspace_bridge.config import reset_config

from fakes import FakeCloud


@pytest.fixture
def cloud() -> FakeCloud:
    """A fake cloud; start it with `async with cloud:` inside the test."""
    return FakeCloud()


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()
