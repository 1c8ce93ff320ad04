"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures required for testing multiple layers.
"""

from typing import Iterator

import pytest

from tests.fakes import FakeEngine, SynchronousDispatcher


@pytest.fixture
def fake_engine() -> Iterator[FakeEngine]:
    """Make sure no worker stays blocked on the gate after a test."""
    engine = FakeEngine()
    try:
        yield engine
    finally:
        if engine.gate is not None:
            engine.gate.set()


@pytest.fixture
def sync_dispatcher(fake_engine: FakeEngine) -> SynchronousDispatcher:
    return SynchronousDispatcher(fake_engine)
