"""
Pytest configuration for cotask tests.

Every test starts with diagnostics disabled and zeroed, and fails if a detached
task is still pending in the arena at teardown. The arena is drained either
way so one test cannot leak into the next.
"""

import gc

import pytest

from cotask import Signal, diagnostics
from cotask.state import arena


@pytest.fixture(autouse=True)
def isolated_runtime():
    diagnostics.disable()
    diagnostics.reset()
    yield
    diagnostics.disable()
    diagnostics.reset()
    leaked = len(arena)
    for state in arena:
        arena.release(state)
    gc.collect()
    assert leaked == 0, f"{leaked} detached task(s) still pending in the arena"


@pytest.fixture
def recording():
    """Diagnostics enabled and zeroed for the duration of the test."""

    diagnostics.enable()
    diagnostics.reset()
    yield diagnostics


@pytest.fixture
def signal() -> Signal:
    return Signal()
