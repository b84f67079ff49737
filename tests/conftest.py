"""
conftest.py - Shared pytest fixtures for life counter tests

Provides common fixtures used across unit, conformance and functional tests:
- A fixed start time and a controllable clock
- Fresh ledger states for the pure rule functions
- Stores, a quiet notification hub with a recording subscriber
- A ready LifeCounter wired to all of the above
"""

import pytest
from datetime import datetime
from typing import List

from lifecounter import (
    LifeCounter, MemoryStore, JsonFileStore, NotificationHub, Notification,
    ALL_KINDS, default_state,
)

from tests.fakes import FakeClock, UTC


# =============================================================================
# TIME FIXTURES
# =============================================================================

@pytest.fixture
def start_time():
    """Mid-month start so small advances never cross a month boundary."""
    return datetime(2025, 1, 15, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock(start_time):
    return FakeClock(start_time)


# =============================================================================
# STATE FIXTURES
# =============================================================================

@pytest.fixture
def fresh_state(start_time):
    """Default ledger: A at 5/5, B at 10/10 with booster off."""
    return default_state(start_time)


# =============================================================================
# STORE / HUB FIXTURES
# =============================================================================

@pytest.fixture
def memory_store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def file_store(tmp_path, clock):
    return JsonFileStore(tmp_path / "data" / "lives.json", clock=clock)


@pytest.fixture
def received() -> List[Notification]:
    """List that collects every notification published through `hub`."""
    return []


@pytest.fixture
def hub(received):
    hub = NotificationHub(verbose=False)
    hub.subscribe(ALL_KINDS, received.append)
    return hub


# =============================================================================
# COUNTER FIXTURES
# =============================================================================

@pytest.fixture
def counter(memory_store, hub, clock):
    """LifeCounter over an in-memory store, quiet, on the fake clock."""
    return LifeCounter(memory_store, hub=hub, clock=clock, verbose=False)


@pytest.fixture
def file_counter(file_store, hub, clock):
    """LifeCounter over a JSON file in a temp directory."""
    return LifeCounter(file_store, hub=hub, clock=clock, verbose=False)
