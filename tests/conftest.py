"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.tracker.catalog import Catalog  # noqa: E402
from src.tracker.clock import FixedClock  # noqa: E402
from src.tracker.state_store import StateStore  # noqa: E402
from src.tracker.tracker import Tracker  # noqa: E402

# Fixed UTC-5 zone so local-day windows do not depend on the test machine
LOCAL_TZ = timezone(timedelta(hours=-5))
NOW = datetime(2026, 3, 15, 18, 30, tzinfo=LOCAL_TZ)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class SequenceRandom:
    """Jitter source returning preset values in order (then repeating the last)."""

    def __init__(self, *values: float):
        self.values = list(values) or [0.0]
        self.calls = 0

    def uniform(self, a: float, b: float) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def catalog():
    return Catalog.default()


@pytest.fixture
def store(tmp_path, catalog, clock):
    store = StateStore(db_path=tmp_path / "state.db", catalog=catalog, clock=clock)
    yield store
    store.close()


@pytest.fixture
def tracker(store):
    """Tracker with zero jitter so scores are exact."""
    return Tracker(store, rng=SequenceRandom(0.0))


@pytest.fixture
def sample_session():
    """Provide a form-style session payload."""
    return {
        "instrumentId": "piano",
        "minutesTotal": 0,
        "who": "Cata",
        "mood": 5,
        "difficulty": "hard",
        "techMinutes": 10,
        "techNotes": "  Hanon 1-5  ",
        "theoryMinutes": 5,
        "theoryNotes": "ii-V-I",
        "repMinutes": 15,
        "repNotes": "Gymnopédie",
        "tags": ["scales", " jazz ", ""],
    }


@pytest.fixture
def sequence_random():
    """Factory for deterministic jitter sources."""
    return SequenceRandom
