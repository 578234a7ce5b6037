"""
tests/conftest.py
─────────────────
Shared pytest fixtures for the grid analytics test suite.
"""
import os
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

# Use in-memory SQLite for tests
os.environ.setdefault("DATABASE_URL", ":memory:")
os.environ.setdefault("HISTORY_DAYS", "2")
os.environ.setdefault("SIMULATION_SEED", "42")


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_reading():
    """Factory: make_reading(power_kw, ts, meter_id=..., voltage=..., current=...)."""
    from grid_analytics.data.models import Reading

    def _make(
        power_kw: float,
        ts: datetime,
        meter_id: str = "meter-001",
        facility_id: str = "facility-001",
        voltage: float = 230.0,
        current: float = 10.0,
    ) -> Reading:
        return Reading(
            facility_id=facility_id,
            meter_id=meter_id,
            timestamp=ts,
            voltage=voltage,
            current=current,
            power_kw=power_kw,
        )

    return _make


@pytest.fixture
def steady_history(make_reading, now):
    """24 hourly readings around 10 kW ending one hour before `now`."""
    noise = [0.1, -0.1, 0.05, -0.05]
    return [
        make_reading(10.0 + noise[i % 4], now - timedelta(hours=24 - i))
        for i in range(24)
    ]


@pytest.fixture
def store():
    from grid_analytics.data.store import SQLiteStore

    s = SQLiteStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def notifier():
    from grid_analytics.data.collaborators import RecordingNotifier
    return RecordingNotifier()
