"""
Pytest configuration and fixtures for the reliability analysis tests.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reliability_types import EventCategory, FailureEvent, MaintenanceTask  # noqa: E402

T0 = datetime(2024, 1, 1, 8, 0)


def make_event(event_id, asset, hours_after_start, duration_minutes=60.0,
               category=EventCategory.UNPLANNED, failure_mode="Bearing Failure"):
    start = None if hours_after_start is None else T0 + timedelta(hours=hours_after_start)
    return FailureEvent(
        id=event_id,
        asset_id=asset,
        start_time=start,
        duration_minutes=duration_minutes,
        category=category,
        failure_mode=failure_mode,
    )


@pytest.fixture
def pump_events():
    """Pump P-101 failures at 0, 100, 250, 450 hours and one planned stop"""
    return [
        make_event("e3", "P-101", 250, 90, failure_mode="Seal Leak"),
        make_event("e1", "P-101", 0, 60),
        make_event("e4", "P-101", 450, 30),
        make_event("e2", "P-101", 100, 120, failure_mode="Seal Leak"),
        make_event("p1", "P-101", 300, 240, category=EventCategory.PLANNED),
    ]


@pytest.fixture
def mixed_events(pump_events):
    """Two assets plus events without a usable timestamp"""
    return pump_events + [
        make_event("c1", "C-201", 10, 30, failure_mode="Motor Trip"),
        make_event("c2", "C-201", 58, 45, failure_mode="Motor Trip"),
        make_event("c3", "C-201", 58, 15, failure_mode="Overload"),
        make_event("c4", "C-201", 130, 20, failure_mode="Motor Trip"),
        make_event("bad1", "C-201", None, 10),
        make_event("bad2", "P-101", None, 10),
    ]


@pytest.fixture
def weibull_sample():
    """Deterministic Weibull(beta=2, eta=500) sample"""
    rng = np.random.default_rng(20240101)
    return (500.0 * rng.weibull(2.0, size=1000)).tolist()


@pytest.fixture
def monthly_task():
    return MaintenanceTask(
        id="pm-1",
        asset_id="P-101",
        frequency_months=1,
        estimated_duration_hours=10,
        executor_count=2,
        start_week=1,
    )
