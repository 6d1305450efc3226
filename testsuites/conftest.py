"""
================================================================================
Root Pytest Configuration
================================================================================

This module provides the root pytest configuration for the entire test suite.
It registers common markers and provides shared fixtures.

================================================================================
"""

from typing import List

import psutil
import pytest

from testsuites.unit.fake_driver import FakeDriver
from ui_resilience.framework.dynamic_config import DynamicConfig


def pytest_configure(config):
    """Configure pytest with project-wide custom markers."""

    # Priority markers
    config.addinivalue_line(
        "markers", "P0: Critical priority tests - must pass for release"
    )
    config.addinivalue_line(
        "markers", "P1: High priority tests - important functionality"
    )

    # Test type markers
    config.addinivalue_line(
        "markers", "unit: Engine tests against the in-memory driver"
    )
    config.addinivalue_line(
        "markers", "scenario: End-to-end resilience scenarios through the façade"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that wait on real background threads"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-add the 'unit' marker to tests in the unit directory."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


def pytest_report_header(config):
    """Add custom header to pytest output."""
    return [
        "",
        "=" * 60,
        "UI Resilience Engine",
        "=" * 60,
        "",
    ]


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def quiet_host(monkeypatch):
    """Pin the sampled host CPU below every rule threshold."""
    monkeypatch.setattr(psutil, "cpu_percent", lambda interval=None: 10.0)


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> List[float]:
    """Records requested sleeps without sleeping."""
    return []


@pytest.fixture
def no_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def config() -> DynamicConfig:
    return DynamicConfig()
