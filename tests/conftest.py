"""
Shared pytest fixtures for the trade runner test suite.

This file is automatically loaded by pytest and provides fixtures
that can be used across all tests.

Fixture Categories:
    - Clock fixtures: mock_clock
    - Calendar fixtures: scenario_market_hours, us_market_hours
    - Scheduler fixtures: schedule_config, scheduler, event_recorder
    - Collaborator fixtures: mock_collaborators
    - Configuration fixtures: test_config

Design Principles:
    - Fixtures are composable (depend on each other cleanly)
    - Named consistently: test_*, sample_*, mock_*
    - Time is always injected, never read from the wall clock
"""

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Set test environment before importing config
os.environ["TRADE_RUNNER_ROOT"] = str(PROJECT_ROOT)

from tests.mocks import MockTimeProvider, create_mock_collaborators
from tests.utils import EventRecorder


# =============================================================================
# Clock Fixtures
# =============================================================================

# Thursday 2025-01-02 11:00, mid-session on a regular trading day
MID_SESSION = datetime(2025, 1, 2, 11, 0)


@pytest.fixture
def mock_clock() -> MockTimeProvider:
    """Clock frozen mid-session on a trading day."""
    return MockTimeProvider(MID_SESSION)


# =============================================================================
# Calendar Fixtures
# =============================================================================

@pytest.fixture
def scenario_market_hours():
    """09:30-16:00 Mon-Fri, 15/15 grace, New Year's Day 2025 closed."""
    from core.types import MarketHoursConfig

    return MarketHoursConfig(
        open_time="09:30",
        close_time="16:00",
        open_days=[1, 2, 3, 4, 5],
        holidays=["2025-01-01"],
        grace_after_open=15,
        grace_before_close=15,
    )


@pytest.fixture
def us_market_hours():
    from orchestration.market_hours import us_market_hours_config
    return us_market_hours_config()


# =============================================================================
# Scheduler Fixtures
# =============================================================================

@pytest.fixture
def schedule_config():
    """Ungated schedule: no market hours, so every cycle runs."""
    from core.types import ScheduleConfig
    return ScheduleConfig(interval_minutes=15, respect_market_hours=False)


@pytest.fixture
def scheduler(schedule_config, mock_clock):
    from orchestration.task_scheduler import TaskScheduler
    return TaskScheduler(schedule_config, clock=mock_clock.now)


@pytest.fixture
def event_recorder(scheduler) -> EventRecorder:
    """Subscribed recorder capturing every scheduler event."""
    recorder = EventRecorder()
    scheduler.on(recorder)
    return recorder


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def mock_collaborators():
    """Broker with two open positions and a screener with two candidates."""
    return create_mock_collaborators(
        positions=[
            {"symbol": "SPY", "dte": 5, "pnl_pct": 55.0},
            {"symbol": "QQQ", "dte": 30, "pnl_pct": 10.0},
        ],
        candidates=[
            {"symbol": "IWM", "score": 0.9},
            {"symbol": "TLT", "score": 0.2},
        ],
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Point config.DIRS (and the logger's copy) at a temporary directory."""
    import config
    import observability.logger

    test_dirs = {'logs': tmp_path / 'logs'}
    monkeypatch.setattr(config, "DIRS", test_dirs)
    monkeypatch.setattr(observability.logger, "DIRS", test_dirs)
    return test_dirs


@pytest.fixture
def caplog_info(caplog):
    """Capture INFO level logs."""
    import logging
    caplog.set_level(logging.INFO)
    return caplog


# =============================================================================
# Pytest Hooks
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "unit: Fast, isolated unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring multiple components"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection - add markers based on location."""
    for item in items:
        path = str(item.fspath).replace(os.sep, "/")
        # Auto-mark tests in unit/ as unit tests
        if "/unit/" in path:
            item.add_marker(pytest.mark.unit)
        # Auto-mark tests in integration/ as integration tests
        elif "/integration/" in path:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Test Reporting Hooks
# =============================================================================

def pytest_report_header(config):
    """Add custom header to test report."""
    return [
        "Trade Runner Test Suite",
        f"Project Root: {PROJECT_ROOT}",
    ]
