"""
Mock implementations for testing without a live broker or wall clock.

This package provides mock implementations of:
- Trading collaborators (broker, market data, risk, rules, sizing)
- A controllable time provider

Usage:
    from tests.mocks import create_mock_collaborators, MockTimeProvider

    collaborators = create_mock_collaborators(
        positions=[{'symbol': 'SPY', 'dte': 5, 'pnl_pct': 55.0}],
    )

    # Simulate API errors
    collaborators.broker.simulate_error('close_position')

    clock = MockTimeProvider(datetime(2025, 1, 2, 11, 0))
    scheduler = TaskScheduler(config, clock=clock.now)
"""

from .mock_broker import (
    BrokerAPIError,
    MockBrokerGateway,
    MockMarketDataSource,
    MockRiskChecker,
    MockRuleEvaluator,
    MockPositionSizer,
    create_mock_collaborators,
)
from .mock_services import MockTimeProvider


__all__ = [
    'BrokerAPIError',
    'MockBrokerGateway',
    'MockMarketDataSource',
    'MockRiskChecker',
    'MockRuleEvaluator',
    'MockPositionSizer',
    'create_mock_collaborators',
    'MockTimeProvider',
]
