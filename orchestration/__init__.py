"""
Orchestration Module
====================
Periodic, market-aware task scheduling for the trade runner.

Components:
- MarketHoursOracle: Market open/closed status and next open/close times
- TaskScheduler: Interval scheduler with priorities, history and a circuit breaker
- TASK_SPECS: The orchestrator's built-in trading tasks
- Collaborators: Broker/data/risk/rules/sizing interfaces for live mode
"""

from orchestration.market_hours import (
    MarketHoursOracle,
    get_market_status,
    get_next_open_time,
    get_next_close_time,
    minutes_until_market_open,
    minutes_until_market_close,
    us_market_hours_config,
)
from orchestration.task_scheduler import (
    TaskScheduler,
    MAX_HISTORY,
)
from orchestration.task_specs import (
    TaskSpec,
    TASK_SPECS,
    FEATURE_TASKS,
)
from orchestration.collaborators import (
    BrokerGateway,
    MarketDataSource,
    RiskChecker,
    RuleEvaluator,
    PositionSizer,
    RuleDecision,
    RiskCheckResult,
    TradingCollaborators,
)

__all__ = [
    # Market hours
    'MarketHoursOracle',
    'get_market_status',
    'get_next_open_time',
    'get_next_close_time',
    'minutes_until_market_open',
    'minutes_until_market_close',
    'us_market_hours_config',
    # Task Scheduler
    'TaskScheduler',
    'MAX_HISTORY',
    'TaskSpec',
    'TASK_SPECS',
    'FEATURE_TASKS',
    # Collaborators
    'BrokerGateway',
    'MarketDataSource',
    'RiskChecker',
    'RuleEvaluator',
    'PositionSizer',
    'RuleDecision',
    'RiskCheckResult',
    'TradingCollaborators',
]
