"""
Trading Collaborators
=====================
Interfaces the orchestrator's live-mode tasks call into: broker, market
data, risk checks, rule evaluation and position sizing.

Positions and candidates are opaque to the orchestrator. They are passed
straight from one collaborator to the next; only a ``symbol`` attribute
(or ``"symbol"`` key) is read, for log context.

Methods are declared async, but implementations may return plain values;
the orchestrator awaits whatever is awaitable.

To implement a collaborator:
1. Inherit from the matching base class
2. Implement its abstract methods
3. Pass it to TradingOrchestrator via TradingCollaborators
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class RuleDecision:
    """Whether a rule fired, and why."""
    triggered: bool
    reason: str = ""


@dataclass
class RiskCheckResult:
    """Outcome of pre-trade risk checks."""
    passed: bool
    violations: List[str] = field(default_factory=list)


class BrokerGateway(ABC):
    """Account positions and order placement."""

    @abstractmethod
    async def get_open_positions(self) -> List[Any]:
        pass

    @abstractmethod
    async def close_position(self, position: Any, reason: str) -> Any:
        pass

    @abstractmethod
    async def roll_position(self, position: Any, reason: str) -> Any:
        pass

    @abstractmethod
    async def open_position(self, candidate: Any, quantity: int) -> Any:
        pass


class MarketDataSource(ABC):
    """Screener / market data feeding the entry scan."""

    @abstractmethod
    async def fetch_candidates(self) -> List[Any]:
        pass


class RiskChecker(ABC):
    """Pre-trade risk limits."""

    @abstractmethod
    async def check(self, candidate: Any) -> RiskCheckResult:
        pass


class RuleEvaluator(ABC):
    """
    Exit, roll and entry rules.

    Exit rules cover profit targets, stop losses, DTE thresholds and delta
    breaches; roll rules decide when a position should be rolled out.
    """

    @abstractmethod
    async def evaluate_exit(self, position: Any) -> RuleDecision:
        pass

    @abstractmethod
    async def evaluate_roll(self, position: Any) -> RuleDecision:
        pass

    @abstractmethod
    async def evaluate_entry(self, candidate: Any) -> RuleDecision:
        pass


class PositionSizer(ABC):
    """Contract quantity for a new position."""

    @abstractmethod
    async def calculate(self, candidate: Any) -> int:
        pass


@dataclass
class TradingCollaborators:
    """Everything a live orchestrator can delegate to. All optional."""
    broker: Optional[BrokerGateway] = None
    market_data: Optional[MarketDataSource] = None
    risk: Optional[RiskChecker] = None
    rules: Optional[RuleEvaluator] = None
    sizer: Optional[PositionSizer] = None

    def missing(self, *names: str) -> List[str]:
        """Names (of those given) that were not supplied."""
        return [name for name in names if getattr(self, name) is None]


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, else return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


def symbol_of(item: Any) -> Optional[str]:
    """Best-effort symbol for log context."""
    if isinstance(item, dict):
        return item.get("symbol")
    return getattr(item, "symbol", None)
