"""
Core Types for the Trade Runner
===============================
Canonical type definitions for market calendars, scheduled tasks,
execution results, scheduler state/events and configuration.

This module is the SINGLE SOURCE OF TRUTH for scheduler data types.
All other modules should import from here.

Time Convention
---------------
All timestamps are naive wall-clock datetimes in market-local time.
Weekdays use 0 = Sunday ... 6 = Saturday (NOT Python's Monday = 0);
use ``weekday_number()`` to convert.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from utils.errors import ConfigurationError
from utils.timezone import DEFAULT_MARKET_TZ, is_valid_timezone


DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """
    Parse an ``HH:MM`` 24-hour string into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time of day {value!r} (expected HH:MM)")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time of day {value!r} (expected HH:MM)")
    return hour * 60 + minute


def weekday_number(d: Union[date, datetime]) -> int:
    """Weekday with 0 = Sunday (Python's ``weekday()`` has 0 = Monday)."""
    return (d.weekday() + 1) % 7


def format_date(d: Union[date, datetime]) -> str:
    """Format as YYYY-MM-DD."""
    return d.strftime("%Y-%m-%d")


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a key in snake_case, falling back to the camelCase JSON spelling."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _date_strings(values: Iterable[Union[str, date]]) -> FrozenSet[str]:
    out = set()
    for v in values or ():
        out.add(format_date(v) if isinstance(v, date) else str(v))
    return frozenset(out)


# =============================================================================
# MARKET CALENDAR
# =============================================================================

@dataclass(frozen=True)
class MarketHoursConfig:
    """
    A market's trading calendar.

    Attributes:
        open_time: Published open, "HH:MM"
        close_time: Published close, "HH:MM"
        open_days: Weekdays the market trades (0 = Sunday)
        holidays: Full-day closures, "YYYY-MM-DD"
        grace_after_open: Minutes to wait after the open bell
        grace_before_close: Minutes to stop before the close bell
        early_close_days: Half-days, "YYYY-MM-DD"
        early_close_time: Close time used on half-days
    """
    open_time: str
    close_time: str
    open_days: FrozenSet[int]
    holidays: FrozenSet[str] = frozenset()
    grace_after_open: int = 0
    grace_before_close: int = 0
    early_close_days: FrozenSet[str] = frozenset()
    early_close_time: str = "13:00"

    def __post_init__(self):
        # Accept lists / date objects from callers, store canonical frozensets
        object.__setattr__(self, "open_days", frozenset(int(d) for d in self.open_days))
        object.__setattr__(self, "holidays", _date_strings(self.holidays))
        object.__setattr__(self, "early_close_days", _date_strings(self.early_close_days))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'MarketHoursConfig':
        """Create from dictionary (snake_case or camelCase keys)."""
        return cls(
            open_time=_pick(d, "open_time", "openTime", "09:30"),
            close_time=_pick(d, "close_time", "closeTime", "16:00"),
            open_days=_pick(d, "open_days", "openDays", (1, 2, 3, 4, 5)),
            holidays=_pick(d, "holidays", "holidays", ()) or (),
            grace_after_open=_pick(d, "grace_after_open", "graceAfterOpen", 0) or 0,
            grace_before_close=_pick(d, "grace_before_close", "graceBeforeClose", 0) or 0,
            early_close_days=_pick(d, "early_close_days", "earlyCloseDays", ()) or (),
            early_close_time=_pick(d, "early_close_time", "earlyCloseTime", "13:00"),
        )

    def validate(self) -> 'MarketHoursConfig':
        """Raise ConfigurationError if any field is malformed."""
        try:
            open_minutes = parse_hhmm(self.open_time)
            close_minutes = parse_hhmm(self.close_time)
            parse_hhmm(self.early_close_time)
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="market_hours") from e

        if open_minutes >= close_minutes:
            raise ConfigurationError(
                f"open_time {self.open_time} must be before close_time {self.close_time}",
                config_key="market_hours.open_time",
            )

        bad_days = sorted(d for d in self.open_days if d < 0 or d > 6)
        if bad_days:
            raise ConfigurationError(
                f"open_days must be weekday numbers 0-6 (0 = Sunday), got {bad_days}",
                config_key="market_hours.open_days",
            )

        for key, values in (("holidays", self.holidays), ("early_close_days", self.early_close_days)):
            for value in values:
                try:
                    datetime.strptime(value, "%Y-%m-%d")
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid date {value!r} (expected YYYY-MM-DD)",
                        config_key=f"market_hours.{key}",
                    ) from e

        if self.grace_after_open < 0 or self.grace_before_close < 0:
            raise ConfigurationError(
                "Grace periods cannot be negative",
                config_key="market_hours.grace",
            )

        return self

    def is_holiday(self, d: Union[date, datetime]) -> bool:
        return format_date(d) in self.holidays

    def is_early_close(self, d: Union[date, datetime]) -> bool:
        return format_date(d) in self.early_close_days

    def is_trading_day(self, d: Union[date, datetime]) -> bool:
        """True if ``d`` is an open weekday and not a holiday."""
        return weekday_number(d) in self.open_days and not self.is_holiday(d)


@dataclass
class MarketStatus:
    """Point-in-time market evaluation. Computed fresh on every query."""
    is_open: bool
    current_time: datetime
    closed_reason: Optional[str] = None
    next_open_time: Optional[datetime] = None
    next_close_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_open": self.is_open,
            "current_time": self.current_time.isoformat(),
            "closed_reason": self.closed_reason,
            "next_open_time": self.next_open_time.isoformat() if self.next_open_time else None,
            "next_close_time": self.next_close_time.isoformat() if self.next_close_time else None,
        }


# =============================================================================
# TASKS
# =============================================================================

# A task body: zero-arg callable, sync or async
TaskCallable = Callable[[], Union[Awaitable[Any], Any]]


@dataclass
class ScheduledTask:
    """
    A unit of work the scheduler runs each cycle.

    Higher ``priority`` runs first; equal priorities keep registration order.
    """
    id: str
    name: str
    execute: TaskCallable
    enabled: bool = True
    priority: int = 0
    requires_market_open: bool = False
    timeout_seconds: Optional[float] = None


@dataclass
class TaskExecutionResult:
    """Outcome of one task run."""
    task_id: str
    task_name: str
    start_time: datetime
    end_time: datetime
    duration_ms: float
    success: bool
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_name": self.task_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
            "metadata": dict(self.metadata),
        }


# =============================================================================
# SCHEDULER STATE AND EVENTS
# =============================================================================

@dataclass
class SchedulerState:
    """
    Aggregate run status. Mutated only by the scheduler itself;
    callers always receive a ``snapshot()``.
    """
    is_running: bool = False
    last_run_time: Optional[datetime] = None
    next_run_time: Optional[datetime] = None
    total_runs: int = 0
    consecutive_errors: int = 0
    history: List[TaskExecutionResult] = field(default_factory=list)

    def snapshot(self) -> 'SchedulerState':
        """Copy with an independent history list."""
        return replace(self, history=list(self.history))


class SchedulerEventType(str, Enum):
    """Lifecycle notifications delivered to subscribers."""
    START = "start"
    STOP = "stop"
    TASK_START = "task_start"
    TASK_COMPLETE = "task_complete"
    TASK_ERROR = "task_error"
    MARKET_CLOSED = "market_closed"
    ERROR = "error"


@dataclass
class SchedulerEvent:
    type: SchedulerEventType
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict)


SchedulerEventHandler = Callable[[SchedulerEvent], None]


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class ScheduleConfig:
    """
    Periodic scheduler configuration.

    ``timezone`` is validated but not applied: the process clock is
    assumed to already read market-local time.
    """
    interval_minutes: float
    respect_market_hours: bool = True
    market_hours: Optional[MarketHoursConfig] = None
    timezone: str = DEFAULT_MARKET_TZ
    run_on_start: bool = False
    max_consecutive_errors: int = 10

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @property
    def gating_enabled(self) -> bool:
        """True when cycles and tasks are gated on market hours."""
        return self.respect_market_hours and self.market_hours is not None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ScheduleConfig':
        """Create from dictionary (for config.py integration)."""
        market_hours = _pick(d, "market_hours", "marketHours")
        if isinstance(market_hours, dict):
            market_hours = MarketHoursConfig.from_dict(market_hours)

        max_errors = _pick(d, "max_consecutive_errors", "maxConsecutiveErrors")
        return cls(
            interval_minutes=_pick(d, "interval_minutes", "intervalMinutes", 15),
            respect_market_hours=bool(_pick(d, "respect_market_hours", "respectMarketHours", True)),
            market_hours=market_hours,
            timezone=_pick(d, "timezone", "timezone", DEFAULT_MARKET_TZ) or DEFAULT_MARKET_TZ,
            run_on_start=bool(_pick(d, "run_on_start", "runOnStart", False)),
            max_consecutive_errors=10 if max_errors is None else int(max_errors),
        )

    def validate(self) -> 'ScheduleConfig':
        """Raise ConfigurationError if any field is out of range."""
        if not isinstance(self.interval_minutes, (int, float)) or self.interval_minutes <= 0:
            raise ConfigurationError(
                f"interval_minutes must be > 0, got {self.interval_minutes!r}",
                config_key="interval_minutes",
            )
        if self.max_consecutive_errors < 1:
            raise ConfigurationError(
                f"max_consecutive_errors must be >= 1, got {self.max_consecutive_errors!r}",
                config_key="max_consecutive_errors",
            )
        if not is_valid_timezone(self.timezone):
            raise ConfigurationError(
                f"Unknown timezone {self.timezone!r}",
                config_key="timezone",
            )
        if self.market_hours is not None:
            self.market_hours.validate()
        return self


@dataclass
class OrchestratorConfig:
    """Orchestrator wiring: scheduler settings plus feature toggles."""
    schedule: ScheduleConfig
    enable_position_monitoring: bool = True
    enable_entry_scanning: bool = True
    enable_roll_management: bool = True
    dry_run: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'OrchestratorConfig':
        """Create from dictionary; ``schedule`` may be a dict or a ScheduleConfig."""
        schedule = d.get("schedule", {})
        if isinstance(schedule, dict):
            schedule = ScheduleConfig.from_dict(schedule)
        return cls(
            schedule=schedule,
            enable_position_monitoring=bool(_pick(d, "enable_position_monitoring", "enablePositionMonitoring", True)),
            enable_entry_scanning=bool(_pick(d, "enable_entry_scanning", "enableEntryScanning", True)),
            enable_roll_management=bool(_pick(d, "enable_roll_management", "enableRollManagement", True)),
            dry_run=bool(_pick(d, "dry_run", "dryRun", True)),
        )

    def validate(self) -> 'OrchestratorConfig':
        self.schedule.validate()
        return self
