# Core types for the trade runner
from core.types import (
    MarketHoursConfig,
    MarketStatus,
    ScheduledTask,
    TaskExecutionResult,
    SchedulerState,
    SchedulerEvent,
    SchedulerEventType,
    ScheduleConfig,
    OrchestratorConfig,
)

__all__ = [
    'MarketHoursConfig',
    'MarketStatus',
    'ScheduledTask',
    'TaskExecutionResult',
    'SchedulerState',
    'SchedulerEvent',
    'SchedulerEventType',
    'ScheduleConfig',
    'OrchestratorConfig',
]
