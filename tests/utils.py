"""
Test utilities and helper functions for the trade runner test suite.

Provides task builders, an event recorder and assertion helpers
specific to scheduler testing needs.
"""

import asyncio
from typing import Any, Callable, List, Optional

from core.types import ScheduledTask, SchedulerEvent, SchedulerEventType, TaskExecutionResult


# =============================================================================
# Task Builders
# =============================================================================

class TaskProbe:
    """
    Zero-arg task body that records its calls.

    Args:
        name: Label appended to ``log`` on each call
        log: Shared list to record call order across probes
        fail: Exception to raise on every call
        delay: Seconds to sleep (async) before finishing
    """

    def __init__(self, name: str, log: Optional[List[str]] = None,
                 fail: Optional[BaseException] = None, delay: float = 0.0):
        self.name = name
        self.log = log if log is not None else []
        self.fail = fail
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        self.log.append(self.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail


def make_task(
    task_id: str,
    execute: Optional[Callable[[], Any]] = None,
    priority: int = 0,
    enabled: bool = True,
    requires_market_open: bool = False,
    timeout_seconds: Optional[float] = None,
) -> ScheduledTask:
    """Build a ScheduledTask with sensible test defaults."""
    return ScheduledTask(
        id=task_id,
        name=f"Task {task_id}",
        execute=execute or TaskProbe(task_id),
        enabled=enabled,
        priority=priority,
        requires_market_open=requires_market_open,
        timeout_seconds=timeout_seconds,
    )


# =============================================================================
# Event Helpers
# =============================================================================

class EventRecorder:
    """Scheduler event handler that keeps every event it receives."""

    def __init__(self):
        self.events: List[SchedulerEvent] = []

    def __call__(self, event: SchedulerEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: SchedulerEventType) -> List[SchedulerEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> List[SchedulerEventType]:
        return [e.type for e in self.events]


# =============================================================================
# Assertion Helpers
# =============================================================================

def assert_priority_order(results: List[TaskExecutionResult], tasks: List[ScheduledTask]):
    """
    Assert results are in non-increasing priority order, ties in registration order.

    Args:
        results: One cycle's results
        tasks: Tasks in registration order
    """
    registration = {t.id: i for i, t in enumerate(tasks)}
    priority = {t.id: t.priority for t in tasks}

    keys = [(-priority[r.task_id], registration[r.task_id]) for r in results]
    assert keys == sorted(keys), (
        f"Out of order: {[(r.task_id, priority[r.task_id]) for r in results]}"
    )


def run(coro):
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)
