"""
TaskScheduler - Periodic, market-aware task runner with a circuit breaker.

Each cycle (timer tick or run_now()):
- Skips entirely while the configured market is closed
- Runs enabled tasks sequentially, highest priority first
- Records results in a bounded history (last 100)
- Stops itself after max_consecutive_errors failing cycles

Cycles never overlap: the timer only arms the next tick after the current
cycle finishes, and a lock serializes manual run_now() calls with timer
cycles.

Usage:
    from orchestration.task_scheduler import TaskScheduler

    scheduler = TaskScheduler(ScheduleConfig(interval_minutes=15))
    scheduler.register_task(ScheduledTask(id="scan", name="Scan", execute=scan))
    scheduler.on(lambda event: print(event.type))

    await scheduler.run_now()      # one cycle
    scheduler.start()              # inside a running event loop
"""

import asyncio
import inspect
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import psutil

from core.types import (
    ScheduleConfig,
    ScheduledTask,
    SchedulerEvent,
    SchedulerEventHandler,
    SchedulerEventType,
    SchedulerState,
    TaskExecutionResult,
)
from orchestration.market_hours import get_market_status
from utils.errors import SchedulerError, describe_error, format_exception_chain
from utils.timeout import async_timeout_wrapper
from utils.timezone import now_market_local

# Dedicated scheduler logger (file handler attached by observability.logger)
logger = logging.getLogger('trade_runner.scheduler')

# Execution history cap
MAX_HISTORY = 100

DEFAULT_MAX_CONSECUTIVE_ERRORS = 10


class TaskScheduler:
    """
    Interval scheduler with market-hours gating, priorities and a
    consecutive-error circuit breaker.

    Every instance owns its own task registry, state, subscribers and timer,
    so several schedulers can coexist in one process.

    Args:
        config: Interval, gating and circuit-breaker settings.
        clock: Returns the current market-local time. Defaults to the
            process wall clock.
    """

    def __init__(self, config: ScheduleConfig,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self._clock = clock or now_market_local
        self._tasks: Dict[str, ScheduledTask] = {}
        self._state = SchedulerState()
        self._handlers: List[SchedulerEventHandler] = []

        # Timer plumbing, created per start() inside the running loop
        self._timer_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._stopped: Optional[asyncio.Event] = None

        # Single-flight guard, rebuilt if used from a different event loop
        self._cycle_lock: Optional[asyncio.Lock] = None
        self._cycle_lock_loop: Optional[asyncio.AbstractEventLoop] = None

        self._process = psutil.Process()

    # =========================================================================
    # TASK REGISTRY
    # =========================================================================

    def register_task(self, task: ScheduledTask) -> None:
        """Add a task. Re-registering an id replaces the prior task in place."""
        if task.id in self._tasks:
            logger.info(f"Replacing task {task.id} ({task.name})")
        else:
            logger.info(f"Registered task {task.id} ({task.name}), priority={task.priority}")
        self._tasks[task.id] = task

    def unregister_task(self, task_id: str) -> None:
        if self._tasks.pop(task_id, None) is not None:
            logger.info(f"Unregistered task {task_id}")

    def enable_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task:
            task.enabled = True
            logger.debug(f"Enabled task {task_id}")

    def disable_task(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task:
            task.enabled = False
            logger.debug(f"Disabled task {task_id}")

    def get_tasks(self) -> List[ScheduledTask]:
        """Registered tasks in registration order."""
        return list(self._tasks.values())

    def get_task(self, task_id: str) -> Optional[ScheduledTask]:
        return self._tasks.get(task_id)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """
        Start ticking every ``interval_minutes``.

        Must be called from inside a running asyncio event loop. Calling it
        while already running only logs a warning.
        """
        if self._state.is_running:
            logger.warning("Scheduler is already running")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulerError(
                "start() requires a running asyncio event loop",
                scheduler_running=False,
                operation="start",
            ) from e

        self._state.is_running = True
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._stopped = asyncio.Event()

        self._emit(SchedulerEventType.START)

        self._timer_task = loop.create_task(self._timer_loop(stop_event))
        logger.info(f"Scheduler started (interval: {self.config.interval_minutes} minutes)")

    def stop(self) -> None:
        """
        Stop ticking. A cycle already in flight is allowed to finish.

        Calling it while not running only logs a warning.
        """
        if not self._state.is_running:
            logger.warning("Scheduler is not running")
            return

        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

        self._state.is_running = False
        self._emit(SchedulerEventType.STOP)

        if self._stopped is not None:
            self._stopped.set()

        logger.info("Scheduler stopped")

    async def wait_until_stopped(self) -> None:
        """Resolve once the scheduler has stopped and its last timer cycle finished."""
        if self._stopped is not None and self._state.is_running:
            await self._stopped.wait()
        if self._timer_task is not None and not self._timer_task.done():
            await self._timer_task

    async def run_now(self) -> None:
        """Run exactly one cycle immediately, independent of the timer."""
        logger.info("Manual task execution triggered")
        await self._run_cycle()

    async def _timer_loop(self, stop_event: asyncio.Event) -> None:
        """
        Self-rescheduling timer: the next tick is armed only after the
        current cycle completes. An overrunning cycle makes the next tick
        fire right away instead of queueing missed ticks.
        """
        loop = asyncio.get_running_loop()
        interval = self.config.interval_seconds
        next_tick = loop.time() + interval

        if self.config.run_on_start:
            await self._guarded_cycle("initial run")

        while not stop_event.is_set():
            delay = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break

            await self._guarded_cycle("scheduled run")

            next_tick = max(next_tick + interval, loop.time())

    async def _guarded_cycle(self, label: str) -> None:
        try:
            await self._run_cycle()
        except Exception as e:
            logger.error(f"Error in {label}: {format_exception_chain(e)}", exc_info=True)

    def _get_cycle_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._cycle_lock is None or self._cycle_lock_loop is not loop:
            self._cycle_lock = asyncio.Lock()
            self._cycle_lock_loop = loop
        return self._cycle_lock

    # =========================================================================
    # CYCLE EXECUTION
    # =========================================================================

    async def _run_cycle(self) -> None:
        async with self._get_cycle_lock():
            await self._run_tasks()

    async def _run_tasks(self) -> None:
        now = self._clock()
        self._state.last_run_time = now
        self._state.next_run_time = now + timedelta(seconds=self.config.interval_seconds)

        gated = self.config.gating_enabled
        if gated:
            market_status = get_market_status(self.config.market_hours, now)
            if not market_status.is_open:
                logger.info(f"Market is closed: {market_status.closed_reason}")
                self._emit(SchedulerEventType.MARKET_CLOSED, {"status": market_status}, timestamp=now)
                return
            logger.debug("Market is open - executing tasks")

        # Stable sort: equal priorities keep registration order
        enabled_tasks = sorted(
            (task for task in self._tasks.values() if task.enabled),
            key=lambda task: -(task.priority or 0),
        )

        if not enabled_tasks:
            logger.info("No enabled tasks to run")
            return

        logger.info(f"Running {len(enabled_tasks)} task(s)...")

        results: List[TaskExecutionResult] = []
        for task in enabled_tasks:
            # Fresh clock read: the cycle may have been running for a while
            if task.requires_market_open and gated:
                task_status = get_market_status(self.config.market_hours, self._clock())
                if not task_status.is_open:
                    logger.info(f"Skipping task {task.name} - requires market to be open")
                    continue

            results.append(await self._execute_task(task))

        self._record_cycle(results)

    def _record_cycle(self, results: List[TaskExecutionResult]) -> None:
        state = self._state
        state.total_runs += 1

        state.history.extend(results)
        if len(state.history) > MAX_HISTORY:
            del state.history[:-MAX_HISTORY]

        failures = sum(1 for r in results if not r.success)
        if failures:
            state.consecutive_errors += 1
            logger.warning(f"Cycle finished with {failures} failed task(s), "
                           f"consecutive_errors={state.consecutive_errors}")
        else:
            state.consecutive_errors = 0

        max_errors = self.config.max_consecutive_errors or DEFAULT_MAX_CONSECUTIVE_ERRORS
        if state.consecutive_errors >= max_errors:
            logger.error(
                f"Stopping scheduler due to {state.consecutive_errors} consecutive errors"
            )
            self.stop()
            self._emit(SchedulerEventType.ERROR, {
                "reason": "max_consecutive_errors",
                "consecutive_errors": state.consecutive_errors,
            })

    async def _execute_task(self, task: ScheduledTask) -> TaskExecutionResult:
        """Run one task; its failure is absorbed into the returned result."""
        start_time = self._clock()
        started = time.perf_counter()

        self._emit(SchedulerEventType.TASK_START,
                   {"task_id": task.id, "task_name": task.name},
                   timestamp=start_time)

        try:
            logger.info(f"[Task] Starting: {task.name}")
            await self._invoke(task)
        except Exception as e:
            result = TaskExecutionResult(
                task_id=task.id,
                task_name=task.name,
                start_time=start_time,
                end_time=self._clock(),
                duration_ms=(time.perf_counter() - started) * 1000,
                success=False,
                error=describe_error(e),
                metadata=self._resource_snapshot(),
            )
            logger.error(f"[Task] Failed: {task.name} - {format_exception_chain(e)}")
            self._emit(SchedulerEventType.TASK_ERROR, {"result": result}, timestamp=result.end_time)
            return result

        result = TaskExecutionResult(
            task_id=task.id,
            task_name=task.name,
            start_time=start_time,
            end_time=self._clock(),
            duration_ms=(time.perf_counter() - started) * 1000,
            success=True,
            metadata=self._resource_snapshot(),
        )
        logger.info(f"[Task] Completed: {task.name} ({result.duration_ms:.0f}ms)")
        self._emit(SchedulerEventType.TASK_COMPLETE, {"result": result}, timestamp=result.end_time)
        return result

    async def _invoke(self, task: ScheduledTask) -> None:
        outcome = task.execute()
        if not inspect.isawaitable(outcome):
            return
        await async_timeout_wrapper(outcome, task.timeout_seconds, f"Task {task.id!r}")

    def _resource_snapshot(self) -> Dict[str, Any]:
        try:
            rss = self._process.memory_info().rss
        except psutil.Error as e:
            logger.debug(f"Could not read process memory: {e}")
            return {}
        return {"rss_mb": round(rss / (1024 * 1024), 1)}

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on(self, handler: SchedulerEventHandler) -> None:
        """Subscribe to lifecycle events."""
        self._handlers.append(handler)

    def off(self, handler: SchedulerEventHandler) -> None:
        """Unsubscribe; unknown handlers are ignored."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def _emit(self, event_type: SchedulerEventType, data: Optional[Dict[str, Any]] = None,
              timestamp: Optional[datetime] = None) -> None:
        event = SchedulerEvent(
            type=event_type,
            timestamp=timestamp or self._clock(),
            data=data or {},
        )
        # Copy so handlers may unsubscribe during delivery
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type.value}: "
                             f"{type(e).__name__}: {e}", exc_info=True)

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    def get_state(self) -> SchedulerState:
        """Snapshot copy of the scheduler state."""
        return self._state.snapshot()

    def get_history(self, limit: Optional[int] = None) -> List[TaskExecutionResult]:
        """Execution history, oldest first; ``limit`` keeps only the newest entries."""
        history = list(self._state.history)
        return history[-limit:] if limit else history

    def clear_history(self) -> None:
        self._state.history = []

    def get_status(self) -> Dict[str, Any]:
        """
        Get scheduler status for dashboard/monitoring.

        Returns:
            Dict with run state, task counts, market status and resources.
        """
        state = self._state
        market = None
        if self.config.market_hours is not None:
            market = get_market_status(self.config.market_hours, self._clock()).to_dict()

        enabled = [t.id for t in self._tasks.values() if t.enabled]
        recent = state.history[-10:]

        return {
            'running': state.is_running,
            'interval_minutes': self.config.interval_minutes,
            'respect_market_hours': self.config.respect_market_hours,
            'market': market,
            'tasks': {
                'registered': len(self._tasks),
                'enabled': len(enabled),
                'enabled_ids': enabled,
            },
            'runs': {
                'total': state.total_runs,
                'consecutive_errors': state.consecutive_errors,
                'max_consecutive_errors': self.config.max_consecutive_errors,
                'last_run': state.last_run_time.isoformat() if state.last_run_time else None,
                'next_run': state.next_run_time.isoformat() if state.next_run_time else None,
                'history_size': len(state.history),
                'recent_failures': sum(1 for r in recent if not r.success),
            },
            'resources': {
                **self._resource_snapshot(),
                'cpu_percent': psutil.cpu_percent(interval=None),
            },
        }

    def log_execution_metrics(self) -> str:
        """
        Generate a metrics summary string for logging.

        Returns:
            Formatted string suitable for log output.
        """
        status = self.get_status()
        runs = status['runs']
        tasks = status['tasks']
        market = status['market']
        market_str = "n/a" if market is None else ("open" if market['is_open'] else "closed")

        return (
            f"TaskScheduler: running={status['running']}, market={market_str}, "
            f"tasks={tasks['enabled']}/{tasks['registered']}, runs={runs['total']}, "
            f"consecutive_errors={runs['consecutive_errors']}/{runs['max_consecutive_errors']}, "
            f"mem={status['resources'].get('rss_mb', '?')}MB"
        )
