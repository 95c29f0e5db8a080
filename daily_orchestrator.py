#!/usr/bin/env python3
"""
Trading Orchestrator
====================
Wires the trade runner's built-in tasks onto a market-aware TaskScheduler:
- Position monitoring: exit checks (profit target, stop loss, DTE, delta)
- Roll management: roll checks on open positions
- Entry scanning: screener -> risk filters -> entry rules -> sizing -> orders

Every task runs in dry-run mode by default: it logs what it would do and
touches nothing. Live mode delegates to the collaborators passed in
(see orchestration.collaborators).

Usage:
    python daily_orchestrator.py                  # Run continuously (dry run)
    python daily_orchestrator.py --status         # Show current status
    python daily_orchestrator.py --once           # Run one cycle and exit
    python daily_orchestrator.py --live           # Disable dry run
"""

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config import ORCHESTRATOR, SCHEDULER, ensure_dirs
from core.types import (
    OrchestratorConfig,
    ScheduleConfig,
    ScheduledTask,
    SchedulerEvent,
    SchedulerEventType,
)
from observability.logger import get_logger, init as init_logging, log_trade_action
from orchestration.collaborators import TradingCollaborators, resolve, symbol_of
from orchestration.market_hours import minutes_until_market_open, us_market_hours_config
from orchestration.task_scheduler import TaskScheduler
from orchestration.task_specs import FEATURE_TASKS, TASK_SPECS, TaskSpec
from utils.errors import ConfigurationError, ValidationError, error_context

logger = get_logger("orchestrator")


# What each task would do, logged in dry-run mode
DRY_RUN_STEPS = {
    "position-monitor": [
        "Check profit targets",
        "Check stop losses",
        "Check DTE thresholds",
        "Check delta breaches",
    ],
    "entry-scanner": [
        "Fetch screener data",
        "Apply risk filters",
        "Evaluate entry rules",
        "Calculate position sizes",
        "Place orders if criteria met",
    ],
    "roll-manager": [
        "Check DTE thresholds",
        "Evaluate roll rules",
        "Calculate roll credits",
        "Adjust strikes if needed",
        "Execute rolls or close positions",
    ],
}


class TradingOrchestrator:
    """
    Owns one TaskScheduler and registers the built-in trading tasks on it.

    Args:
        config: Schedule settings, feature flags and dry-run mode. If the
            schedule has no market_hours, US market hours are installed
            (on a copy; the caller's config is not modified).
        collaborators: Live-mode broker/data/risk/rules/sizer. Ignored in
            dry-run mode.
        clock: Market-local clock, forwarded to the scheduler.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        collaborators: Optional[TradingCollaborators] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        schedule = config.schedule
        if schedule.market_hours is None:
            schedule = replace(schedule, market_hours=us_market_hours_config())
        else:
            schedule = replace(schedule)

        self.config = replace(config, schedule=schedule)
        self.config.validate()

        self.collaborators = collaborators or TradingCollaborators()
        self.scheduler = TaskScheduler(self.config.schedule, clock=clock)
        self.scheduler.on(self._on_scheduler_event)

        for spec in TASK_SPECS.values():
            if getattr(self.config, spec.feature_flag):
                self._register_spec(spec)

        logger.info(f"Orchestrator initialized (dry_run={self.config.dry_run}, "
                    f"tasks={[t.id for t in self.scheduler.get_tasks()]})")

    def _register_spec(self, spec: TaskSpec) -> None:
        self.scheduler.register_task(ScheduledTask(
            id=spec.task_id,
            name=spec.name,
            execute=getattr(self, spec.handler),
            priority=spec.priority,
            requires_market_open=spec.requires_market_open,
            timeout_seconds=spec.max_runtime_seconds,
        ))

    # =========================================================================
    # Task Registration and Feature Toggles
    # =========================================================================

    def register_custom_task(self, task: ScheduledTask) -> None:
        """Register an extra task directly on the scheduler."""
        self.scheduler.register_task(task)

    def set_feature_enabled(self, flag: str, enabled: bool) -> None:
        """
        Toggle a built-in task by its feature flag.

        Disabling keeps the task registered; it is skipped until re-enabled.
        Enabling a feature that was off at construction registers its task.

        Raises:
            ValidationError: If ``flag`` is not a known feature flag
        """
        task_id = FEATURE_TASKS.get(flag)
        if task_id is None:
            raise ValidationError(
                f"Unknown feature flag {flag!r}. Options: {sorted(FEATURE_TASKS)}",
                field="flag",
                value=flag,
            )

        setattr(self.config, flag, enabled)

        if not enabled:
            self.scheduler.disable_task(task_id)
        elif self.scheduler.get_task(task_id) is None:
            self._register_spec(TASK_SPECS[task_id])
        else:
            self.scheduler.enable_task(task_id)

        logger.info(f"Feature {flag} {'enabled' if enabled else 'disabled'} ({task_id})")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the scheduler. Must be called inside a running event loop."""
        logger.info("Starting Trading Orchestrator")
        self._log_configuration()
        self.scheduler.start()

    def stop(self) -> None:
        logger.info("Stopping Trading Orchestrator")
        self.scheduler.stop()

    async def run_now(self) -> None:
        """Run one cycle immediately."""
        logger.info("Manual execution triggered")
        self._log_configuration()
        await self.scheduler.run_now()

    async def run_forever(self) -> None:
        """Start, then wait until the scheduler stops (signal or circuit breaker)."""
        self.start()
        await self.scheduler.wait_until_stopped()
        logger.info("Orchestrator stopped")

    def _log_configuration(self) -> None:
        schedule = self.config.schedule
        logger.info(f"  Interval: {schedule.interval_minutes} minutes")
        logger.info(f"  Market Hours Gating: {schedule.respect_market_hours}")
        logger.info(f"  Dry Run: {self.config.dry_run}")
        logger.info(f"  Position Monitoring: {self.config.enable_position_monitoring}")
        logger.info(f"  Entry Scanning: {self.config.enable_entry_scanning}")
        logger.info(f"  Roll Management: {self.config.enable_roll_management}")

    def _on_scheduler_event(self, event: SchedulerEvent) -> None:
        if event.type == SchedulerEventType.ERROR:
            logger.critical(f"Scheduler halted: {event.data.get('reason')} "
                            f"(consecutive_errors={event.data.get('consecutive_errors')})")
        elif event.type == SchedulerEventType.MARKET_CLOSED:
            status = event.data.get("status")
            if status is not None and status.next_open_time is not None:
                minutes = minutes_until_market_open(self.config.schedule.market_hours, status.current_time)
                logger.debug(f"Next open {status.next_open_time:%Y-%m-%d %H:%M} (in {minutes} minutes)")

    # =========================================================================
    # Tasks
    # =========================================================================

    def _log_dry_run(self, task_id: str, summary: str) -> None:
        logger.info(f"[DRY RUN] Would {summary}")
        for step in DRY_RUN_STEPS[task_id]:
            logger.info(f"  - {step}")

    def _missing_collaborators(self, what: str, integration: str, *names: str) -> bool:
        missing = self.collaborators.missing(*names)
        if missing:
            logger.info(f"{what} not yet implemented (needs {integration} integration; "
                        f"missing: {', '.join(missing)})")
        return bool(missing)

    async def _task_monitor_positions(self) -> None:
        """Close positions whose exit rules fire."""
        task_id = "position-monitor"
        logger.info("Monitoring positions...")

        if self.config.dry_run:
            self._log_dry_run(task_id, "check positions for exit criteria")
            return

        if self._missing_collaborators("Position monitoring", "broker", "broker", "rules"):
            return

        broker = self.collaborators.broker
        rules = self.collaborators.rules

        with error_context("fetching open positions", task=task_id):
            positions = await resolve(broker.get_open_positions()) or []

        closed = 0
        for position in positions:
            symbol = symbol_of(position)
            with error_context("evaluating exit rules", symbol=symbol, task=task_id):
                decision = await resolve(rules.evaluate_exit(position))
            if not decision.triggered:
                continue

            with error_context("closing position", symbol=symbol, task=task_id):
                await resolve(broker.close_position(position, decision.reason))
            log_trade_action("CLOSE", symbol, reason=decision.reason, task=task_id)
            closed += 1

        logger.info(f"Position monitor: {len(positions)} checked, {closed} closed")

    async def _task_scan_entries(self) -> None:
        """Open new positions for candidates that pass risk, entry and sizing."""
        task_id = "entry-scanner"
        logger.info("Scanning for entry opportunities...")

        if self.config.dry_run:
            self._log_dry_run(task_id, "scan for new trades")
            return

        if self._missing_collaborators("Entry scanning", "data source",
                                       "market_data", "risk", "rules", "sizer", "broker"):
            return

        c = self.collaborators

        with error_context("fetching candidates", task=task_id):
            candidates = await resolve(c.market_data.fetch_candidates()) or []

        opened = 0
        for candidate in candidates:
            symbol = symbol_of(candidate)

            with error_context("running risk checks", symbol=symbol, task=task_id):
                risk = await resolve(c.risk.check(candidate))
            if not risk.passed:
                logger.info(f"Skipping {symbol}: risk check failed ({'; '.join(risk.violations)})")
                continue

            with error_context("evaluating entry rules", symbol=symbol, task=task_id):
                decision = await resolve(c.rules.evaluate_entry(candidate))
            if not decision.triggered:
                logger.debug(f"Skipping {symbol}: entry rules not met ({decision.reason})")
                continue

            with error_context("sizing position", symbol=symbol, task=task_id):
                quantity = int(await resolve(c.sizer.calculate(candidate)))
            if quantity <= 0:
                logger.info(f"Skipping {symbol}: position size is {quantity}")
                continue

            with error_context("opening position", symbol=symbol, task=task_id):
                await resolve(c.broker.open_position(candidate, quantity))
            log_trade_action("OPEN", symbol, quantity=quantity, reason=decision.reason, task=task_id)
            opened += 1

        logger.info(f"Entry scanner: {len(candidates)} candidates, {opened} opened")

    async def _task_manage_rolls(self) -> None:
        """Roll positions whose roll rules fire."""
        task_id = "roll-manager"
        logger.info("Checking for roll opportunities...")

        if self.config.dry_run:
            self._log_dry_run(task_id, "check positions for rolling")
            return

        if self._missing_collaborators("Roll management", "broker", "broker", "rules"):
            return

        broker = self.collaborators.broker
        rules = self.collaborators.rules

        with error_context("fetching open positions", task=task_id):
            positions = await resolve(broker.get_open_positions()) or []

        rolled = 0
        for position in positions:
            symbol = symbol_of(position)
            with error_context("evaluating roll rules", symbol=symbol, task=task_id):
                decision = await resolve(rules.evaluate_roll(position))
            if not decision.triggered:
                continue

            with error_context("rolling position", symbol=symbol, task=task_id):
                await resolve(broker.roll_position(position, decision.reason))
            log_trade_action("ROLL", symbol, reason=decision.reason, task=task_id)
            rolled += 1

        logger.info(f"Roll manager: {len(positions)} checked, {rolled} rolled")

    # =========================================================================
    # Status and Monitoring
    # =========================================================================

    def get_scheduler(self) -> TaskScheduler:
        return self.scheduler

    def get_config(self) -> OrchestratorConfig:
        """Copy of the active configuration."""
        return replace(self.config, schedule=replace(self.config.schedule))

    def get_status(self) -> Dict[str, Any]:
        """Get current orchestrator status."""
        supplied: List[str] = [
            name for name in ("broker", "market_data", "risk", "rules", "sizer")
            if getattr(self.collaborators, name) is not None
        ]
        return {
            'timestamp': datetime.now().isoformat(),
            'dry_run': self.config.dry_run,
            'features': {flag: getattr(self.config, flag) for flag in FEATURE_TASKS},
            'collaborators': supplied,
            'scheduler': self.scheduler.get_status(),
        }

    def print_status(self) -> None:
        """Print formatted status to console."""
        status = self.get_status()
        scheduler = status['scheduler']
        market = scheduler['market'] or {}
        runs = scheduler['runs']

        print("\n" + "=" * 60)
        print("TRADING ORCHESTRATOR STATUS")
        print("=" * 60)
        print(f"Time: {status['timestamp']}")
        print(f"Dry Run: {status['dry_run']}")
        print(f"Running: {scheduler['running']}")
        print(f"Interval: {scheduler['interval_minutes']} minutes")
        print()
        print(f"Market Open: {market.get('is_open')}")
        if market.get('closed_reason'):
            print(f"Closed Reason: {market['closed_reason']}")
        if market.get('next_open_time'):
            print(f"Next Open: {market['next_open_time']}")
        if market.get('next_close_time'):
            print(f"Next Close: {market['next_close_time']}")
        print()
        print("Features:")
        for flag, enabled in status['features'].items():
            print(f"  {flag}: {enabled}")
        print(f"Tasks Enabled: {scheduler['tasks']['enabled']}/{scheduler['tasks']['registered']}")
        print(f"Collaborators: {', '.join(status['collaborators']) or 'none'}")
        print()
        print(f"Total Runs: {runs['total']}")
        print(f"Consecutive Errors: {runs['consecutive_errors']}/{runs['max_consecutive_errors']}")
        print(f"Last Run: {runs['last_run']}")
        print("=" * 60 + "\n")


def create_default_orchestrator(
    dry_run: bool = True,
    collaborators: Optional[TradingCollaborators] = None,
) -> TradingOrchestrator:
    """
    Recommended setup: 15 minute interval, market-hours gating, US market
    hours, all features on, circuit breaker at 5 consecutive failing cycles
    (values from config.SCHEDULER / config.ORCHESTRATOR).
    """
    settings = dict(ORCHESTRATOR)
    settings["dry_run"] = dry_run
    settings["schedule"] = ScheduleConfig.from_dict(SCHEDULER)
    return TradingOrchestrator(OrchestratorConfig.from_dict(settings), collaborators)


async def _run_until_signalled(orchestrator: TradingOrchestrator) -> None:
    loop = asyncio.get_running_loop()

    def _handle_shutdown(signum):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        if orchestrator.scheduler.is_running:
            orchestrator.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_shutdown, sig)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(_handle_shutdown, signum))

    await orchestrator.run_forever()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Trading Orchestrator")
    parser.add_argument("--status", action="store_true", help="Show current status and exit")
    parser.add_argument("--once", action="store_true", help="Run one cycle and exit")
    parser.add_argument("--live", action="store_true", help="Disable dry run (default: dry run)")
    parser.add_argument("--interval", type=float, help="Minutes between cycles")
    parser.add_argument("--run-on-start", action="store_true", help="Run a cycle immediately on start")
    parser.add_argument("--ignore-market-hours", action="store_true",
                        help="Run cycles even while the market is closed")
    parser.add_argument("--log-level", type=str, default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help="Override LOG_LEVEL")

    args = parser.parse_args(argv)

    ensure_dirs()
    init_logging(level=args.log_level)

    schedule_settings = dict(SCHEDULER)
    if args.interval is not None:
        schedule_settings["interval_minutes"] = args.interval
    if args.run_on_start:
        schedule_settings["run_on_start"] = True
    if args.ignore_market_hours:
        schedule_settings["respect_market_hours"] = False

    settings = dict(ORCHESTRATOR)
    settings["dry_run"] = ORCHESTRATOR["dry_run"] and not args.live
    settings["schedule"] = schedule_settings

    try:
        orchestrator = TradingOrchestrator(OrchestratorConfig.from_dict(settings))
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.status:
        orchestrator.print_status()
        return 0

    if args.once:
        asyncio.run(orchestrator.run_now())
        state = orchestrator.scheduler.get_state()
        failed = [r for r in state.history if not r.success]
        return 1 if failed else 0

    asyncio.run(_run_until_signalled(orchestrator))
    return 0


if __name__ == "__main__":
    sys.exit(main())
