"""
Task Specifications Registry

The orchestrator's built-in trading tasks. Each task has:
- Priority (higher runs first within a cycle)
- Handler method name on TradingOrchestrator
- Market-hours requirement
- Feature flag that decides whether it is registered enabled
- Max runtime (per-task timeout)

Registration order matters: equal priorities run in registration order,
and the registry dict is iterated in insertion order.
"""

from dataclasses import dataclass
from typing import Dict

from utils.timeout import TIMEOUTS


@dataclass(frozen=True)
class TaskSpec:
    """Static description of one built-in orchestrator task."""
    task_id: str
    name: str
    handler: str
    priority: int
    feature_flag: str
    requires_market_open: bool = True
    max_runtime_seconds: float = 300.0


# =============================================================================
# TASK SPECIFICATIONS REGISTRY
# =============================================================================

TASK_SPECS: Dict[str, TaskSpec] = {

    # Exits first: stop losses and profit targets can't wait behind a scan
    "position-monitor": TaskSpec(
        task_id="position-monitor",
        name="Monitor Positions for Exit/Roll",
        handler="_task_monitor_positions",
        priority=100,
        feature_flag="enable_position_monitoring",
        max_runtime_seconds=TIMEOUTS.POSITION_MONITOR,
    ),

    "entry-scanner": TaskSpec(
        task_id="entry-scanner",
        name="Scan for Entry Opportunities",
        handler="_task_scan_entries",
        priority=50,
        feature_flag="enable_entry_scanning",
        max_runtime_seconds=TIMEOUTS.ENTRY_SCAN,
    ),

    "roll-manager": TaskSpec(
        task_id="roll-manager",
        name="Check Positions for Rolling",
        handler="_task_manage_rolls",
        priority=75,
        feature_flag="enable_roll_management",
        max_runtime_seconds=TIMEOUTS.ROLL_MANAGER,
    ),
}

# Feature flag -> task it toggles
FEATURE_TASKS: Dict[str, str] = {
    spec.feature_flag: task_id for task_id, spec in TASK_SPECS.items()
}
