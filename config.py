"""
Trade Runner Configuration
==========================
THE ONLY PLACE PATHS AND CORE SETTINGS ARE DEFINED.

Scheduler and orchestrator defaults live in the SCHEDULER / ORCHESTRATOR
dicts below and are turned into typed configs with
``ScheduleConfig.from_dict`` / ``OrchestratorConfig.from_dict``.
Every value can be overridden from the environment or a .env file.
"""

from pathlib import Path
import os

from dotenv import load_dotenv

# Look for .env next to config.py, then fall back to the usual search
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# ENVIRONMENT DETECTION
# ============================================================================

# Check for environment variable override (useful for testing)
_env_root = os.environ.get("TRADE_RUNNER_ROOT")

if _env_root:
    DATA_ROOT = Path(_env_root)
else:
    # Fallback to current directory (development)
    DATA_ROOT = Path(__file__).parent.resolve()

# ============================================================================
# DIRECTORY STRUCTURE
# ============================================================================

DIRS = {
    "logs":          DATA_ROOT / "logs",
}

# ============================================================================
# SCHEDULER
# ============================================================================

# Periodic task runner defaults (see core.types.ScheduleConfig)
SCHEDULER = {
    "interval_minutes": float(os.environ.get("TRADE_RUNNER_INTERVAL_MINUTES", 15)),
    "respect_market_hours": _env_bool("TRADE_RUNNER_RESPECT_MARKET_HOURS", True),
    "timezone": os.environ.get("TRADE_RUNNER_TIMEZONE", "America/New_York"),
    "run_on_start": _env_bool("TRADE_RUNNER_RUN_ON_START", False),
    "max_consecutive_errors": int(os.environ.get("TRADE_RUNNER_MAX_CONSECUTIVE_ERRORS", 5)),
}

# ============================================================================
# ORCHESTRATOR
# ============================================================================

ORCHESTRATOR = {
    "enable_position_monitoring": _env_bool("TRADE_RUNNER_POSITION_MONITORING", True),
    "enable_entry_scanning": _env_bool("TRADE_RUNNER_ENTRY_SCANNING", True),
    "enable_roll_management": _env_bool("TRADE_RUNNER_ROLL_MANAGEMENT", True),
    # Dry run unless explicitly switched to live
    "dry_run": not _env_bool("TRADE_RUNNER_LIVE", False),
}

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log rotation
LOG_MAX_BYTES = 10_000_000       # 10 MB
LOG_BACKUP_COUNT = 5

# Dedicated scheduler log
SCHEDULER_LOG_MAX_BYTES = 5_000_000
SCHEDULER_LOG_BACKUP_COUNT = 3

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def ensure_dirs():
    """Create all directories if they don't exist."""
    for name, path in DIRS.items():
        path.mkdir(parents=True, exist_ok=True)
    return True

def get_dir(name: str) -> Path:
    """Get path to a specific directory."""
    if name not in DIRS:
        raise ValueError(f"Unknown directory: {name}. Options: {list(DIRS.keys())}")
    return DIRS[name]
