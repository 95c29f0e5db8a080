"""
Centralized Timezone Handling for the Trade Runner

POLICY: The scheduler compares TIMEZONE-NAIVE wall-clock timestamps and
        assumes the process clock already reads market-local time.
        A configured timezone name is validated here but never applied
        to time comparisons.

Usage:
    from utils.timezone import is_valid_timezone, now_market_local

    if not is_valid_timezone(cfg.timezone):
        raise ConfigurationError(...)
"""

from datetime import datetime
from typing import Optional

import pytz

# Default market timezone name
DEFAULT_MARKET_TZ = 'America/New_York'


def is_valid_timezone(name: Optional[str]) -> bool:
    """
    Check whether ``name`` is a timezone pytz knows about.

    Examples:
        >>> is_valid_timezone("America/New_York")
        True
        >>> is_valid_timezone("Mars/Olympus_Mons")
        False
    """
    if not name:
        return False
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return False
    return True


def now_market_local() -> datetime:
    """
    Current wall-clock time as a naive datetime.

    This is the scheduler's default clock. It deliberately does not convert
    into the configured market timezone.
    """
    return datetime.now()


def strip_tz(ts: datetime) -> datetime:
    """Drop tzinfo while keeping the wall-clock reading unchanged."""
    if ts.tzinfo is None:
        return ts
    return ts.replace(tzinfo=None)
