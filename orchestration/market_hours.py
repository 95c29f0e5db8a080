"""
Market Hours
============
Pure market-status oracle: given a MarketHoursConfig and a timestamp,
answers "is the market open now" and computes the next open/close.

Boundaries (minutes since midnight, seconds ignored):
- effective open  = open_time  + grace_after_open   (inclusive: open AT this minute)
- effective close = close_time - grace_before_close (inclusive: closed AT this minute)

Timestamps are read as market-local wall-clock time. Any tzinfo on the
input is dropped, never converted.

Usage:
    from orchestration.market_hours import MarketHoursOracle, us_market_hours_config

    oracle = MarketHoursOracle(us_market_hours_config())
    status = oracle.status()
    if not status.is_open:
        print(status.closed_reason, oracle.minutes_until_open())
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Optional

from core.types import (
    DAY_NAMES,
    MarketHoursConfig,
    MarketStatus,
    format_date,
    parse_hhmm,
    weekday_number,
)
from utils.timezone import now_market_local, strip_tz


# US Market holidays (dates when market is CLOSED)
US_MARKET_HOLIDAYS = {
    2025: [
        "2025-01-01",  # New Year's Day
        "2025-01-20",  # MLK Day
        "2025-02-17",  # Presidents Day
        "2025-04-18",  # Good Friday
        "2025-05-26",  # Memorial Day
        "2025-06-19",  # Juneteenth
        "2025-07-04",  # Independence Day
        "2025-09-01",  # Labor Day
        "2025-11-27",  # Thanksgiving
        "2025-12-25",  # Christmas
    ],
    2026: [
        "2026-01-01",  # New Year's Day
        "2026-01-19",  # MLK Day (3rd Monday)
        "2026-02-16",  # Presidents Day (3rd Monday)
        "2026-04-03",  # Good Friday
        "2026-05-25",  # Memorial Day (last Monday)
        "2026-06-19",  # Juneteenth
        "2026-07-03",  # Independence Day observed (July 4 is Saturday)
        "2026-09-07",  # Labor Day (1st Monday)
        "2026-11-26",  # Thanksgiving (4th Thursday)
        "2026-12-25",  # Christmas
    ],
    2027: [
        "2027-01-01",  # New Year's Day
        "2027-01-18",  # MLK Day
        "2027-02-15",  # Presidents Day
        "2027-03-26",  # Good Friday
        "2027-05-31",  # Memorial Day
        "2027-06-18",  # Juneteenth (observed)
        "2027-07-05",  # Independence Day (observed)
        "2027-09-06",  # Labor Day
        "2027-11-25",  # Thanksgiving
        "2027-12-24",  # Christmas (observed)
    ],
}

# Early close days (1 PM close)
US_EARLY_CLOSE_DAYS = {
    2025: ["2025-07-03", "2025-11-28", "2025-12-24"],
    2026: ["2026-07-02", "2026-11-27", "2026-12-24"],
    2027: ["2027-11-26", "2027-12-23"],
}

# Search horizon for the next open day (a year plus slack for long closures)
NEXT_OPEN_SEARCH_DAYS = 372


def us_market_hours_config() -> MarketHoursConfig:
    """
    Standard US equity market hours.

    09:30-16:00 Monday-Friday, NYSE holidays, 13:00 half-days,
    and a 15 minute grace period on each side of the session.
    """
    holidays = [d for year in sorted(US_MARKET_HOLIDAYS) for d in US_MARKET_HOLIDAYS[year]]
    early = [d for year in sorted(US_EARLY_CLOSE_DAYS) for d in US_EARLY_CLOSE_DAYS[year]]
    return MarketHoursConfig(
        open_time="09:30",
        close_time="16:00",
        open_days=frozenset({1, 2, 3, 4, 5}),  # Monday-Friday
        holidays=frozenset(holidays),
        grace_after_open=15,    # Wait 15 min after open
        grace_before_close=15,  # Stop 15 min before close
        early_close_days=frozenset(early),
        early_close_time="13:00",
    )


def _at_minutes(day: date, minutes: int) -> datetime:
    return datetime.combine(day, time(minutes // 60, minutes % 60))


def _minute_of_day(ts: datetime) -> int:
    return ts.hour * 60 + ts.minute


def _close_time_str(config: MarketHoursConfig, day: date) -> str:
    if config.is_early_close(day):
        return config.early_close_time
    return config.close_time


def _first_open_from(config: MarketHoursConfig, start: date, after: datetime) -> Optional[datetime]:
    """First trading-day open at or after ``start`` that is strictly later than ``after``."""
    open_minutes = parse_hhmm(config.open_time)
    day = start
    for _ in range(NEXT_OPEN_SEARCH_DAYS):
        if config.is_trading_day(day):
            candidate = _at_minutes(day, open_minutes)
            if candidate > after:
                return candidate
        day += timedelta(days=1)
    return None


def get_next_open_time(config: MarketHoursConfig, from_time: datetime) -> Optional[datetime]:
    """
    Next market open strictly after ``from_time``, searching from tomorrow.

    Returns None if no open day exists within the search horizon
    (e.g. empty ``open_days``).
    """
    from_time = strip_tz(from_time)
    return _first_open_from(config, from_time.date() + timedelta(days=1), from_time)


def get_next_close_time(config: MarketHoursConfig, from_time: datetime) -> datetime:
    """Close time on ``from_time``'s date (early close aware)."""
    from_time = strip_tz(from_time)
    close_minutes = parse_hhmm(_close_time_str(config, from_time.date()))
    return _at_minutes(from_time.date(), close_minutes)


def get_market_status(config: MarketHoursConfig, now: Optional[datetime] = None) -> MarketStatus:
    """
    Evaluate the market at ``now`` (default: current wall-clock time).

    Checks, in order: open weekday, holiday, before effective open,
    at/after effective close.
    """
    now = strip_tz(now) if now is not None else now_market_local()
    today = now.date()

    day_of_week = weekday_number(now)
    if day_of_week not in config.open_days:
        return MarketStatus(
            is_open=False,
            current_time=now,
            closed_reason=f"Market closed on {DAY_NAMES[day_of_week]}",
            next_open_time=get_next_open_time(config, now),
        )

    date_str = format_date(now)
    if date_str in config.holidays:
        return MarketStatus(
            is_open=False,
            current_time=now,
            closed_reason=f"Market closed for holiday ({date_str})",
            next_open_time=get_next_open_time(config, now),
        )

    close_str = _close_time_str(config, today)
    effective_open = parse_hhmm(config.open_time) + config.grace_after_open
    effective_close = parse_hhmm(close_str) - config.grace_before_close
    current_minutes = _minute_of_day(now)

    if current_minutes < effective_open:
        # Today's published open if it is still ahead, otherwise the next trading day
        return MarketStatus(
            is_open=False,
            current_time=now,
            closed_reason=f"Before market open (opens at {config.open_time})",
            next_open_time=_first_open_from(config, today, now),
        )

    if current_minutes >= effective_close:
        return MarketStatus(
            is_open=False,
            current_time=now,
            closed_reason=f"After market close (closed at {close_str})",
            next_open_time=get_next_open_time(config, now),
        )

    return MarketStatus(
        is_open=True,
        current_time=now,
        next_close_time=get_next_close_time(config, now),
    )


def minutes_until_market_open(config: MarketHoursConfig, now: Optional[datetime] = None) -> float:
    """Whole minutes until the next open; 0 if open, ``math.inf`` if none is computable."""
    status = get_market_status(config, now)
    if status.is_open:
        return 0
    if status.next_open_time is None:
        return math.inf
    diff = status.next_open_time - status.current_time
    return math.floor(diff.total_seconds() / 60)


def minutes_until_market_close(config: MarketHoursConfig, now: Optional[datetime] = None) -> float:
    """Whole minutes until today's close; 0 if closed."""
    status = get_market_status(config, now)
    if not status.is_open or status.next_close_time is None:
        return 0
    diff = status.next_close_time - status.current_time
    return math.floor(diff.total_seconds() / 60)


class MarketHoursOracle:
    """Market-status queries bound to one MarketHoursConfig."""

    def __init__(self, config: MarketHoursConfig):
        self.config = config

    def status(self, now: Optional[datetime] = None) -> MarketStatus:
        return get_market_status(self.config, now)

    def is_open(self, now: Optional[datetime] = None) -> bool:
        return self.status(now).is_open

    def next_open_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        return self.status(now).next_open_time

    def next_close_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        return self.status(now).next_close_time

    def minutes_until_open(self, now: Optional[datetime] = None) -> float:
        return minutes_until_market_open(self.config, now)

    def minutes_until_close(self, now: Optional[datetime] = None) -> float:
        return minutes_until_market_close(self.config, now)
