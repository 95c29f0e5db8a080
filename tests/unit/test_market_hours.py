"""
Unit tests for the market-hours oracle.

Tests:
- Closed weekdays and holidays
- Grace-period boundaries (inclusive open, exclusive close)
- Next open / next close computation
- Minutes-until helpers and the "never opens" sentinel
- Early-close days in the US calendar
"""

import math
from datetime import datetime, timedelta

import pytest
import pytz

from core.types import MarketHoursConfig, weekday_number
from orchestration.market_hours import (
    MarketHoursOracle,
    get_market_status,
    get_next_close_time,
    get_next_open_time,
    minutes_until_market_close,
    minutes_until_market_open,
)


class TestMarketStatusScenarios:
    """The reference calendar: 09:30-16:00 Mon-Fri, 15/15 grace, 2025-01-01 holiday."""

    def test_holiday_is_closed(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 1, 10, 0))

        assert status.is_open is False
        assert "holiday" in status.closed_reason.lower()
        assert "2025-01-01" in status.closed_reason

    def test_before_open_grace_is_closed(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 9, 44))

        assert status.is_open is False
        assert "before market open" in status.closed_reason.lower()

    def test_open_at_end_of_open_grace(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 9, 45))

        assert status.is_open is True
        assert status.closed_reason is None

    def test_closed_at_start_of_close_grace(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 15, 45))

        assert status.is_open is False
        assert "after market close" in status.closed_reason.lower()

    def test_open_one_minute_before_close_grace(self, scenario_market_hours):
        assert get_market_status(scenario_market_hours, datetime(2025, 1, 2, 15, 44)).is_open

    def test_seconds_are_ignored(self, scenario_market_hours):
        # 09:44:59 is still minute 584, before the 585 boundary
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 9, 44, 59))
        assert status.is_open is False


class TestClosedDays:

    @pytest.mark.parametrize("day,name", [
        (datetime(2025, 1, 4, 11, 0), "Saturday"),
        (datetime(2025, 1, 5, 11, 0), "Sunday"),
    ])
    def test_weekend_reason_names_weekday(self, scenario_market_hours, day, name):
        status = get_market_status(scenario_market_hours, day)

        assert status.is_open is False
        assert status.closed_reason == f"Market closed on {name}"

    def test_non_open_weekday_wins_over_holiday(self):
        config = MarketHoursConfig(
            open_time="09:30", close_time="16:00",
            open_days=[1, 2, 3, 4, 5],
            holidays=["2025-01-04"],  # a Saturday
        )
        status = get_market_status(config, datetime(2025, 1, 4, 11, 0))
        assert "Saturday" in status.closed_reason

    def test_custom_open_days(self):
        # Sunday-only market
        config = MarketHoursConfig(open_time="10:00", close_time="12:00", open_days=[0])

        assert get_market_status(config, datetime(2025, 1, 5, 11, 0)).is_open is True
        assert get_market_status(config, datetime(2025, 1, 6, 11, 0)).is_open is False


class TestNextOpen:

    def test_before_open_next_open_is_today(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 8, 0))
        assert status.next_open_time == datetime(2025, 1, 2, 9, 30)

    def test_inside_open_grace_next_open_is_next_trading_day(self, scenario_market_hours):
        # Today's published open already passed
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 9, 40))
        assert status.next_open_time == datetime(2025, 1, 3, 9, 30)

    def test_after_close_on_friday_rolls_to_monday(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 3, 17, 0))
        assert status.next_open_time == datetime(2025, 1, 6, 9, 30)

    def test_holiday_next_open_is_following_day(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 1, 10, 0))
        assert status.next_open_time == datetime(2025, 1, 2, 9, 30)

    def test_skips_consecutive_holidays(self):
        config = MarketHoursConfig(
            open_time="09:30", close_time="16:00",
            open_days=[1, 2, 3, 4, 5],
            holidays=["2025-01-06", "2025-01-07"],
        )
        nxt = get_next_open_time(config, datetime(2025, 1, 3, 17, 0))
        assert nxt == datetime(2025, 1, 8, 9, 30)

    def test_next_open_properties_hold_over_two_weeks(self, scenario_market_hours):
        """Next open is always strictly later, on an open weekday, and not a holiday."""
        start = datetime(2024, 12, 28, 0, 0)
        for hour in range(0, 14 * 24, 1):
            now = start + timedelta(hours=hour, minutes=7)
            status = get_market_status(scenario_market_hours, now)
            if status.is_open:
                continue

            nxt = status.next_open_time
            assert nxt is not None
            assert nxt > now
            assert weekday_number(nxt) in scenario_market_hours.open_days
            assert nxt.strftime("%Y-%m-%d") not in scenario_market_hours.holidays

    def test_no_open_days_has_no_next_open(self):
        config = MarketHoursConfig(open_time="09:30", close_time="16:00", open_days=[])

        status = get_market_status(config, datetime(2025, 1, 2, 11, 0))

        assert status.is_open is False
        assert status.next_open_time is None


class TestNextClose:

    def test_open_status_carries_close_time(self, scenario_market_hours):
        status = get_market_status(scenario_market_hours, datetime(2025, 1, 2, 11, 0))

        assert status.is_open is True
        assert status.next_close_time == datetime(2025, 1, 2, 16, 0)
        assert status.next_open_time is None

    def test_next_close_time_is_published_close(self, scenario_market_hours):
        assert get_next_close_time(scenario_market_hours, datetime(2025, 1, 2, 3, 0)) == \
            datetime(2025, 1, 2, 16, 0)


class TestMinutesHelpers:

    def test_minutes_until_open(self, scenario_market_hours):
        assert minutes_until_market_open(scenario_market_hours, datetime(2025, 1, 2, 8, 0)) == 90

    def test_minutes_until_open_is_zero_when_open(self, scenario_market_hours):
        assert minutes_until_market_open(scenario_market_hours, datetime(2025, 1, 2, 11, 0)) == 0

    def test_minutes_until_open_floors_partial_minutes(self, scenario_market_hours):
        now = datetime(2025, 1, 2, 8, 0, 30)
        assert minutes_until_market_open(scenario_market_hours, now) == 89

    def test_never_opens_is_infinite(self):
        config = MarketHoursConfig(open_time="09:30", close_time="16:00", open_days=[])
        assert minutes_until_market_open(config, datetime(2025, 1, 2, 11, 0)) == math.inf

    def test_minutes_until_close(self, scenario_market_hours):
        assert minutes_until_market_close(scenario_market_hours, datetime(2025, 1, 2, 11, 0)) == 300

    def test_minutes_until_close_is_zero_when_closed(self, scenario_market_hours):
        assert minutes_until_market_close(scenario_market_hours, datetime(2025, 1, 4, 11, 0)) == 0


class TestUSMarketHours:

    def test_regular_session(self, us_market_hours):
        assert get_market_status(us_market_hours, datetime(2025, 3, 12, 12, 0)).is_open

    def test_christmas_closed(self, us_market_hours):
        status = get_market_status(us_market_hours, datetime(2025, 12, 25, 12, 0))

        assert status.is_open is False
        assert "holiday" in status.closed_reason

    def test_early_close_day(self, us_market_hours):
        # Day after Thanksgiving 2025 closes at 13:00 (effective 12:45)
        assert get_market_status(us_market_hours, datetime(2025, 11, 28, 12, 0)).is_open

        status = get_market_status(us_market_hours, datetime(2025, 11, 28, 12, 45))
        assert status.is_open is False
        assert status.closed_reason == "After market close (closed at 13:00)"

    def test_early_close_next_close_time(self, us_market_hours):
        status = get_market_status(us_market_hours, datetime(2025, 11, 28, 11, 0))
        assert status.next_close_time == datetime(2025, 11, 28, 13, 0)

    def test_next_open_skips_long_weekend(self, us_market_hours):
        # Friday before MLK Day 2025
        nxt = get_next_open_time(us_market_hours, datetime(2025, 1, 17, 17, 0))
        assert nxt == datetime(2025, 1, 21, 9, 30)

    def test_config_validates(self, us_market_hours):
        assert us_market_hours.validate() is us_market_hours


class TestTimezoneHandling:

    def test_tz_aware_input_read_as_wall_clock(self, scenario_market_hours):
        now = pytz.utc.localize(datetime(2025, 1, 2, 10, 0))

        status = get_market_status(scenario_market_hours, now)

        assert status.is_open is True
        assert status.current_time == datetime(2025, 1, 2, 10, 0)
        assert status.current_time.tzinfo is None


class TestMarketHoursOracle:

    def test_delegates_to_functions(self, scenario_market_hours):
        oracle = MarketHoursOracle(scenario_market_hours)
        now = datetime(2025, 1, 2, 8, 0)

        assert oracle.is_open(now) is False
        assert oracle.next_open_time(now) == datetime(2025, 1, 2, 9, 30)
        assert oracle.minutes_until_open(now) == 90
        assert oracle.minutes_until_close(now) == 0
        assert oracle.status(now).closed_reason == "Before market open (opens at 09:30)"

    def test_defaults_to_wall_clock(self, scenario_market_hours):
        oracle = MarketHoursOracle(scenario_market_hours)
        status = oracle.status()
        assert abs((status.current_time - datetime.now()).total_seconds()) < 5
