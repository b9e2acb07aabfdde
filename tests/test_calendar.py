"""
Tests for the session calendar.

Validates that:
1. Exit boundary = next session open minus 2 minutes, Friday rolls to Monday
2. Session open follows standard/daylight time of the target date
3. Weekend entries have no boundary
4. Non-UTC input fails fast
"""

import datetime as _dt

import pytest

from causal.calendar import CalendarConfig, TradingCalendar
from causal.contracts import DataIntegrityError

from conftest import utc


class TestExitBoundary:
    """Next-session-open boundaries across weekdays and DST."""

    def test_monday_exits_tuesday_before_open(self, calendar):
        """Winter Monday: open 07:00 EST = 12:00Z, exit Tuesday 11:58Z."""
        b = calendar.compute_exit_boundary(utc(2024, 3, 4, 12))
        assert b.is_defined
        assert b.exit_utc == utc(2024, 3, 5, 11, 58)

    def test_friday_rolls_to_monday(self, calendar):
        """Friday entries exit before Monday's open."""
        b = calendar.compute_exit_boundary(utc(2024, 3, 1, 12))
        assert b.exit_utc == utc(2024, 3, 4, 11, 58)

    def test_friday_across_spring_forward(self, calendar):
        """Monday 2024-03-11 is on daylight time: open 08:00 EDT, still 12:00Z."""
        b = calendar.compute_exit_boundary(utc(2024, 3, 8, 12))
        assert b.exit_utc == utc(2024, 3, 11, 11, 58)

    def test_friday_across_fall_back(self, calendar):
        """Monday 2024-11-04 is back on standard time: open 07:00 EST."""
        b = calendar.compute_exit_boundary(utc(2024, 11, 1, 12))
        assert b.exit_utc == utc(2024, 11, 4, 11, 58)

    def test_summer_weekday(self, calendar):
        b = calendar.compute_exit_boundary(utc(2024, 7, 1, 12))
        assert b.exit_utc == utc(2024, 7, 2, 11, 58)

    def test_friday_evening_local_still_friday(self, calendar):
        """23:30Z Friday is 18:30 in New York, still a Friday entry."""
        b = calendar.compute_exit_boundary(utc(2024, 3, 1, 23, 30))
        assert b.is_defined
        assert b.exit_utc == utc(2024, 3, 4, 11, 58)

    def test_exit_always_after_entry(self, calendar):
        """Hourly sweep over two months that include a DST switch."""
        t = utc(2024, 2, 20)
        end = utc(2024, 4, 20)
        while t < end:
            b = calendar.compute_exit_boundary(t)
            if b.is_defined:
                assert b.exit_utc > b.entry_utc
                assert b.exit_utc - b.entry_utc <= _dt.timedelta(days=4)
            t += _dt.timedelta(hours=1)

    def test_entry_is_preserved(self, calendar):
        e = utc(2024, 3, 4, 12)
        assert calendar.compute_exit_boundary(e).entry_utc == e

    def test_custom_buffer(self):
        cal = TradingCalendar(CalendarConfig(exit_buffer=_dt.timedelta(0)))
        assert cal.compute_exit_boundary(utc(2024, 3, 4, 12)).exit_utc == utc(2024, 3, 5, 12)

    def test_boundary_not_after_entry_raises(self):
        """A buffer longer than the overnight span puts the exit before the entry."""
        cal = TradingCalendar(CalendarConfig(exit_buffer=_dt.timedelta(days=2)))
        with pytest.raises(DataIntegrityError, match="invalid trading-day window"):
            cal.compute_exit_boundary(utc(2024, 3, 4, 12))

    def test_exit_day_key(self, calendar):
        assert calendar.exit_day_key(utc(2024, 3, 1, 12)) == utc(2024, 3, 4)
        assert calendar.exit_day_key(utc(2024, 3, 2, 12)) is None


class TestNonTradingEntries:
    """Weekend entries (session-local date) are undefined."""

    @pytest.mark.parametrize("entry", [
        utc(2024, 3, 2, 12),   # Saturday
        utc(2024, 3, 3, 20),   # Sunday
        utc(2024, 3, 4, 3),    # Sunday 22:00 in New York
    ])
    def test_weekend_is_undefined(self, calendar, entry):
        b = calendar.compute_exit_boundary(entry)
        assert not b.is_defined
        assert b.exit_utc is None
        assert not calendar.is_trading_entry(entry)

    def test_monday_early_utc_is_trading(self, calendar):
        """05:00Z Monday is Monday 00:00 local."""
        assert calendar.is_trading_entry(utc(2024, 3, 4, 5))


class TestSessionOpen:
    """Session-open instants."""

    def test_session_entry_utc_winter_and_summer(self, calendar):
        assert calendar.session_entry_utc(_dt.date(2024, 1, 8)) == utc(2024, 1, 8, 12)
        assert calendar.session_entry_utc(_dt.date(2024, 7, 8)) == utc(2024, 7, 8, 12)

    def test_session_entry_utc_rejects_weekend(self, calendar):
        with pytest.raises(ValueError, match="not a trading day"):
            calendar.session_entry_utc(_dt.date(2024, 3, 9))

    def test_is_session_open(self, calendar):
        assert calendar.is_session_open(utc(2024, 3, 4, 12))
        assert not calendar.is_session_open(utc(2024, 3, 4, 12, 1))
        assert not calendar.is_session_open(utc(2024, 3, 9, 12))


class TestUtcValidation:
    """Only timezone-aware UTC instants are accepted."""

    def test_naive_raises(self, calendar):
        with pytest.raises(DataIntegrityError, match="naive"):
            calendar.compute_exit_boundary(_dt.datetime(2024, 3, 4, 12))

    def test_offset_raises(self, calendar):
        est = _dt.timezone(_dt.timedelta(hours=-5))
        with pytest.raises(DataIntegrityError, match="must be UTC"):
            calendar.compute_exit_boundary(_dt.datetime(2024, 3, 4, 7, tzinfo=est))

    def test_date_raises(self, calendar):
        with pytest.raises(DataIntegrityError, match="must be a datetime"):
            calendar.to_local(_dt.date(2024, 3, 4))
