"""Session calendar: entry instant -> exit boundary.

The exit boundary of a daily trade entered at `entry_utc` is the next trading
session open (local clock) minus a small safety buffer, so that it falls inside
the last minute bar of the day instead of on a bar boundary:

- entry on Saturday/Sunday (session-local date) -> boundary undefined
- Mon..Thu -> next calendar day
- Friday -> Monday

Session open is 07:00 local while the zone is on standard time and 08:00 on
daylight time (both 12:00 UTC for New York); whether the target date is on
daylight time is decided at its local noon so overnight DST switches do not
flip the answer. Holidays are not modelled.
"""

import datetime as _dt

import pytz

from .contracts import DataIntegrityError, TradingDayBoundary, require_utc

EXIT_SAFETY_BUFFER = _dt.timedelta(minutes=2)

SATURDAY = 5
SUNDAY = 6


class CalendarConfig(object):
    """Session calendar knobs. Defaults match the New York morning session."""

    def __init__(
        self,
        tz_name="America/New_York",
        session_open_std_hour=7,
        session_open_dst_hour=8,
        exit_buffer=EXIT_SAFETY_BUFFER,
    ):
        self.tz_name = str(tz_name)
        self.session_open_std_hour = int(session_open_std_hour)
        self.session_open_dst_hour = int(session_open_dst_hour)
        self.exit_buffer = exit_buffer


class TradingCalendar(object):
    """Pure mapping from entry instants to trading-day boundaries.

    Holds no per-row state; one instance is shared by every consumer of a run.
    """

    def __init__(self, cfg=None):
        self.cfg = cfg or CalendarConfig()
        self._tz = pytz.timezone(self.cfg.tz_name)

    @property
    def tz(self):
        return self._tz

    def to_local(self, ts_utc):
        return require_utc(ts_utc, "entry_utc").astimezone(self._tz)

    def is_trading_entry(self, entry_utc):
        return self.to_local(entry_utc).weekday() not in (SATURDAY, SUNDAY)

    def _session_open_local(self, day):
        noon = self._tz.localize(_dt.datetime(day.year, day.month, day.day, 12, 0), is_dst=False)
        hour = self.cfg.session_open_dst_hour if noon.dst() else self.cfg.session_open_std_hour
        # is_dst=False: ambiguous / non-existent local times take the standard offset
        return self._tz.localize(_dt.datetime(day.year, day.month, day.day, hour, 0), is_dst=False)

    def session_entry_utc(self, day):
        """Session-open instant (UTC) of a trading day given as a local date."""
        if day.weekday() in (SATURDAY, SUNDAY):
            raise ValueError("not a trading day: %s" % day.isoformat())
        return self._session_open_local(day).astimezone(pytz.UTC)

    def is_session_open(self, entry_utc):
        local = self.to_local(entry_utc)
        if local.weekday() in (SATURDAY, SUNDAY):
            return False
        return self.session_entry_utc(local.date()) == entry_utc

    def compute_exit_boundary(self, entry_utc):
        local = self.to_local(entry_utc)
        if local.weekday() in (SATURDAY, SUNDAY):
            return TradingDayBoundary(entry_utc=entry_utc, exit_utc=None, is_defined=False)

        target = local.date() + _dt.timedelta(days=1)
        if target.weekday() == SATURDAY:
            target += _dt.timedelta(days=2)
        elif target.weekday() == SUNDAY:
            target += _dt.timedelta(days=1)

        exit_local = self._session_open_local(target) - self.cfg.exit_buffer
        exit_utc = exit_local.astimezone(pytz.UTC)
        if exit_utc <= entry_utc:
            raise DataIntegrityError(
                "invalid trading-day window: entry=%s exit=%s" % (entry_utc.isoformat(), exit_utc.isoformat()))
        return TradingDayBoundary(entry_utc=entry_utc, exit_utc=exit_utc, is_defined=True)

    def exit_day_key(self, entry_utc):
        """00:00Z of the exit boundary's UTC date, or None for non-trading entries."""
        b = self.compute_exit_boundary(entry_utc)
        if not b.is_defined:
            return None
        return b.exit_utc.replace(hour=0, minute=0, second=0, microsecond=0)
