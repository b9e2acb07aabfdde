"""Immutable candle series snapshot with binary-search windows.

A `CandleSeries` is built once per symbol/timeframe and shared by reference
across every row evaluation of a run. Construction validates the store's
contract (UTC stamps, strictly increasing, no duplicates) and fails fast.

Windows are half-open `[from_utc, to_utc)` unless stated otherwise and are
located with lower-bound binary searches; a `CandleWindow` only ever exposes
the candles between its two bounds.
"""

import bisect
import datetime as _dt

from .contracts import Candle, DataIntegrityError, require_utc


class CandleSeries(object):
    """Read-only, strictly ascending candle sequence for one symbol/timeframe."""

    __slots__ = ("symbol", "timeframe", "_candles", "_times")

    def __init__(self, symbol, candles, timeframe=_dt.timedelta(minutes=1)):
        self.symbol = str(symbol)
        self.timeframe = timeframe
        candles = tuple(candles)
        times = []
        prev = None
        for i, c in enumerate(candles):
            t = require_utc(c.open_time, "%s candle[%d].open_time" % (self.symbol, i))
            if prev is not None and t <= prev:
                kind = "duplicate" if t == prev else "out-of-order"
                raise DataIntegrityError(
                    "%s: %s open_time at i=%d (prev=%s, cur=%s)" % (self.symbol, kind, i, prev.isoformat(), t.isoformat()))
            times.append(t)
            prev = t
        self._candles = candles
        self._times = tuple(times)

    def __len__(self):
        return len(self._candles)

    def __getitem__(self, i):
        return self._candles[i]

    def __iter__(self):
        return iter(self._candles)

    @property
    def first_open(self):
        return self._times[0] if self._times else None

    @property
    def last_open(self):
        return self._times[-1] if self._times else None

    def available_range(self):
        if not self._times:
            return "<empty>"
        return "[%s .. %s]" % (self.first_open.isoformat(), self.last_open.isoformat())

    def lower_bound(self, t, lo=0, hi=None):
        """Index of the first candle with open_time >= t, searched within [lo, hi)."""
        if hi is None:
            hi = len(self._times)
        return bisect.bisect_left(self._times, t, lo, hi)

    def upper_bound(self, t, lo=0, hi=None):
        """Index of the first candle with open_time > t, searched within [lo, hi)."""
        if hi is None:
            hi = len(self._times)
        return bisect.bisect_right(self._times, t, lo, hi)

    def window(self, from_utc, to_utc):
        require_utc(from_utc, "window from_utc")
        require_utc(to_utc, "window to_utc")
        start = self.lower_bound(from_utc)
        end = self.lower_bound(to_utc, lo=start) if to_utc > from_utc else start
        return CandleWindow(self, from_utc, to_utc, start, end)

    def require_coverage(self, from_utc, to_utc):
        """Raise DataIntegrityError unless candles cover every instant of [from_utc, to_utc).

        Covered means: a candle opens at or before `from_utc`, consecutive
        candles are at most one `timeframe` apart, and the last candle before
        `to_utc` reaches it.
        """
        if not self._times or self.first_open > from_utc or self.last_open + self.timeframe < to_utc:
            raise DataIntegrityError(
                "%s: missing coverage for requested [%s, %s); available %s"
                % (self.symbol, from_utc.isoformat(), to_utc.isoformat(), self.available_range()))

        # candle covering from_utc, then every candle opening before to_utc
        i = self.upper_bound(from_utc) - 1
        end = self.lower_bound(to_utc, lo=i)
        prev = self._times[i]
        for t in self._times[i + 1:end]:
            if t - prev > self.timeframe:
                break
            prev = t
        if prev + self.timeframe < to_utc:
            raise DataIntegrityError(
                "%s: missing coverage for requested [%s, %s): gap starting %s; available %s"
                % (self.symbol, from_utc.isoformat(), to_utc.isoformat(),
                   (prev + self.timeframe).isoformat(), self.available_range()))


class CandleWindow(object):
    """Located slice `[start, end)` of a CandleSeries.

    Sub-windows are searched only inside the parent bounds, so a caller that
    narrows a located window never re-scans or reads outside it.
    """

    __slots__ = ("series", "from_utc", "to_utc", "start", "end")

    def __init__(self, series, from_utc, to_utc, start, end):
        self.series = series
        self.from_utc = from_utc
        self.to_utc = to_utc
        self.start = start
        self.end = end

    def __len__(self):
        return self.end - self.start

    def __iter__(self):
        for i in range(self.start, self.end):
            yield self.series[i]

    def __getitem__(self, offset):
        if offset < 0 or offset >= len(self):
            raise IndexError("offset=%d outside window of %d candles" % (offset, len(self)))
        return self.series[self.start + offset]

    def narrow(self, from_utc=None, to_utc=None):
        """Half-open sub-window, clamped to this window."""
        lo_t = self.from_utc if from_utc is None else max(from_utc, self.from_utc)
        hi_t = self.to_utc if to_utc is None else min(to_utc, self.to_utc)
        start = self.series.lower_bound(lo_t, self.start, self.end)
        end = self.series.lower_bound(hi_t, start, self.end) if hi_t > lo_t else start
        return CandleWindow(self.series, lo_t, hi_t, start, end)

    def narrow_through(self, from_utc, through_utc):
        """Sub-window with open_time in [from_utc, through_utc] (closed end), clamped to this window."""
        lo_t = max(from_utc, self.from_utc)
        start = self.series.lower_bound(lo_t, self.start, self.end)
        end = self.series.upper_bound(through_utc, start, self.end) if through_utc >= lo_t else start
        return CandleWindow(self.series, lo_t, min(through_utc, self.to_utc), start, end)


def as_candles(rows):
    """Build Candle tuples from (open_time, open, high, low, close) rows."""
    return [Candle(t, float(o), float(h), float(l), float(c)) for t, o, h, l, c in rows]
