"""Causal features for the pullback-continuation model.

Features are computed at the entry instant from hourly candles in
`[entry_utc - lookback, entry_utc)` only; nothing at or after the entry is
visible here.
"""

import datetime as _dt
import math

import pandas as pd

from .contracts import DataIntegrityError

FEATURE_NAMES = (
    "go_long",
    "strong_signal",
    "min_move",
    "ret_1h",
    "ret_3h",
    "ret_6h",
    "range_3h",
    "range_6h",
    "retrace_3h_up",
    "retrace_3h_down",
    "retrace_6h_up",
    "retrace_6h_down",
    "vol_6h",
    "entry_hour",
)

MIN_HISTORY_BARS = 6


def _clamp01(x):
    return min(1.0, max(0.0, x))


def build_continuation_features(hours, entry_utc, go_long, strong_signal, min_move, lookback_hours=6):
    """Return a tuple of floats aligned with FEATURE_NAMES.

    `hours` is the hourly CandleSeries of the row's symbol. Raises
    DataIntegrityError when fewer than MIN_HISTORY_BARS bars precede the entry.
    """
    start = entry_utc - _dt.timedelta(hours=lookback_hours)
    window = hours.window(start, entry_utc)
    if len(window) < MIN_HISTORY_BARS:
        raise DataIntegrityError(
            "%s: insufficient hourly history in [%s, %s): %d bars; available %s"
            % (hours.symbol, start.isoformat(), entry_utc.isoformat(), len(window), hours.available_range()))

    bars = pd.DataFrame(list(window), columns=["open_time", "open", "high", "low", "close"])
    closes = bars["close"].astype(float)
    if (closes <= 0.0).any() or (bars["low"] <= 0.0).any():
        raise DataIntegrityError("%s: non-positive prices in hourly history before %s" % (hours.symbol, entry_utc.isoformat()))
    if (bars["high"] < bars["low"]).any():
        raise DataIntegrityError("%s: high < low in hourly history before %s" % (hours.symbol, entry_utc.isoformat()))

    close_now = float(closes.iloc[-1])

    def ret(offset):
        return close_now / float(closes.iloc[-1 - offset]) - 1.0

    last3 = bars.iloc[-3:]
    high3, low3 = float(last3["high"].max()), float(last3["low"].min())
    high6, low6 = float(bars["high"].max()), float(bars["low"].min())
    span3 = max(high3 - low3, 1e-9)
    span6 = max(high6 - low6, 1e-9)

    log_rets = (closes / closes.shift(1)).dropna().apply(math.log)
    vol6 = math.sqrt(float((log_rets ** 2).sum()))

    return (
        1.0 if go_long else 0.0,
        1.0 if strong_signal else 0.0,
        float(min_move),
        ret(1),
        ret(3),
        ret(5),
        (high3 - low3) / close_now,
        (high6 - low6) / close_now,
        _clamp01((close_now - low3) / span3),
        _clamp01((high3 - close_now) / span3),
        _clamp01((close_now - low6) / span6),
        _clamp01((high6 - close_now) / span6),
        vol6,
        entry_utc.hour / 23.0,
    )
