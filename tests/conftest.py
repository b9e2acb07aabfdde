"""Shared fixtures: a New York calendar and synthetic candle series builders."""

import datetime as _dt

import pytest

from causal.calendar import TradingCalendar
from causal.contracts import Candle, ContinuationModel, ContinuationPrediction
from causal.series import CandleSeries

UTC = _dt.timezone.utc
MINUTE = _dt.timedelta(minutes=1)
HOUR = _dt.timedelta(hours=1)


def utc(y, m, d, h=0, mi=0):
    return _dt.datetime(y, m, d, h, mi, tzinfo=UTC)


def build_series(start, count, step=MINUTE, price=100.0, overrides=None, symbol="SPY", drop=None):
    """Flat candles at `price`; `overrides` maps open_time -> (o, h, l, c), `drop` holds open_times to leave out."""
    overrides = overrides or {}
    drop = set(drop or ())
    candles = []
    for i in range(count):
        t = start + i * step
        if t in drop:
            continue
        o, h, l, c = overrides.get(t, (price, price, price, price))
        candles.append(Candle(t, o, h, l, c))
    return CandleSeries(symbol, candles, timeframe=step)


class FixedModel(ContinuationModel):
    """Returns the same prediction for every row and remembers the features it saw."""

    def __init__(self, decision=True, probability=0.9):
        self.prediction = ContinuationPrediction(decision, probability)
        self.seen = []

    def predict(self, entry_utc, features):
        self.seen.append((entry_utc, tuple(features)))
        return self.prediction


@pytest.fixture
def calendar():
    return TradingCalendar()


@pytest.fixture
def make_series():
    return build_series


@pytest.fixture
def day_minutes():
    """1-minute candles covering Mon 2024-03-04 12:00Z (session open) to Tue 12:00Z."""

    def _make(overrides=None, price=100.0, symbol="SPY", drop=None):
        return build_series(utc(2024, 3, 4, 12), 24 * 60, MINUTE, price, overrides, symbol, drop)
    return _make


@pytest.fixture
def day_hours():
    """Hourly candles covering Sun 2024-03-03 00:00Z to Wed 2024-03-06 00:00Z."""

    def _make(overrides=None, price=100.0, symbol="SPY"):
        return build_series(utc(2024, 3, 3), 72, HOUR, price, overrides, symbol)
    return _make
