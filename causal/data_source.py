"""Historical data loading.

Loads candles and daily signal rows from local files and hands the core
validated, immutable objects. Unlike a live feed, nothing here is repaired
silently: unsorted or duplicated stamps are a data problem and raise.

Canonical candle frame:
- index: UTC pandas DatetimeIndex (candle open time), strictly increasing
- columns: ["open","high","low","close"]

Daily rows file (CSV or Parquet), one row per entry:
- entry_utc, entry_price, direction (0/1/2)
- optional: micro (up/down/none), risk_high, min_move, symbol
- optional, for the precomputed continuation model: cont_decision, cont_probability
"""

import datetime as _dt
import logging
import os

import pandas as pd

from .contracts import (
    ContinuationModel,
    ContinuationPrediction,
    DailySignal,
    DataIntegrityError,
    DirectionClass,
    MicroSignal,
)
from .series import CandleSeries, as_candles

logger = logging.getLogger(__name__)


def _read_frame(path):
    if not os.path.exists(path):
        raise IOError("file not found: %s" % path)
    if path.lower().endswith(".csv"):
        return pd.read_csv(path)
    if path.lower().endswith(".parquet"):
        return pd.read_parquet(path)
    raise ValueError("unsupported file type: %s" % path)


def _picker(df):
    cols = {c.lower(): c for c in df.columns}

    def pick(name):
        if name in df.columns:
            return name
        return cols.get(name.lower())
    return pick


def to_utc_index(values, what):
    """Parse stamps into a UTC DatetimeIndex.

    Every stamp must carry an offset ("Z", "+00:00", "-05:00", ...); offsets
    are converted to UTC. Naive stamps raise DataIntegrityError, since their
    zone can only be guessed.
    """
    try:
        parsed = pd.DatetimeIndex(pd.to_datetime(values))
    except (TypeError, ValueError):
        # mixed offsets (e.g. across a DST switch) do not fit one dtype
        parsed = None

    if parsed is not None:
        if parsed.tz is None:
            raise DataIntegrityError(
                "%s: timestamps must carry a UTC offset, got naive %s" % (what, parsed[0].isoformat()))
        return parsed.tz_convert("UTC")

    for v in values:
        if pd.Timestamp(v).tzinfo is None:
            raise DataIntegrityError("%s: timestamps must carry a UTC offset, got naive %s" % (what, v))
    return pd.DatetimeIndex(pd.to_datetime(values, utc=True))


def normalize_candles(df, symbol):
    """Normalize a DataFrame to the canonical candle schema.

    Accepts common column variations (case-insensitive) and either a
    DatetimeIndex or a timestamp/time/date column. Stamps must carry an offset;
    explicit offsets are converted to UTC.
    """
    if df is None or len(df) == 0:
        raise ValueError("%s: empty candles dataframe" % symbol)

    pick = _picker(df)
    open_c, high_c, low_c, close_c = pick("open"), pick("high"), pick("low"), pick("close")
    if close_c is None:
        raise ValueError("%s: candles must include a close column" % symbol)

    if isinstance(df.index, pd.DatetimeIndex):
        index = to_utc_index(df.index, symbol)
    else:
        tcol = pick("open_time") or pick("timestamp") or pick("time") or pick("date")
        if tcol is None:
            raise ValueError("%s: candles must have a DatetimeIndex or a timestamp column" % symbol)
        index = to_utc_index(df[tcol], symbol)

    if index.has_duplicates:
        dup = index[index.duplicated()][0]
        raise DataIntegrityError("%s: duplicate open_time %s" % (symbol, dup.isoformat()))
    if not index.is_monotonic_increasing:
        raise DataIntegrityError("%s: candles are not sorted by open_time" % symbol)

    out = pd.DataFrame(index=index)
    out["close"] = df[close_c].astype(float).values
    out["open"] = df[open_c].astype(float).values if open_c is not None else out["close"]
    out["high"] = df[high_c].astype(float).values if high_c is not None else out[["open", "close"]].max(axis=1)
    out["low"] = df[low_c].astype(float).values if low_c is not None else out[["open", "close"]].min(axis=1)
    return out[["open", "high", "low", "close"]]


def frame_to_series(df, symbol, timeframe):
    rows = zip(
        (ts.to_pydatetime() for ts in df.index),
        df["open"], df["high"], df["low"], df["close"],
    )
    return CandleSeries(symbol, as_candles(rows), timeframe=timeframe)


class HistoricalCandleSource(object):
    """Load candles from a local file per symbol.

    Supported formats:
    - CSV
    - Parquet (requires pyarrow installed)

    The user supplies a mapping symbol -> filepath. Series are built once and
    cached; the same snapshot is shared by every row of a run.
    """

    def __init__(self, symbol_to_path, timeframe=_dt.timedelta(minutes=1)):
        self._paths = dict(symbol_to_path or {})
        self._timeframe = timeframe
        self._cache = {}

    @property
    def timeframe(self):
        return self._timeframe

    def load_frame(self, symbol):
        if symbol not in self._paths:
            raise KeyError("no path configured for symbol: %s" % symbol)
        return normalize_candles(_read_frame(self._paths[symbol]), symbol)

    def series(self, symbol):
        if symbol not in self._cache:
            df = self.load_frame(symbol)
            s = frame_to_series(df, symbol, self._timeframe)
            logger.info("loaded %s: %d candles (%s) %s", symbol, len(s), self._timeframe, s.available_range())
            self._cache[symbol] = s
        return self._cache[symbol]


_MICRO_ALIASES = {
    "": MicroSignal.NONE,
    "none": MicroSignal.NONE,
    "0": MicroSignal.NONE,
    "up": MicroSignal.UP,
    "1": MicroSignal.UP,
    "+1": MicroSignal.UP,
    "down": MicroSignal.DOWN,
    "-1": MicroSignal.DOWN,
}


def _parse_micro(v):
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return MicroSignal.NONE
    key = str(v).strip().lower()
    if key.endswith(".0"):
        key = key[:-2]
    if key not in _MICRO_ALIASES:
        raise ValueError("unknown micro signal %r" % (v,))
    return _MICRO_ALIASES[key]


def _parse_bool(v):
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "y")
    if pd.isna(v):
        return False
    return bool(v)


def _entry_times(df, path):
    pick = _picker(df)
    col = pick("entry_utc")
    if col is None:
        raise ValueError("%s: rows must include an entry_utc column" % path)
    return col, pd.Series(to_utc_index(df[col], "%s entry_utc" % path))


def load_daily_signals(path):
    """Read the rows file into a list of DailySignal, in file order."""
    df = _read_frame(path)
    pick = _picker(df)
    _, times = _entry_times(df, path)
    price_c, dir_c = pick("entry_price"), pick("direction")
    if price_c is None or dir_c is None:
        raise ValueError("%s: rows must include entry_price and direction columns" % path)
    micro_c, risk_c, move_c, sym_c = pick("micro"), pick("risk_high"), pick("min_move"), pick("symbol")

    out = []
    for i in range(len(df)):
        row = df.iloc[i]
        min_move = 0.0
        if move_c is not None and not pd.isna(row[move_c]):
            min_move = float(row[move_c])
        out.append(DailySignal(
            entry_utc=times.iloc[i].to_pydatetime(),
            entry_price=float(row[price_c]),
            direction=DirectionClass(int(row[dir_c])),
            micro=_parse_micro(row[micro_c]) if micro_c is not None else MicroSignal.NONE,
            risk_high=_parse_bool(row[risk_c]) if risk_c is not None else False,
            min_move=min_move,
            symbol=str(row[sym_c]) if sym_c is not None else "",
        ))
    logger.info("loaded %d daily rows from %s", len(out), path)
    return out


class PrecomputedContinuationModel(ContinuationModel):
    """Continuation model backed by predictions scored offline, keyed by entry instant.

    A row without a stored prediction is a data problem, not a rejection.
    """

    def __init__(self, predictions):
        self._predictions = dict(predictions)

    def __len__(self):
        return len(self._predictions)

    def predict(self, entry_utc, features):
        try:
            return self._predictions[entry_utc]
        except KeyError:
            raise DataIntegrityError("no continuation prediction stored for %s" % entry_utc.isoformat())


def load_continuation_predictions(path):
    """Build a PrecomputedContinuationModel from the cont_decision/cont_probability columns."""
    df = _read_frame(path)
    pick = _picker(df)
    _, times = _entry_times(df, path)
    dec_c, prob_c = pick("cont_decision"), pick("cont_probability")
    if prob_c is None:
        raise ValueError("%s: rows must include a cont_probability column" % path)

    preds = {}
    for i in range(len(df)):
        row = df.iloc[i]
        if pd.isna(row[prob_c]):
            continue
        decision = _parse_bool(row[dec_c]) if dec_c is not None else True
        preds[times.iloc[i].to_pydatetime()] = ContinuationPrediction(decision, float(row[prob_c]))
    return PrecomputedContinuationModel(preds)
