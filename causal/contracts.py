"""Contracts for the causal backtest core.

This module defines the **value objects and collaborator interfaces** shared by
the calendar, the path resolver, the train/OOS classifier and the delayed-entry
engine.

Every value object is a NamedTuple: created fresh per backtest row, never
mutated afterwards, discarded once folded into aggregate statistics.

Time convention
---------------
All instants are timezone-aware `datetime` objects in UTC. Session-local time
only exists inside `causal.calendar`.
"""

import abc
import datetime as _dt
from enum import Enum, IntEnum
from typing import NamedTuple, Optional, Sequence


class DataIntegrityError(ValueError):
    """Fatal input problem: unsorted/duplicate series, non-UTC stamps, missing coverage.

    Never raised for business outcomes (no trigger, excluded row, gate rejection).
    """


def require_utc(ts, what="timestamp"):
    """Return `ts` unchanged if it is a tz-aware UTC datetime, else raise DataIntegrityError."""
    if not isinstance(ts, _dt.datetime):
        raise DataIntegrityError("%s must be a datetime, got %r" % (what, ts))
    if ts.tzinfo is None or ts.utcoffset() is None:
        raise DataIntegrityError("%s must be timezone-aware UTC, got naive %s" % (what, ts.isoformat()))
    if ts.utcoffset() != _dt.timedelta(0):
        raise DataIntegrityError("%s must be UTC, got offset %s (%s)" % (what, ts.utcoffset(), ts.isoformat()))
    return ts


# ----------------------------
# Market data value objects
# ----------------------------


class Candle(NamedTuple):
    """One OHLC bar.

    `open_time` MUST be timezone-aware UTC. The series that owns the candle
    guarantees strictly increasing `open_time`.
    """

    open_time: _dt.datetime
    open: float
    high: float
    low: float
    close: float


# ----------------------------
# Calendar / split value objects
# ----------------------------


class TradingDayBoundary(NamedTuple):
    """Forward window `[entry_utc, exit_utc)` of a daily trade.

    `exit_utc` is None and `is_defined` False when the entry falls on a
    non-trading day.
    """

    entry_utc: _dt.datetime
    exit_utc: Optional[_dt.datetime]
    is_defined: bool


class TrainCutoff(NamedTuple):
    """Train/OOS cutoff expressed in exit-boundary space.

    A row is Train when its exit boundary is `<= value`.
    """

    value: _dt.datetime

    @classmethod
    def through_exit_day(cls, day):
        """Cutoff that keeps every row whose exit boundary lies on or before `day` (UTC date)."""
        next_midnight = _dt.datetime(day.year, day.month, day.day, tzinfo=_dt.timezone.utc) + _dt.timedelta(days=1)
        return cls(next_midnight - _dt.timedelta(microseconds=1))


class EntryClassification(str, Enum):
    TRAIN = "train"
    OUT_OF_SAMPLE = "oos"
    EXCLUDED = "excluded"


# ----------------------------
# Path / trigger value objects
# ----------------------------


class TriggerDirection(str, Enum):
    UPWARD_TOUCH = "up"
    DOWNWARD_TOUCH = "down"


class PriceTrigger(NamedTuple):
    level: float
    direction: TriggerDirection

    def fired_by(self, candle):
        if self.direction == TriggerDirection.UPWARD_TOUCH:
            return candle.high >= self.level
        return candle.low <= self.level


class OutcomeKind(str, Enum):
    FIRST_TRIGGER = "first_trigger"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


class PathOutcome(NamedTuple):
    """Result of a first-touch scan.

    - FIRST_TRIGGER: `index` is the position of the trigger in the caller's list,
      `time_utc` the open time of the candle where it fired.
    - AMBIGUOUS: two triggers fired inside the same candle at `time_utc`.
    - NONE: the window was exhausted (held to window end).
    """

    kind: OutcomeKind
    index: Optional[int] = None
    time_utc: Optional[_dt.datetime] = None

    @classmethod
    def first_trigger(cls, index, time_utc):
        return cls(OutcomeKind.FIRST_TRIGGER, index, time_utc)

    @classmethod
    def ambiguous(cls, time_utc):
        return cls(OutcomeKind.AMBIGUOUS, None, time_utc)

    @classmethod
    def none(cls):
        return cls(OutcomeKind.NONE)


# ----------------------------
# Upstream signals (external collaborators)
# ----------------------------


class DirectionClass(IntEnum):
    """Primary daily class produced by the directional predictor."""

    DOWN = 0
    FLAT = 1
    UP = 2


class MicroSignal(str, Enum):
    """Tie-break sub-signal used only when the primary class is FLAT."""

    NONE = "none"
    UP = "up"
    DOWN = "down"


class DailySignal(NamedTuple):
    """One backtest row as handed over by the upstream predictors.

    `risk_high` is the risk model's "elevated risk" flag, `min_move` its
    volatility estimate for the day (fraction of price, 0 when unknown).
    """

    entry_utc: _dt.datetime
    entry_price: float
    direction: DirectionClass
    micro: MicroSignal = MicroSignal.NONE
    risk_high: bool = False
    min_move: float = 0.0
    symbol: str = ""


class ContinuationPrediction(NamedTuple):
    decision: bool
    probability: float


class ContinuationModel(abc.ABC):
    """Contract for the external continuation-probability model.

    Implementations receive only causal features (built from history strictly
    before `entry_utc`) and must not look anything else up by time.
    """

    @abc.abstractmethod
    def predict(self, entry_utc: _dt.datetime, features: Sequence[float]) -> ContinuationPrediction:
        """Return the decision and probability that the move continues after a pullback."""


# ----------------------------
# Delayed-entry records
# ----------------------------


class IntradayResult(str, Enum):
    TP_FIRST = "tp_first"
    SL_FIRST = "sl_first"
    AMBIGUOUS = "ambiguous"
    NONE = "none"
    NOT_REACHED = "not_reached"


class DelayedStatus(str, Enum):
    """Terminal state of the delayed-entry pipeline.

    Reporting partitions every statistic by these exact tags.
    """

    NOT_ASKED = "not_asked"
    NOT_USED = "not_used"
    NOT_EXECUTED = "not_executed"
    EXECUTED = "executed"


REASON_NO_DIRECTION = "no direction"
REASON_RISK_NOT_ELEVATED = "risk not elevated"
REASON_LOW_CONFIDENCE = "low confidence"
REASON_NO_TRIGGER = "no trigger"


class DelayedExecutionRecord(NamedTuple):
    """Outcome of one row through the delayed-entry pipeline.

    - asked: a direction existed, so a delayed entry was considered.
    - used: every gate passed and the fill scan ran.
    - entry_price: the executed price (the trigger level), None unless executed.
    """

    entry_utc: _dt.datetime
    status: DelayedStatus
    reason: str = ""
    asked: bool = False
    used: bool = False
    executed_at_utc: Optional[_dt.datetime] = None
    entry_price: Optional[float] = None
    trigger_price: Optional[float] = None
    tp_pct: float = 0.0
    sl_pct: float = 0.0
    intraday_result: IntradayResult = IntradayResult.NOT_REACHED

    @property
    def executed(self):
        return self.status == DelayedStatus.EXECUTED
