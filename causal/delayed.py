"""Delayed-entry decision engine.

On days the risk model flags as risky, instead of entering at the session
open we wait for a pullback of `dip_fraction` and enter there, provided the
continuation model confirms the move. Per row the pipeline is strict and
terminal at the first failing gate:

1) direction gate     -> NOT_ASKED    ("no direction")
2) risk gate          -> NOT_USED     ("risk not elevated")
3) confirmation gate  -> NOT_USED     ("low confidence")
4) trigger + deadline
5) fill scan          -> NOT_EXECUTED ("no trigger")
6) TP/SL first-touch  -> EXECUTED with TP_FIRST / SL_FIRST / AMBIGUOUS / NONE

Every scan is bounded by the row's exit boundary. The fill price is the
trigger level itself, not a candle price.
"""

import datetime as _dt

from .contracts import (
    DataIntegrityError,
    DelayedExecutionRecord,
    DelayedStatus,
    DirectionClass,
    IntradayResult,
    MicroSignal,
    OutcomeKind,
    PriceTrigger,
    REASON_LOW_CONFIDENCE,
    REASON_NO_DIRECTION,
    REASON_NO_TRIGGER,
    REASON_RISK_NOT_ELEVATED,
    TriggerDirection,
    require_utc,
)
from .features import build_continuation_features
from .paths import resolve_in_window

# volatility estimate fed to the confirmation features when upstream has none
DEFAULT_FEATURE_MIN_MOVE = 0.02


class DelayedEntryConfig(object):
    """Delayed-entry knobs. The defaults are empirical and kept as-is."""

    def __init__(
        self,
        dip_fraction=0.005,         # 0.5% pullback from the session-open price
        max_delay_hours=4.0,
        base_tp_pct=0.010,
        base_sl_pct=0.010,
        tp_min_move_mult=1.2,       # TP widened to min_move * mult, never narrowed
        confidence_threshold=0.70,
        feature_lookback_hours=6,
    ):
        self.dip_fraction = float(dip_fraction)
        self.max_delay_hours = float(max_delay_hours)
        self.base_tp_pct = float(base_tp_pct)
        self.base_sl_pct = float(base_sl_pct)
        self.tp_min_move_mult = float(tp_min_move_mult)
        self.confidence_threshold = float(confidence_threshold)
        self.feature_lookback_hours = int(feature_lookback_hours)

        if not 0.0 < self.dip_fraction < 1.0:
            raise ValueError("dip_fraction must be in (0, 1), got %r" % dip_fraction)
        if self.max_delay_hours <= 0.0:
            raise ValueError("max_delay_hours must be positive, got %r" % max_delay_hours)
        if self.base_tp_pct <= 0.0 or self.base_sl_pct <= 0.0:
            raise ValueError("base_tp_pct and base_sl_pct must be positive")


def wanted_direction(signal):
    """(want_long, want_short) from the primary class plus the FLAT tie-break."""
    flat = signal.direction == DirectionClass.FLAT
    want_long = signal.direction == DirectionClass.UP or (flat and signal.micro == MicroSignal.UP)
    want_short = signal.direction == DirectionClass.DOWN or (flat and signal.micro == MicroSignal.DOWN)
    return want_long, want_short


def effective_tp_sl(cfg, min_move):
    tp_pct = cfg.base_tp_pct
    if min_move > 0.0:
        tp_pct = max(tp_pct, min_move * cfg.tp_min_move_mult)
    return tp_pct, cfg.base_sl_pct


class DelayedEntryEngine(object):
    """Evaluates DailySignal rows of one symbol against shared candle snapshots.

    `minutes` and `hours` are CandleSeries of the same symbol; `model` is a
    ContinuationModel. The engine keeps no per-row state.
    """

    def __init__(self, calendar, minutes, hours, model, cfg=None):
        self.calendar = calendar
        self.minutes = minutes
        self.hours = hours
        self.model = model
        self.cfg = cfg or DelayedEntryConfig()

    def evaluate(self, signal):
        entry = require_utc(signal.entry_utc, "signal.entry_utc")
        if not signal.entry_price > 0.0:
            raise ValueError("entry_price must be positive at %s, got %r" % (entry.isoformat(), signal.entry_price))
        if signal.symbol and signal.symbol != self.minutes.symbol:
            raise ValueError("signal for %s evaluated against %s candles" % (signal.symbol, self.minutes.symbol))

        boundary = self.calendar.compute_exit_boundary(entry)
        if not boundary.is_defined:
            raise DataIntegrityError(
                "%s: entry %s has no exit boundary (non-trading day); excluded rows must not reach the engine"
                % (self.minutes.symbol, entry.isoformat()))

        want_long, want_short = wanted_direction(signal)
        if not want_long and not want_short:
            return DelayedExecutionRecord(entry, DelayedStatus.NOT_ASKED, REASON_NO_DIRECTION)

        if not signal.risk_high:
            return DelayedExecutionRecord(entry, DelayedStatus.NOT_USED, REASON_RISK_NOT_ELEVATED, asked=True)

        strong = signal.direction != DirectionClass.FLAT
        feature_min_move = signal.min_move if signal.min_move > 0.0 else DEFAULT_FEATURE_MIN_MOVE
        features = build_continuation_features(
            self.hours, entry, want_long, strong, feature_min_move,
            lookback_hours=self.cfg.feature_lookback_hours)
        pred = self.model.predict(entry, features)
        if not pred.decision or pred.probability < self.cfg.confidence_threshold:
            return DelayedExecutionRecord(entry, DelayedStatus.NOT_USED, REASON_LOW_CONFIDENCE, asked=True)

        return self._execute(signal, boundary.exit_utc, want_long)

    def _execute(self, signal, exit_utc, go_long):
        entry = signal.entry_utc
        self.minutes.require_coverage(entry, exit_utc)
        day = self.minutes.window(entry, exit_utc)

        if go_long:
            trigger = PriceTrigger(signal.entry_price * (1.0 - self.cfg.dip_fraction), TriggerDirection.DOWNWARD_TOUCH)
        else:
            trigger = PriceTrigger(signal.entry_price * (1.0 + self.cfg.dip_fraction), TriggerDirection.UPWARD_TOUCH)
        deadline = entry + _dt.timedelta(hours=self.cfg.max_delay_hours)

        fill = resolve_in_window(day.narrow_through(entry, deadline), [trigger])
        if fill.kind == OutcomeKind.NONE:
            return DelayedExecutionRecord(
                entry, DelayedStatus.NOT_EXECUTED, REASON_NO_TRIGGER,
                asked=True, used=True, trigger_price=trigger.level)

        fill_price = trigger.level
        tp_pct, sl_pct = effective_tp_sl(self.cfg, signal.min_move)
        if go_long:
            tp = PriceTrigger(fill_price * (1.0 + tp_pct), TriggerDirection.UPWARD_TOUCH)
            sl = PriceTrigger(fill_price * (1.0 - sl_pct), TriggerDirection.DOWNWARD_TOUCH)
        else:
            tp = PriceTrigger(fill_price * (1.0 - tp_pct), TriggerDirection.DOWNWARD_TOUCH)
            sl = PriceTrigger(fill_price * (1.0 + sl_pct), TriggerDirection.UPWARD_TOUCH)

        outcome = resolve_in_window(day.narrow(fill.time_utc, exit_utc), [tp, sl])
        if outcome.kind == OutcomeKind.AMBIGUOUS:
            result = IntradayResult.AMBIGUOUS
        elif outcome.kind == OutcomeKind.NONE:
            result = IntradayResult.NONE
        else:
            result = IntradayResult.TP_FIRST if outcome.index == 0 else IntradayResult.SL_FIRST

        return DelayedExecutionRecord(
            entry_utc=entry,
            status=DelayedStatus.EXECUTED,
            asked=True,
            used=True,
            executed_at_utc=fill.time_utc,
            entry_price=fill_price,
            trigger_price=trigger.level,
            tp_pct=tp_pct,
            sl_pct=sl_pct,
            intraday_result=result,
        )
