"""Causal daily-signal backtest core.

calendar -> exit boundaries, paths -> first-touch resolution,
split -> train/OOS/excluded classification, delayed -> pullback entries.
"""

from .contracts import (
    Candle,
    ContinuationModel,
    ContinuationPrediction,
    DailySignal,
    DataIntegrityError,
    DelayedExecutionRecord,
    DelayedStatus,
    DirectionClass,
    EntryClassification,
    IntradayResult,
    MicroSignal,
    OutcomeKind,
    PathOutcome,
    PriceTrigger,
    TradingDayBoundary,
    TrainCutoff,
    TriggerDirection,
)
from .calendar import CalendarConfig, TradingCalendar
from .series import CandleSeries
from .paths import label_first_pass, resolve_first_touch
from .split import classify, classify_entry, split_ordered, split_strict
from .delayed import DelayedEntryConfig, DelayedEntryEngine
