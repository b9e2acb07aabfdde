"""First-touch path resolution over a bounded candle window.

Only OHLC is known per candle, never the order of prices inside it. So when two
triggers fire in the same candle the outcome is AMBIGUOUS; the resolver never
guesses which came first.
"""

from typing import NamedTuple

from .contracts import OutcomeKind, PathOutcome, PriceTrigger, TriggerDirection


def _check_triggers(triggers):
    triggers = tuple(triggers)
    if not 1 <= len(triggers) <= 2:
        raise ValueError("expected 1 or 2 triggers, got %d" % len(triggers))
    for t in triggers:
        if not isinstance(t, PriceTrigger):
            raise ValueError("trigger must be a PriceTrigger, got %r" % (t,))
        if not t.level > 0.0:
            raise ValueError("trigger level must be positive, got %r" % (t.level,))
    return triggers


def resolve_in_window(window, triggers):
    """Scan an already-located CandleWindow once; earliest firing trigger wins."""
    triggers = _check_triggers(triggers)
    for candle in window:
        fired = [i for i, t in enumerate(triggers) if t.fired_by(candle)]
        if len(fired) == 1:
            return PathOutcome.first_trigger(fired[0], candle.open_time)
        if fired:
            return PathOutcome.ambiguous(candle.open_time)
    return PathOutcome.none()


def resolve_first_touch(series, from_utc, to_utc, triggers):
    """Which trigger fires first in `[from_utc, to_utc)` of `series`.

    Empty window -> NONE.
    """
    return resolve_in_window(series.window(from_utc, to_utc), triggers)


class PathLabel(NamedTuple):
    """Min-move first-pass label of a trading day.

    label: 2 = up level reached first, 0 = down level first, 1 = neither or
    both inside one candle.
    """

    label: int
    outcome: PathOutcome
    reached_up_pct: float
    reached_down_pct: float


def label_first_pass(series, entry_utc, exit_utc, entry_price, min_move):
    if entry_price <= 0.0:
        raise ValueError("entry_price must be > 0, got %r" % (entry_price,))
    if min_move <= 0.0:
        raise ValueError("min_move must be > 0, got %r" % (min_move,))

    window = series.window(entry_utc, exit_utc)
    if len(window) == 0:
        return PathLabel(1, PathOutcome.none(), 0.0, 0.0)

    up = PriceTrigger(entry_price * (1.0 + min_move), TriggerDirection.UPWARD_TOUCH)
    down = PriceTrigger(entry_price * (1.0 - min_move), TriggerDirection.DOWNWARD_TOUCH)
    outcome = resolve_in_window(window, (up, down))

    max_high = max(c.high for c in window)
    min_low = min(c.low for c in window)

    label = 1
    if outcome.kind == OutcomeKind.FIRST_TRIGGER:
        label = 2 if outcome.index == 0 else 0
    return PathLabel(
        label=label,
        outcome=outcome,
        reached_up_pct=max_high / entry_price - 1.0,
        reached_down_pct=min_low / entry_price - 1.0,
    )
