"""
Leakage guards.

Mutating any candle that opens at or after a row's exit boundary must not
change its classification, path outcome, label or features. Checked against
the candle covering the boundary, the whole post-boundary tail, and a series
the row never consumes.
"""

import datetime as _dt

import pytest

from causal.contracts import DailySignal, DirectionClass, TrainCutoff
from causal.delayed import DelayedEntryEngine
from causal.features import build_continuation_features
from causal.paths import label_first_pass
from causal.split import classify_entry

from conftest import HOUR, MINUTE, FixedModel, build_series, utc

ENTRY = utc(2024, 3, 4, 12)
EXIT = utc(2024, 3, 5, 11, 58)
WILD = (100, 150, 50, 100)

SCENARIOS = {
    "tp": {utc(2024, 3, 4, 12, 30): (100, 100, 99.4, 99.6), utc(2024, 3, 4, 14): (100, 100.6, 100, 100.5)},
    "sl": {utc(2024, 3, 4, 12, 30): (100, 100, 99.4, 99.6), utc(2024, 3, 5, 11, 57): (99, 99, 98.4, 98.5)},
    "none": {utc(2024, 3, 4, 12, 30): (100, 100, 99.4, 99.6)},
    "no_trigger": {},
}


def minutes_with(overrides, tail=()):
    merged = dict(overrides)
    for t in tail:
        merged[t] = WILD
    return build_series(ENTRY, 24 * 60, MINUTE, overrides=merged)


def tail_times(start, end, step):
    t = start
    while t < end:
        yield t
        t += step


def evaluate_all(calendar, minutes, hours):
    eng = DelayedEntryEngine(calendar, minutes, hours, FixedModel())
    sig = DailySignal(ENTRY, 100.0, DirectionClass.UP, risk_high=True, symbol="SPY")
    return (
        eng.evaluate(sig),
        label_first_pass(minutes, ENTRY, EXIT, 100.0, 0.01),
        build_continuation_features(hours, ENTRY, True, True, 0.02),
        classify_entry(ENTRY, TrainCutoff(EXIT), calendar),
    )


@pytest.mark.parametrize("name", sorted(SCENARIOS))
class TestPostBoundaryMutation:
    """Results for the Monday row are identical whatever happens after Tuesday 11:58Z."""

    def test_boundary_candle(self, calendar, day_hours, name):
        base = evaluate_all(calendar, minutes_with(SCENARIOS[name]), day_hours())
        mutated = minutes_with(SCENARIOS[name], tail=[EXIT])
        assert evaluate_all(calendar, mutated, day_hours()) == base

    def test_whole_tail(self, calendar, day_hours, name):
        base = evaluate_all(calendar, minutes_with(SCENARIOS[name]), day_hours())
        mutated = minutes_with(SCENARIOS[name], tail=tail_times(EXIT, utc(2024, 3, 5, 12), MINUTE))
        wild_hours = day_hours(overrides={t: WILD for t in tail_times(ENTRY, utc(2024, 3, 6), HOUR)})
        assert evaluate_all(calendar, mutated, wild_hours) == base

    def test_unrelated_series(self, calendar, day_hours, name):
        store = {
            "SPY": minutes_with(SCENARIOS[name]),
            "QQQ": build_series(ENTRY, 24 * 60, MINUTE, symbol="QQQ"),
        }
        base = evaluate_all(calendar, store["SPY"], day_hours())
        store["QQQ"] = build_series(ENTRY, 24 * 60, MINUTE, price=50.0, symbol="QQQ",
                                    overrides={t: WILD for t in tail_times(ENTRY, EXIT, MINUTE)})
        assert evaluate_all(calendar, store["SPY"], day_hours()) == base


class TestPreBoundaryControl:
    """Sanity check that the guard tests can fail: a change inside the window shows up."""

    def test_mutation_inside_window_changes_outcome(self, calendar, day_hours):
        base = evaluate_all(calendar, minutes_with(SCENARIOS["none"]), day_hours())
        inside = minutes_with(SCENARIOS["none"], tail=[EXIT - MINUTE])
        assert evaluate_all(calendar, inside, day_hours())[0] != base[0]

    def test_hour_before_entry_changes_features(self, calendar, day_hours):
        base = evaluate_all(calendar, minutes_with({}), day_hours())
        moved = day_hours(overrides={ENTRY - HOUR: (100, 101, 99, 100.5)})
        assert evaluate_all(calendar, minutes_with({}), moved)[2] != base[2]


def test_exit_boundary_is_tuesday_before_open(calendar):
    assert calendar.compute_exit_boundary(ENTRY).exit_utc == EXIT
    assert EXIT - ENTRY < _dt.timedelta(days=1)
