"""Batch evaluation over shared candle snapshots.

Sequencing
----------
1) Classify every row through `classify_entry` (exit-boundary split).
2) Rows classified EXCLUDED get no evaluation; their record is None.
3) All other rows go through `fn(row)`, serially or on a thread pool.

Output order always equals input order, and the result is identical for any
worker count. The first exception aborts the batch: pending work is cancelled
and the error propagates with the failing row logged.
"""

import concurrent.futures
import logging
from typing import Any, NamedTuple, Optional

from .contracts import EntryClassification
from .split import classify_entry

logger = logging.getLogger(__name__)


class RowResult(NamedTuple):
    row: Any
    classification: EntryClassification
    record: Optional[Any]


def evaluate_rows(rows, fn, workers=1):
    """Apply `fn` to every row; returns the results in input order."""
    rows = list(rows)
    if workers < 1:
        raise ValueError("workers must be >= 1, got %r" % (workers,))
    if workers == 1 or len(rows) < 2:
        out = []
        for i, row in enumerate(rows):
            try:
                out.append(fn(row))
            except Exception:
                logger.error("batch aborted at row %d: %r", i, row)
                raise
        return out

    out = [None] * len(rows)
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(fn, row) for row in rows]
        for i, fut in enumerate(futures):
            try:
                out[i] = fut.result()
            except Exception:
                logger.error("batch aborted at row %d: %r", i, rows[i])
                for pending in futures[i + 1:]:
                    pending.cancel()
                raise
    return out


def run_delayed_batch(engine, signals, cutoff, workers=1):
    """Classify and evaluate DailySignal rows with a DelayedEntryEngine.

    Returns a list of RowResult in input order.
    """
    signals = list(signals)
    calendar = engine.calendar
    classes = [classify_entry(s.entry_utc, cutoff, calendar) for s in signals]
    todo = [s for s, c in zip(signals, classes) if c != EntryClassification.EXCLUDED]

    logger.info("delayed batch start: %d rows (%d excluded) workers=%d",
                len(signals), len(signals) - len(todo), workers)
    records = iter(evaluate_rows(todo, engine.evaluate, workers=workers))

    results = []
    for s, c in zip(signals, classes):
        rec = None if c == EntryClassification.EXCLUDED else next(records)
        results.append(RowResult(s, c, rec))
    logger.info("delayed batch finished: %d rows", len(results))
    return results
