"""Aggregate statistics for delayed-entry results.

Every statistic is partitioned by EntryClassification and by the exact
terminal tags (DelayedStatus, IntradayResult). The classification always
comes from `classify_entry`, so a table can never disagree with the split.
"""

from collections import Counter

from .contracts import DelayedStatus, EntryClassification, IntradayResult
from .split import classify_entry


def tp_hit_rate(records):
    """TP_FIRST share of executed rows whose outcome is TP_FIRST or SL_FIRST."""
    resolved = [r for r in records
                if r.executed and r.intraday_result in (IntradayResult.TP_FIRST, IntradayResult.SL_FIRST)]
    if not resolved:
        return 0.0
    wins = sum(1 for r in resolved if r.intraday_result == IntradayResult.TP_FIRST)
    return wins / float(len(resolved))


def _block(records):
    status = Counter(r.status.value for r in records)
    intraday = Counter(r.intraday_result.value for r in records if r.executed)
    reasons = Counter(r.reason for r in records if r.reason)
    return {
        "count": len(records),
        "asked": sum(1 for r in records if r.asked),
        "used": sum(1 for r in records if r.used),
        "status": {s.value: status.get(s.value, 0) for s in DelayedStatus},
        "intraday": {x.value: intraday.get(x.value, 0) for x in IntradayResult if x != IntradayResult.NOT_REACHED},
        "reasons": dict(sorted(reasons.items())),
        "tp_hit_rate": tp_hit_rate(records),
    }


def summarize(records, cutoff, calendar):
    """Summary dict keyed by classification ("train", "oos", "excluded").

    `records` are DelayedExecutionRecord; the excluded block only counts rows,
    since excluded rows are never evaluated.
    """
    groups = {c: [] for c in EntryClassification}
    for r in records:
        groups[classify_entry(r.entry_utc, cutoff, calendar)].append(r)

    out = {}
    for c in (EntryClassification.TRAIN, EntryClassification.OUT_OF_SAMPLE):
        out[c.value] = _block(groups[c])
    out[EntryClassification.EXCLUDED.value] = {"count": len(groups[EntryClassification.EXCLUDED])}
    return out


def summarize_results(results, cutoff, calendar):
    """Like `summarize` but over runner RowResults, counting excluded rows too."""
    out = summarize([r.record for r in results if r.record is not None], cutoff, calendar)
    out[EntryClassification.EXCLUDED.value]["count"] += sum(1 for r in results if r.record is None)
    return out
