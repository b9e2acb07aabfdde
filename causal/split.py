"""Train / out-of-sample / excluded classification by exit boundary.

A row entered on day D is only fully resolved at its exit boundary, so the
split keys off `exit_utc`, never `entry_utc`: a row whose window straddles the
cutoff belongs to OOS. Non-trading entries have no boundary and are Excluded.

Every aggregate (accuracy tables, confusion matrices, delayed-entry counts)
must classify through `classify_entry`; there is no second code path.
"""

from typing import Any, Callable, NamedTuple, Tuple

from .contracts import DataIntegrityError, EntryClassification, require_utc


def classify_entry(entry_utc, cutoff, calendar):
    boundary = calendar.compute_exit_boundary(entry_utc)
    if not boundary.is_defined:
        return EntryClassification.EXCLUDED
    if boundary.exit_utc <= cutoff.value:
        return EntryClassification.TRAIN
    return EntryClassification.OUT_OF_SAMPLE


def _default_entry_of(row):
    return row.entry_utc


class Split(NamedTuple):
    train: Tuple[Any, ...]
    out_of_sample: Tuple[Any, ...]
    excluded: Tuple[Any, ...]


def classify(rows, cutoff, calendar, entry_of: Callable = _default_entry_of) -> Split:
    """Partition rows; each bucket keeps the input order."""
    require_utc(cutoff.value, "train cutoff")
    buckets = {
        EntryClassification.TRAIN: [],
        EntryClassification.OUT_OF_SAMPLE: [],
        EntryClassification.EXCLUDED: [],
    }
    for row in rows:
        buckets[classify_entry(entry_of(row), cutoff, calendar)].append(row)
    return Split(
        train=tuple(buckets[EntryClassification.TRAIN]),
        out_of_sample=tuple(buckets[EntryClassification.OUT_OF_SAMPLE]),
        excluded=tuple(buckets[EntryClassification.EXCLUDED]),
    )


def split_ordered(rows, cutoff, calendar, entry_of: Callable = _default_entry_of) -> Split:
    """Like `classify` but the rows must be strictly ascending by entry instant."""
    rows = list(rows)
    prev = None
    for i, row in enumerate(rows):
        cur = require_utc(entry_of(row), "row[%d] entry_utc" % i)
        if prev is not None and cur <= prev:
            raise DataIntegrityError(
                "rows must be strictly ascending by entry_utc: i=%d prev=%s cur=%s"
                % (i, prev.isoformat(), cur.isoformat()))
        prev = cur
    return classify(rows, cutoff, calendar, entry_of=entry_of)


class TrainOnly(tuple):
    """Frozen train set that remembers the cutoff and tag it was split with.

    Only `split_strict` builds one, after verifying nothing was excluded.
    """

    def __new__(cls, items, cutoff, tag):
        self = super(TrainOnly, cls).__new__(cls, items)
        self.cutoff = cutoff
        self.tag = tag
        return self

    def __repr__(self):
        return "TrainOnly(%d items, cutoff=%s, tag=%r)" % (len(self), self.cutoff.value.isoformat(), self.tag)


class StrictSplit(NamedTuple):
    train: TrainOnly
    out_of_sample: Tuple[Any, ...]


def split_strict(rows, cutoff, calendar, tag, entry_of: Callable = _default_entry_of) -> StrictSplit:
    """Ordered split for model fitting; any excluded row is a data problem here."""
    if not tag:
        raise ValueError("tag must be non-empty")
    split = split_ordered(rows, cutoff, calendar, entry_of=entry_of)
    if split.excluded:
        sample = []
        for row in split.excluded[:10]:
            e = entry_of(row)
            sample.append("%s (local=%s)" % (e.isoformat(), calendar.to_local(e).isoformat()))
        raise DataIntegrityError(
            "[%s] %d rows have no exit boundary; cutoff=%s; sample=[%s]"
            % (tag, len(split.excluded), cutoff.value.isoformat(), ", ".join(sample)))
    return StrictSplit(train=TrainOnly(split.train, cutoff, tag), out_of_sample=split.out_of_sample)
