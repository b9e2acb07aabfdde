"""Reporting helpers.

Outputs are deterministic and human-reviewable (JSON/CSV).
"""

import enum
import json
import os
import datetime as _dt

import pandas as pd


def ensure_dir(path):
    if not os.path.exists(path):
        os.makedirs(path)


def _plain(v):
    if isinstance(v, enum.Enum):
        return v.value
    if isinstance(v, _dt.datetime):
        return v.isoformat()
    return v


def write_json(path, obj):
    with open(path, "w") as f:
        json.dump(obj, f, indent=2, sort_keys=True, default=_plain)


def record_row(record, prefix=""):
    """Flatten a NamedTuple record into a dict of plain values."""
    return {prefix + k: _plain(v) for k, v in record._asdict().items()}


def write_records_csv(path, rows):
    """Write records to CSV.

    `rows` can be dicts or NamedTuples.
    """
    out = []
    for r in rows:
        if isinstance(r, dict):
            out.append({k: _plain(v) for k, v in r.items()})
        else:
            out.append(record_row(r))
    df = pd.DataFrame(out)
    df.to_csv(path, index=False)


def write_delayed_results_csv(path, results):
    """One line per input row: signal, classification, and the delayed record (blank if excluded)."""
    out = []
    for res in results:
        row = record_row(res.row, prefix="signal_")
        row["classification"] = res.classification.value
        if res.record is not None:
            row.update(record_row(res.record))
        out.append(row)
    write_records_csv(path, out)
