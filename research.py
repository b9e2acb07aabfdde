"""Research CLI entrypoint.

Usage
-----
python research.py split --rows rows.csv --cutoff 2024-06-28
python research.py delayed --rows rows.csv --minutes SPY=spy_1m.csv --hours SPY=spy_1h.csv --cutoff 2024-06-28

Every run writes into `<outdir>/<cmd>/<run_id>/`, starting with the resolved
`run_config.json`.
"""

import argparse
import datetime as _dt
import json
import logging
import os
import time

import pandas as pd

from causal.calendar import CalendarConfig, TradingCalendar
from causal.contracts import TrainCutoff
from causal.data_source import HistoricalCandleSource, load_continuation_predictions, load_daily_signals
from causal.delayed import DelayedEntryConfig, DelayedEntryEngine
from causal.metrics import summarize_results
from causal.report import ensure_dir, write_delayed_results_csv, write_json, write_records_csv
from causal.runner import run_delayed_batch
from causal.split import classify_entry

logger = logging.getLogger()


def _parse_kv_list(items):
    out = {}
    for it in items or []:
        if "=" not in it:
            raise ValueError("expected KEY=VALUE, got: %s" % it)
        k, v = it.split("=", 1)
        out[k.strip()] = v.strip()
    return out


def parse_cutoff(text):
    """A date means 'through that exit day'; anything else is an instant (naive = UTC)."""
    ts = pd.Timestamp(text)
    if len(text.strip()) == 10:
        return TrainCutoff.through_exit_day(ts.date())
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return TrainCutoff(ts.tz_convert("UTC").to_pydatetime())


def _calendar(args):
    return TradingCalendar(CalendarConfig(
        tz_name=args.tz,
        session_open_std_hour=args.open_std_hour,
        session_open_dst_hour=args.open_dst_hour,
        exit_buffer=_dt.timedelta(minutes=args.exit_buffer_minutes),
    ))


def run_split(args, out):
    calendar = _calendar(args)
    cutoff = parse_cutoff(args.cutoff)
    rows = []
    for s in load_daily_signals(args.rows):
        boundary = calendar.compute_exit_boundary(s.entry_utc)
        rows.append({
            "entry_utc": s.entry_utc,
            "exit_utc": boundary.exit_utc,
            "symbol": s.symbol,
            "classification": classify_entry(s.entry_utc, cutoff, calendar),
        })
    write_records_csv(os.path.join(out, "classification.csv"), rows)
    counts = {}
    for r in rows:
        counts[r["classification"].value] = counts.get(r["classification"].value, 0) + 1
    write_json(os.path.join(out, "summary.json"), {"cutoff": cutoff.value, "counts": counts})
    logger.info("split: %s", counts)


def run_delayed(args, out):
    calendar = _calendar(args)
    cutoff = parse_cutoff(args.cutoff)
    cfg = DelayedEntryConfig(
        dip_fraction=args.dip_fraction,
        max_delay_hours=args.max_delay_hours,
        base_tp_pct=args.tp_pct,
        base_sl_pct=args.sl_pct,
        tp_min_move_mult=args.tp_min_move_mult,
        confidence_threshold=args.confidence_threshold,
        feature_lookback_hours=args.feature_lookback_hours,
    )
    minutes = HistoricalCandleSource(_parse_kv_list(args.minutes), timeframe=_dt.timedelta(minutes=1))
    hours = HistoricalCandleSource(_parse_kv_list(args.hours), timeframe=_dt.timedelta(hours=1))
    model = load_continuation_predictions(args.rows)

    signals = load_daily_signals(args.rows)
    by_symbol = {}
    for s in signals:
        by_symbol.setdefault(s.symbol or args.symbol, []).append(s)

    results = []
    for symbol in sorted(by_symbol):
        engine = DelayedEntryEngine(calendar, minutes.series(symbol), hours.series(symbol), model, cfg)
        results.extend(run_delayed_batch(engine, by_symbol[symbol], cutoff, workers=args.workers))

    write_delayed_results_csv(os.path.join(out, "delayed_records.csv"), results)
    summary = summarize_results(results, cutoff, calendar)
    write_json(os.path.join(out, "summary.json"), summary)
    logger.info("delayed: train=%d oos=%d excluded=%d",
                summary["train"]["count"], summary["oos"]["count"], summary["excluded"]["count"])


def main():
    p = argparse.ArgumentParser(description="Causal daily-signal backtest tools")
    p.add_argument("--outdir", default="outputs")
    p.add_argument("--tz", default="America/New_York")
    p.add_argument("--open-std-hour", type=int, default=7,
                   help="Session open hour (local) while the zone is on standard time.")
    p.add_argument("--open-dst-hour", type=int, default=8,
                   help="Session open hour (local) while the zone is on daylight time.")
    p.add_argument("--exit-buffer-minutes", type=float, default=2.0,
                   help="Exit boundary = next session open minus this many minutes.")
    sub = p.add_subparsers(dest="cmd")

    sp = sub.add_parser("split", help="Classify rows as train / oos / excluded by exit boundary")
    sp.add_argument("--rows", required=True)
    sp.add_argument("--cutoff", required=True, help="YYYY-MM-DD (through that exit day) or an ISO instant (naive = UTC)")

    dp = sub.add_parser("delayed", help="Evaluate delayed (pullback) entries")
    dp.add_argument("--rows", required=True,
                    help="Daily rows incl. cont_decision/cont_probability columns.")
    dp.add_argument("--minutes", nargs="+", required=True, help="symbol=path for 1-minute candles")
    dp.add_argument("--hours", nargs="+", required=True, help="symbol=path for 1-hour candles")
    dp.add_argument("--cutoff", required=True, help="YYYY-MM-DD (through that exit day) or an ISO instant (naive = UTC)")
    dp.add_argument("--symbol", default="",
                    help="Symbol for rows without a symbol column.")
    dp.add_argument("--workers", type=int, default=1)
    dp.add_argument("--dip-fraction", type=float, default=0.005,
                    help="Pullback from the entry price before entering (e.g., 0.005 = 0.5%%).")
    dp.add_argument("--max-delay-hours", type=float, default=4.0)
    dp.add_argument("--tp-pct", type=float, default=0.010)
    dp.add_argument("--sl-pct", type=float, default=0.010)
    dp.add_argument("--tp-min-move-mult", type=float, default=1.2,
                    help="TP is widened to min_move * this when larger.")
    dp.add_argument("--confidence-threshold", type=float, default=0.70)
    dp.add_argument("--feature-lookback-hours", type=int, default=6)

    args = p.parse_args()
    if not args.cmd:
        p.print_help()
        return

    run_id = time.strftime("%Y%m%d_%H%M%S")
    out = os.path.join(args.outdir, args.cmd, run_id)
    ensure_dir(out)

    fmt = '%(asctime)s:%(filename)s:%(lineno)d:%(levelname)s:%(name)s:%(message)s'
    logging.basicConfig(level=logging.INFO, format=fmt)
    fh = logging.FileHandler(os.path.join(out, 'console.log'))
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter(fmt))
    logger.addHandler(fh)

    # Persist run config for reproducibility
    with open(os.path.join(out, "run_config.json"), "w") as f:
        json.dump(vars(args), f, indent=2, sort_keys=True)

    if args.cmd == "split":
        run_split(args, out)
    elif args.cmd == "delayed":
        run_delayed(args, out)


if __name__ == "__main__":
    main()
