# src/synapse_ops/walkthroughs/historical.py
"""Historical analysis over what this account has stored.

Data sets come from the chain; provider performance and daily activity come
from metrics.json and the quota ledger; burn rate and runway come from the
payment account.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List

from synapse_ops.config import Settings, load_settings
from synapse_ops.ledger import QuotaLedger
from synapse_ops.monitoring import METRICS_FILE
from synapse_ops.monitoring.history import (
    STATUS_ICONS,
    activity_bar,
    daily_burn,
    daily_series,
    merge_counts,
    monthly_burn,
    pieces_per_day,
    provider_scorecard,
    sum_pieces,
)
from synapse_ops.monitoring.metrics import MetricsStore
from synapse_ops.structured_logging import log_event
from synapse_ops.units import format_token
from synapse_ops.walkthroughs import common
from synapse_ops.walkthroughs.payments import runway_days, runway_status
from synapse_ops.walkthroughs.proof_monitoring import print_data_sets

log = logging.getLogger("synapse_ops.walkthroughs.historical")

DEFAULT_DAYS = 7


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def ledger_counts(db_path: Path, since: str) -> Dict[str, int]:
    # QuotaLedger.open creates the database; a missing file just means no uploads yet.
    if not db_path.exists():
        return {}
    return QuotaLedger.open(str(db_path)).uploads_per_day(since)


def collect_activity(settings: Settings, operations: List[dict], *, today: date, days: int) -> List[tuple]:
    since = daily_series({}, today=today, days=days)[0][0]
    counts = merge_counts(ledger_counts(Path(settings.db_path), since), pieces_per_day(operations))
    return daily_series(counts, today=today, days=days)


async def run(args: argparse.Namespace) -> int:
    print("Historical Analysis\n")
    settings = load_settings()
    data_dir = Path(args.data_dir or settings.data_dir)

    client = await common.build_client(settings)
    print("✓ SDK initialized\n")

    common.section("Step 1: Data Sets")
    try:
        data_sets = await client.data_sets()
    except Exception as e:
        print(f"Data set lookup failed: {e}\n")
        log_event(log, "data_sets_failed", level=logging.WARNING, error=str(e))
        data_sets = []
    else:
        if data_sets:
            print_data_sets(data_sets)
            total = sum(d.active_piece_count for d in data_sets)
            print(f"\n  {len(data_sets)} data set(s), {total} active piece(s)\n")
        else:
            print("No data sets yet.\n")

    common.section("Step 2: Provider Performance")
    operations = MetricsStore(data_dir / METRICS_FILE).load()["operations"]
    scores = provider_scorecard(operations)
    if not scores:
        print("No recorded operations. Run the beam collect command to gather metrics.\n")
    else:
        print("┌──────────────────────┬────────────┬──────────────┬──────────┐")
        print("│ Provider             │ Operations │ Success Rate │ Status   │")
        print("├──────────────────────┼────────────┼──────────────┼──────────┤")
        for s in scores:
            rate = f"{s.success_rate:.1f}%"
            print(f"│ {s.provider:<20} │ {s.operations:<10} │ {rate:<12} │ {STATUS_ICONS[s.status]} {s.status:<6} │")
        print("└──────────────────────┴────────────┴──────────────┴──────────┘\n")

    common.section(f"Step 3: Daily Activity (last {args.days} days)")
    series = collect_activity(settings, operations, today=utc_today(), days=args.days)
    peak = max(n for _, n in series)
    for day, n in series:
        print(f"  {day}  {n:>4}  {activity_bar(n, peak)}")
    print(f"\n  Total pieces stored: {sum_pieces(series)}\n")

    common.section("Step 4: Cost and Lockup")
    try:
        acct = await client.payments.account_info()
    except Exception as e:
        print(f"Account lookup failed: {e}\n")
        log_event(log, "account_info_failed", level=logging.WARNING, error=str(e))
    else:
        print(f"  Lockup Rate:  {format_token(acct.lockup_rate, 6)} USDFC/epoch")
        print(f"  Daily Burn:   {format_token(daily_burn(acct.lockup_rate), 6)} USDFC")
        print(f"  Monthly Burn: {format_token(monthly_burn(acct.lockup_rate), 6)} USDFC")
        print(f"  Locked:       {format_token(acct.lockup_current, 6)} USDFC")
        print(f"  Available:    {format_token(acct.available_funds, 6)} USDFC")
        if acct.lockup_rate > 0:
            days = runway_days(acct.available_funds, acct.lockup_rate)
            print(f"  Runway:       ~{days:.1f} days ({runway_status(days)})\n")
        else:
            print("  Runway:       no active storage deals\n")

    log_event(
        log,
        "historical_analysis",
        data_sets=len(data_sets),
        operations=len(operations),
        pieces=sum_pieces(series),
        days=args.days,
    )
    print("✅ Historical analysis complete!")
    return 0


def _positive_int(text: str) -> int:
    n = int(text)
    if n <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return n


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Data sets, provider scorecard, daily activity and burn rate")
    ap.add_argument("--days", type=_positive_int, default=DEFAULT_DAYS, help=f"days of activity to chart (default {DEFAULT_DAYS})")
    ap.add_argument("--data-dir", dest="data_dir", default=None, help="monitoring data directory (default SYNAPSE_OPS_DATA_DIR)")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
