# src/synapse_ops/walkthroughs/beam.py
"""Beam CDN monitoring pipeline.

  collect  one CDN upload/download cycle appended to metrics.json
  costs    payment-account balance snapshot appended to costs.json
  alerts   threshold rules over both files, fired alerts to alerts-history.json
  all      collect, costs, alerts in sequence
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from synapse_ops.alerts import (
    Alert,
    AlertContext,
    AlertDispatcher,
    AlertHistory,
    AlertLog,
    evaluate_rules,
    load_alert_config,
    threshold_rules,
)
from synapse_ops.config import Settings, load_settings
from synapse_ops.monitoring import ALERTS_HISTORY_FILE, COSTS_FILE, METRICS_FILE
from synapse_ops.monitoring.costs import CostStore, budget_warnings, make_snapshot
from synapse_ops.monitoring.metrics import TEST_FILE_SIZE, MetricsStore, collect_cycle, metric_values
from synapse_ops.sdk.client import SynapseClient
from synapse_ops.structured_logging import log_event
from synapse_ops.units import format_bytes, format_token
from synapse_ops.walkthroughs import common

Json = Dict[str, Any]

log = logging.getLogger("synapse_ops.walkthroughs.beam")


def _data_dir(settings: Settings, args: argparse.Namespace) -> Path:
    p = Path(args.data_dir or settings.data_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def print_summary(summary: Json) -> None:
    print("Summary:")
    print(f"  Total Operations: {summary.get('totalOperations', 0)}")
    print(f"  Success Rate: {float(summary.get('successRate') or 0):.2f}%")
    print(f"  Avg TTFB: {float(summary.get('avgTTFB') or 0):.2f}ms")
    print(f"  Avg Throughput: {float(summary.get('avgThroughput') or 0):.2f} MB/s")
    print(f"  Total Egress: {float(summary.get('totalEgressGB') or 0):.4f} GB")


async def collect(client: SynapseClient, data_dir: Path, *, size: int) -> Json:
    common.section("Beam Metrics Collection")
    await common.require_funded(client)
    print(f"Running upload/download cycle ({format_bytes(size)}, CDN enabled)...")

    op = await collect_cycle(client, size=size)
    if op["success"]:
        print(f"✓ Cycle complete. PieceCID: {op['pieceCid']}")
        print(f"  TTFB: {op['ttfb']:.2f}ms  Throughput: {op['throughput']:.2f} MB/s")
    else:
        print(f"✗ Cycle failed: {op.get('error') or 'downloaded bytes did not match'}", file=sys.stderr)

    doc = MetricsStore(data_dir / METRICS_FILE).record(op)
    print(f"Metrics saved to {data_dir / METRICS_FILE}\n")
    print_summary(doc["summary"])
    print()
    log_event(log, "beam_collect", success=bool(op["success"]), ttfb_ms=op["ttfb"])
    return doc


async def track_costs(settings: Settings, client: SynapseClient, data_dir: Path) -> Json:
    common.section("Beam Cost Tracking")
    balance = await client.payments.balance()
    print(f"Payment account balance: {format_token(balance)} USDFC")

    metrics = MetricsStore(data_dir / METRICS_FILE).load()
    doc = CostStore(data_dir / COSTS_FILE).record(make_snapshot(balance), metrics)
    analysis = doc["analysis"]
    print(f"Snapshots: {len(doc['snapshots'])}")
    if len(doc["snapshots"]) < 2:
        print("Need at least 2 snapshots to analyze spending.\n")
    else:
        print("Cost Analysis:")
        print(f"  Total Spent: {analysis['totalSpent']:.6f} USDFC")
        print(f"  Cost per GB: {analysis['costPerGB']:.6f} USDFC")
        print(f"  Daily Rate: {analysis['dailySpendingRate']:.6f} USDFC/day")
        print(f"  Monthly Projection: {analysis['monthlyProjection']:.6f} USDFC")
        print(f"  Period: {analysis['daysCovered']:.2f} days\n")

    warnings = budget_warnings(
        analysis,
        daily_threshold=settings.cost_threshold_day,
        monthly_threshold=settings.cost_threshold_month,
    )
    for w in warnings:
        print(f"⚠️  BUDGET WARNING: {w}")
    if warnings:
        print()
    log_event(log, "beam_costs", snapshots=len(doc["snapshots"]), budget_warnings=len(warnings))
    return doc


async def check_alerts(
    settings: Settings,
    data_dir: Path,
    *,
    dispatcher: Optional[AlertDispatcher] = None,
) -> List[Alert]:
    common.section("Beam Alert Check")
    metrics = MetricsStore(data_dir / METRICS_FILE).load()
    if not metrics.get("summary"):
        print("No metrics available. Run `beam collect` first.\n")
        return []

    costs = CostStore(data_dir / COSTS_FILE).load()
    rules = threshold_rules(load_alert_config(settings.alert_config_path))
    alerts = await evaluate_rules(rules, AlertContext(metrics=metric_values(metrics, costs)))

    if not alerts:
        print("✓ All metrics within thresholds.\n")
        log_event(log, "beam_alerts", fired=0)
        return alerts

    print(f"{len(alerts)} alert(s) triggered:\n")
    dispatcher = dispatcher or AlertDispatcher.from_settings(settings, AlertHistory(settings.alert_cooldown_s))
    report = dispatcher.dispatch(alerts)
    for alert_id, sink, err in report.failures:
        print(f"  ✗ {alert_id}: {sink} failed ({err})", file=sys.stderr)

    AlertLog(data_dir / ALERTS_HISTORY_FILE).append(alerts)
    print(f"\nAlerts saved to {data_dir / ALERTS_HISTORY_FILE}\n")
    log_event(log, "beam_alerts", fired=len(alerts), suppressed=len(report.suppressed))
    return alerts


async def cmd_collect(args: argparse.Namespace) -> int:
    settings = load_settings()
    client = await common.build_client(settings)
    await collect(client, _data_dir(settings, args), size=args.size)
    return 0


async def cmd_costs(args: argparse.Namespace) -> int:
    settings = load_settings()
    client = await common.build_client(settings)
    await track_costs(settings, client, _data_dir(settings, args))
    return 0


async def cmd_alerts(args: argparse.Namespace) -> int:
    settings = load_settings()
    await check_alerts(settings, _data_dir(settings, args))
    return 0


async def cmd_all(args: argparse.Namespace) -> int:
    settings = load_settings()
    data_dir = _data_dir(settings, args)
    client = await common.build_client(settings)

    common.banner("Beam CDN Monitoring")
    await collect(client, data_dir, size=args.size)
    await track_costs(settings, client, data_dir)
    await check_alerts(settings, data_dir)
    print("Monitoring cycle complete. Start the dashboard with `synapse-dashboard`.")
    return 0


COMMANDS = {
    "collect": cmd_collect,
    "costs": cmd_costs,
    "alerts": cmd_alerts,
    "all": cmd_all,
}


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Beam CDN metrics, cost tracking and threshold alerts")
    ap.add_argument("--data-dir", dest="data_dir", default="", help="monitoring JSON directory (default SYNAPSE_OPS_DATA_DIR)")
    sub = ap.add_subparsers(dest="command", required=True)

    col = sub.add_parser("collect", help="run one CDN upload/download cycle")
    col.add_argument("--size", type=int, default=TEST_FILE_SIZE, help="test payload bytes (default 1 MiB)")
    sub.add_parser("costs", help="snapshot the payment account balance and analyze spending")
    sub.add_parser("alerts", help="check metrics and costs against alert-config.json")
    full = sub.add_parser("all", help="collect, costs and alerts in sequence")
    full.add_argument("--size", type=int, default=TEST_FILE_SIZE, help="test payload bytes (default 1 MiB)")

    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    handler = COMMANDS[args.command]
    return common.run_main(lambda: handler(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
