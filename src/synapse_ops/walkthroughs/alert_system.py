# src/synapse_ops/walkthroughs/alert_system.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from synapse_ops.alerts import (
    AlertContext,
    AlertDispatcher,
    AlertHistory,
    Severity,
    check_rules,
    default_rules,
    load_alert_config,
)
from synapse_ops.alerts.sinks import SEVERITY_ICONS
from synapse_ops.config import Settings, load_settings
from synapse_ops.monitoring import METRICS_FILE
from synapse_ops.monitoring.metrics import MetricsStore
from synapse_ops.monitoring.sla import breached, format_sla_table, sla_report
from synapse_ops.structured_logging import log_event
from synapse_ops.units import format_token
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.alert_system")


def _mark(enabled: bool) -> str:
    return "✓" if enabled else "✗"


def print_channels(settings: Settings) -> None:
    print("Configured Alert Channels:")
    print("  ✓ Console: Always enabled")
    webhook = bool(settings.webhook_url)
    email = settings.smtp.enabled
    print(f"  {_mark(webhook)} Webhook: {'Configured' if webhook else 'Not configured'}")
    print(f"  {_mark(email)} Email: {'Configured' if email else 'Not configured'}\n")
    if not webhook:
        print("  To enable webhooks, set WEBHOOK_URL (e.g. a https://webhook.site URL).")
    if not email:
        print("  To enable email, set SMTP_HOST/SMTP_USER/SMTP_PASS and ALERT_EMAIL.")
    print()


async def run(args: argparse.Namespace) -> int:
    print("Alert System Demo\n")
    settings = load_settings()

    common.section("Step 1: SDK Initialization")
    client = await common.build_client(settings)
    print("Connected to Calibration testnet.\n")

    common.section("Step 2: Alert Channel Configuration")
    print_channels(settings)

    common.section("Step 3: Alert Rules")
    rules = default_rules(settings)
    print("Active Alert Rules:")
    for rule in rules:
        print(f"  {SEVERITY_ICONS[rule.severity]} {rule.name} ({rule.severity.value})")
    print("\nThresholds:")
    print(f"  Low balance: < {settings.low_balance_threshold:g} USDFC")
    print(f"  Critical: < {settings.critical_balance_threshold:g} USDFC\n")

    common.section("Step 4: Checking Alert Conditions")
    balance = await client.payments.balance()
    print(f"Current balance: {format_token(balance)} USDFC\n")

    outcomes = await check_rules(rules, AlertContext(balance=balance, client=client))
    for o in outcomes:
        if o.error is not None:
            print(f"?  {o.rule.name}: Check failed ({o.error})")
        elif o.alert is not None:
            print(f"⚠️  ALERT: {o.rule.name}")
            print(f"   {o.alert.message}\n")
        else:
            print(f"✓  {o.rule.name}: OK")
    print()

    alerts = [o.alert for o in outcomes if o.alert is not None]

    common.section("Step 5: Notifications")
    if not alerts:
        print("No alerts triggered. Notifications not needed.\n")
    else:
        dispatcher = AlertDispatcher.from_settings(settings, AlertHistory(settings.alert_cooldown_s))
        report = dispatcher.dispatch(alerts)
        for a in alerts:
            if a.id in report.suppressed:
                print(f"  ⏭️  {a.name}: Skipped (recently sent)")
                continue
            print(f"  → {a.name}: delivered via {', '.join(report.sinks_for(a.id)) or 'nothing'}")
        for alert_id, sink, err in report.failures:
            print(f"  ✗ {alert_id}: {sink} failed ({err})", file=sys.stderr)

        critical = sum(1 for a in alerts if a.severity is Severity.CRITICAL)
        log_event(log, "alert_run_complete", fired=len(alerts), critical=critical, failures=len(report.failures))
        print()

    common.section("Step 6: Provider SLA Monitoring")
    operations = MetricsStore(Path(args.data_dir or settings.data_dir) / METRICS_FILE).load()["operations"]
    try:
        data_sets = await client.data_sets()
    except Exception as e:
        print(f"Data set lookup failed ({e}); proof success has no data.\n")
        log_event(log, "data_sets_failed", level=logging.WARNING, error=str(e))
        data_sets = []
    report_rows = sla_report(operations, data_sets, load_alert_config(settings.alert_config_path).sla)
    for line in format_sla_table(report_rows):
        print(line)
    failing = breached(report_rows)
    if failing:
        print("\n⚠️  SLA BREACH DETECTED - Notify operations team")
        for m in failing:
            print(f"   {m.name}: {m.current:.1f}% (target {m.target:g}%)")
    else:
        print("\n✓ All SLA metrics within targets")
    log_event(
        log,
        "sla_checked",
        level=logging.WARNING if failing else logging.INFO,
        breached=[m.name for m in failing],
        operations=len(operations),
        data_sets=len(data_sets),
    )
    print()
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Evaluate balance/operator alert rules, notify configured channels and report provider SLAs")
    ap.add_argument("--data-dir", dest="data_dir", default=None, help="monitoring data directory (default SYNAPSE_OPS_DATA_DIR)")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
