# src/synapse_ops/walkthroughs/proof_monitoring.py
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Any, Dict, List, Optional, Sequence

from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.config import Settings, load_settings
from synapse_ops.json_store import write_json
from synapse_ops.sdk.client import DataSet, ServiceApproval
from synapse_ops.structured_logging import log_event
from synapse_ops.units import (
    format_allowance,
    format_bytes,
    format_token,
    format_units,
    truncate_address,
    whole_tokens_to_units,
)
from synapse_ops.walkthroughs import common
from synapse_ops.walkthroughs.payments import runway_days, runway_status

Json = Dict[str, Any]

log = logging.getLogger("synapse_ops.walkthroughs.proof_monitoring")

# Shown when the storage service does not report its limits.
KNOWN_MIN_PIECE = "127 bytes"
KNOWN_MAX_PIECE = "200 MiB"

RUNWAY_MESSAGES = {
    "warning": "🔴 CRITICAL: Less than 7 days of storage remaining!",
    "notice": "🟡 WARNING: Less than 14 days remaining. Monitor closely.",
    "healthy": "🟢 Healthy: Sufficient balance for continued storage.",
}

PROOF_SCHEDULE: Json = {
    "windowPoStPeriod": "24 hours",
    "deadlineWindow": "30 minutes",
    "pdpEnabled": True,
}


def overall_health(balance: int, settings: Settings) -> str:
    if balance < whole_tokens_to_units(settings.critical_balance_threshold):
        return "🔴 Critical - Fund immediately"
    if balance < whole_tokens_to_units(settings.low_balance_threshold):
        return "🟡 Low Balance"
    return "🟢 Healthy"


def fully_approved(approval: ServiceApproval) -> bool:
    return bool(approval.is_approved and approval.rate_allowance and approval.lockup_allowance)


def monitor_status(
    *,
    settings: Settings,
    network: str,
    warm_storage: str,
    balance: int,
    data_sets: Sequence[DataSet],
    now: Optional[float] = None,
) -> Json:
    """Dashboard status object. The account counts as healthy above the critical balance threshold."""
    holding = [d for d in data_sets if d.active_piece_count > 0]
    return {
        "timestamp": iso_timestamp(time.time() if now is None else now),
        "network": {"name": network, "rpc": settings.rpc_url},
        "contracts": {"warmStorage": warm_storage},
        "account": {
            "healthy": balance > whole_tokens_to_units(settings.critical_balance_threshold),
            "paymentBalance": format_token(balance),
        },
        "dataSets": {
            "total": len(data_sets),
            "withPieces": len(holding),
            "live": sum(1 for d in holding if d.is_live),
            "pieces": sum(d.active_piece_count for d in data_sets),
        },
        "proofSchedule": dict(PROOF_SCHEDULE),
    }


def print_data_sets(data_sets: Sequence[DataSet]) -> None:
    print("┌──────────┬──────────────────────┬────────┬────────┬──────────────┐")
    print("│ Data Set │ Provider             │ Pieces │ Live   │ PDP End      │")
    print("├──────────┼──────────────────────┼────────┼────────┼──────────────┤")
    for d in data_sets:
        provider = truncate_address(d.provider or str(d.provider_id or "?"), 8, 6)
        live = "✓ Yes" if d.is_live else "✗ No"
        end = str(d.pdp_end_epoch) if d.pdp_end_epoch else "-"
        print(f"│ {d.data_set_id:<8} │ {provider:<20} │ {d.active_piece_count:<6} │ {live:<6} │ {end:<12} │")
    print("└──────────┴──────────────────────┴────────┴────────┴──────────────┘")


async def run(args: argparse.Namespace) -> int:
    print("Real-Time Proof Monitoring Demo\n")
    print("Monitor your Filecoin storage proofs and provider status.\n")
    settings = load_settings()

    common.section("Step 1: SDK Initialization")
    client = await common.build_client(settings)
    print("✓ SDK initialized successfully")
    print(f"  Connected to: {client.network}\n")

    common.section("Step 2: Core Contract Addresses")
    warm_storage = client.warm_storage_address()
    print("Key Infrastructure Contracts:")
    print(f"  Warm Storage Operator: {warm_storage}")
    print("\nThis is the storage operator that manages uploads and proofs.\n")

    common.section("Step 3: Storage Service Parameters")
    try:
        info = await client.storage_info()
    except Exception as e:
        print(f"Storage info unavailable ({e}).")
        print("  Known constraints:")
        print(f"  Min Piece Size: {KNOWN_MIN_PIECE}")
        print(f"  Max Piece Size: {KNOWN_MAX_PIECE}\n")
        log_event(log, "storage_info_failed", level=logging.WARNING, error=str(e))
    else:
        print("Current Storage Service Configuration:")
        if info.price_per_tib_month is not None:
            print(f"  Price per TiB/month: {format_units(info.price_per_tib_month)} {info.token_symbol}")
        if info.price_per_tib_month_cdn is not None:
            print(f"  Price per TiB/month (CDN): {format_units(info.price_per_tib_month_cdn)} {info.token_symbol}")
        print(f"  Min Piece Size: {info.min_upload_size} bytes" if info.min_upload_size else f"  Min Piece Size: {KNOWN_MIN_PIECE}")
        print(f"  Max Piece Size: {format_bytes(info.max_upload_size)}" if info.max_upload_size else f"  Max Piece Size: {KNOWN_MAX_PIECE}")
        print(f"  Providers: {len(info.providers)} ({len(info.approved_provider_ids)} approved)\n")

    common.section("Step 4: Operator Approval Status")
    try:
        approval = await client.payments.service_approval(warm_storage)
    except Exception as e:
        print(f"Approval check failed: {e}\n")
        log_event(log, "approval_check_failed", level=logging.WARNING, error=str(e))
    else:
        print("Storage Operator Approval:")
        print(f"  Operator: {warm_storage}")
        print(f"  Approved: {'✓ Yes' if approval.is_approved else '✗ No'}")
        print(f"  Rate Allowance: {format_allowance(approval.rate_allowance)}")
        print(f"  Lockup Allowance: {format_allowance(approval.lockup_allowance)}")
        if fully_approved(approval):
            print("\n  ✓ Operator is fully approved for storage operations.\n")
        else:
            print("\n  ⚠️  WARNING: Operator is not fully approved.")
            print("  Storage operations will fail without proper approval.")
            print("  Re-run the payments deposit walkthrough to fix this.\n")

    common.section("Step 5: Payment Account Health")
    balance = 0
    try:
        balance = await client.payments.balance()
        wallet = await client.payments.wallet_balance()
        acct = await client.payments.account_info()
    except Exception as e:
        print(f"Account health check failed: {e}\n")
        log_event(log, "account_health_failed", level=logging.WARNING, error=str(e))
    else:
        print("Account Status:")
        print(f"  Wallet Balance (USDFC):  {format_units(wallet)} USDFC")
        print(f"  Payment Account (USDFC): {format_units(balance)} USDFC\n")
        print("Payment Account Details:")
        print(f"  Total Funds:     {format_units(acct.funds)} USDFC")
        print(f"  Current Lockup:  {format_units(acct.lockup_current)} USDFC")
        print(f"  Lockup Rate:     {format_units(acct.lockup_rate)} USDFC/epoch")
        print(f"  Available Funds: {format_units(acct.available_funds)} USDFC")
        print(f"  Last Settled:    Epoch {acct.lockup_last_settled_at}")
        if acct.funded_until_epoch:
            print(f"  Funded Until:    Epoch {acct.funded_until_epoch}")
        print()
        if acct.lockup_rate > 0:
            days = runway_days(acct.available_funds, acct.lockup_rate)
            print(f"  📊 Estimated Days Remaining: ~{days:.1f} days")
            print(f"  {RUNWAY_MESSAGES[runway_status(days)]}")
        else:
            print("  → No active storage deals (lockup rate is 0)")
        print(f"\n  Overall Health: {overall_health(balance, settings)}\n")

    common.section("Step 6: Data Set Proof Status")
    data_sets: List[DataSet] = []
    try:
        data_sets = await client.data_sets()
    except Exception as e:
        print(f"Data set lookup failed: {e}\n")
        log_event(log, "data_sets_failed", level=logging.WARNING, error=str(e))
    else:
        if not data_sets:
            print("No data sets yet. Upload data to start proving.\n")
        else:
            print_data_sets(data_sets)
            not_live = [d.data_set_id for d in data_sets if d.active_piece_count > 0 and not d.is_live]
            if not_live:
                print(f"\n  ⚠️  Data sets no longer proving: {', '.join(str(i) for i in not_live)}\n")
            else:
                print("\n  ✓ Every data set holding pieces is live.\n")

    common.section("Step 7: Monitor Status Object")
    status = monitor_status(
        settings=settings,
        network=client.network,
        warm_storage=warm_storage,
        balance=balance,
        data_sets=data_sets,
    )
    print("Status Object (JSON):")
    print(json.dumps(status, indent=2, ensure_ascii=False))
    print()
    if args.status_file:
        write_json(args.status_file, status)
        print(f"Status written to {args.status_file}\n")

    log_event(
        log,
        "proof_monitor_status",
        healthy=status["account"]["healthy"],
        data_sets=status["dataSets"]["total"],
        live=status["dataSets"]["live"],
    )
    print("✅ Proof Monitoring Complete!")
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Operator approval, account runway and data set proof status")
    ap.add_argument("--status-file", dest="status_file", default=None, help="also write the status object to this JSON file")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
