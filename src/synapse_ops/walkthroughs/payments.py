# src/synapse_ops/walkthroughs/payments.py
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List

from synapse_ops.config import load_settings
from synapse_ops.errors import OperationError, PreconditionError
from synapse_ops.structured_logging import log_event
from synapse_ops.units import (
    EPOCHS_PER_DAY,
    EPOCHS_PER_MONTH,
    MAX_UINT256,
    format_allowance,
    format_units,
    parse_units,
    truncate_address,
)
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.payments")

# Runway thresholds for the health check, in days.
RUNWAY_WARNING_DAYS = 7
RUNWAY_NOTICE_DAYS = 14


def runway_days(available_funds: int, lockup_rate: int) -> float:
    if lockup_rate <= 0:
        raise ValueError("lockup_rate must be positive")
    return (available_funds // lockup_rate) / EPOCHS_PER_DAY


def runway_status(days: float) -> str:
    if days < RUNWAY_WARNING_DAYS:
        return "warning"
    if days < RUNWAY_NOTICE_DAYS:
        return "notice"
    return "healthy"


def withdrawable(available_funds: int) -> int:
    """99.9% of available funds, leaving room for charges that land mid-transaction."""
    return (int(available_funds) * 999) // 1000


async def cmd_deposit(args: argparse.Namespace) -> int:
    settings = load_settings()
    client = await common.build_client(settings)
    print("✓ SDK initialized\n")

    wallet = await client.payments.wallet_balance()

    common.section("Step 1: Configure Deposit Parameters")
    amount = parse_units(args.amount)
    operator = client.warm_storage_address()
    print(f"Deposit Amount: {format_units(amount)} USDFC")
    print(f"Operator Address: {operator}")
    print(f"Rate Allowance: Unlimited ({MAX_UINT256})")
    print(f"Lockup Allowance: Unlimited ({MAX_UINT256})")
    print(f"Lockup Period: {EPOCHS_PER_MONTH} epochs (~{EPOCHS_PER_MONTH // EPOCHS_PER_DAY} days)\n")

    common.section("Step 2: Validate Balance")
    if wallet < amount:
        raise PreconditionError(
            "insufficient_wallet_balance",
            f"Insufficient balance. Required: {format_units(amount)} USDFC, Available: {format_units(wallet)} USDFC",
            hint="Get test USDFC from the Calibration faucet first.",
        )
    print("✓ Sufficient USDFC balance confirmed\n")

    common.section("Step 3: Deposit and Approve Operator")
    print("Submitting transaction...")
    try:
        receipt = await client.payments.deposit_and_approve(amount, operator, MAX_UINT256, MAX_UINT256, EPOCHS_PER_MONTH)
    except Exception as e:
        raise OperationError.wrap("deposit_failed", e) from e
    print(f"Transaction Hash: {receipt.tx_hash}")
    if receipt.block_number is not None:
        print(f"✓ Transaction confirmed in block {receipt.block_number}\n")
    log_event(log, "deposit_confirmed", tx_hash=receipt.tx_hash, amount=amount)

    common.section("Step 4: Verify Payment Account Balance")
    print(f"Payment Account Balance: {format_units(await client.payments.balance())} USDFC")
    print(f"Wallet Balance: {format_units(await client.payments.wallet_balance())} USDFC\n")

    common.section("Step 5: Check Operator Allowances")
    if args.settle_wait > 0:
        print(f"Waiting {args.settle_wait:g} seconds for network consistency...")
        await asyncio.sleep(args.settle_wait)
    approval = await client.payments.service_approval(operator)
    print(f"Rate Allowance: {format_allowance(approval.rate_allowance)}")
    print(f"Lockup Allowance: {format_allowance(approval.lockup_allowance)}")
    print("\n✅ Payment setup complete! Your account is ready for storage operations.")
    return 0


async def cmd_balances(args: argparse.Namespace) -> int:
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    wallet = await client.payments.wallet_balance()
    print("Wallet Balance:")
    print(f"  {format_units(wallet)} USDFC")
    print("  → Funds in your wallet (not yet deposited)\n")

    payment = await client.payments.balance()
    print("Payment Account Balance:")
    print(f"  {format_units(payment)} USDFC")
    print("  → Funds deposited for storage operations\n")

    print(f"Total USDFC: {format_units(wallet + payment)}\n")
    print("✅ Balance check complete!")
    return 0


async def cmd_health(args: argparse.Namespace) -> int:
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    info = await client.payments.account_info()
    print("Account Details:")
    print(f"  Total Funds: {format_units(info.funds)} USDFC")
    print(f"  Current Lockup: {format_units(info.lockup_current)} USDFC")
    print(f"  Lockup Rate: {format_units(info.lockup_rate)} USDFC/epoch")
    print(f"  Available Funds: {format_units(info.available_funds)} USDFC\n")

    if info.lockup_rate > 0:
        days = runway_days(info.available_funds, info.lockup_rate)
        print(f"  Days Remaining: ~{days:.1f} days")
        status = runway_status(days)
        if status == "warning":
            print("  ⚠️  WARNING: Low balance! Consider depositing more funds.\n")
        elif status == "notice":
            print("  ⚡ NOTICE: Balance getting low. Monitor closely.\n")
        else:
            print("  ✓ Balance is healthy\n")
    else:
        print("  → No active storage deals (lockup rate is 0)\n")

    print(f"  Last Settled At: Epoch {info.lockup_last_settled_at}\n")
    print("✅ Account health check complete!")
    return 0


async def cmd_approvals(args: argparse.Namespace) -> int:
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    operator = client.warm_storage_address()
    print(f"Warm Storage Operator: {operator}\n")
    approval = await client.payments.service_approval(operator)

    print("Approval Status:")
    print(f"  Approved: {'✓ Yes' if approval.is_approved else '✗ No'}")
    if not approval.is_approved:
        print("  ⚠️  Operator is not approved.")
        print("  → Run the payments deposit walkthrough first to approve the operator.\n")
        return 0

    print(f"  Rate Allowance: {format_allowance(approval.rate_allowance)}")
    print("    → Maximum the operator can charge per epoch")
    print(f"  Lockup Allowance: {format_allowance(approval.lockup_allowance)}")
    print("    → Maximum the operator can lock up")
    print(f"  Rate Usage: {format_units(approval.rate_usage)} USDFC/epoch")
    print(f"  Lockup Usage: {format_units(approval.lockup_usage)} USDFC")
    if approval.max_lockup_period:
        print(f"  Max Lockup Period: {approval.max_lockup_period} epochs")
    print()
    print("✅ Operator is approved and ready to use!")
    return 0


async def cmd_rails(args: argparse.Namespace) -> int:
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    try:
        rails = await client.payments.rails_as_payer()
    except Exception as e:
        # Informational command: report and finish.
        print("Could not retrieve payment rails.")
        print(f"  Error: {e}\n")
        log_event(log, "rails_lookup_failed", level=logging.WARNING, error=str(e))
        return 0

    if not rails:
        print("No active payment rails found.")
        print("  → Payment rails are created when you upload data")
        print("  → Complete the first_upload walkthrough to create rails\n")
        return 0

    print(f"Found {len(rails)} payment rail(s):\n")
    for rail in rails:
        print(f"Rail ID: {rail.rail_id}")
        print(f"  Status: {'✗ Terminated' if rail.is_terminated else '✓ Active'}")
        if rail.payer:
            print(f"  Payer: {truncate_address(rail.payer)}")
        if rail.payee:
            print(f"  Payee: {truncate_address(rail.payee)}")
        if rail.operator:
            print(f"  Operator: {truncate_address(rail.operator)}")
        if rail.payment_rate:
            print(f"  Payment Rate: {format_units(rail.payment_rate)} USDFC/epoch")
        if rail.lockup_period:
            print(f"  Lockup Period: {rail.lockup_period} epochs (~{rail.lockup_period / EPOCHS_PER_DAY:.1f} days)")
        if rail.settled_up_to is not None:
            print(f"  Settled Up To: Epoch {rail.settled_up_to}")
        if rail.end_epoch > 0:
            print(f"  Terminated At: Epoch {rail.end_epoch}")
        print()
    print("✅ Payment rails visualization complete!")
    return 0


async def cmd_withdraw(args: argparse.Namespace) -> int:
    client = await common.build_client(load_settings())
    print("✓ SDK initialized\n")

    wallet_before = await client.payments.wallet_balance()
    payment_before = await client.payments.balance()
    print("Current Balances:")
    print(f"  Wallet: {format_units(wallet_before)} USDFC")
    print(f"  Payment Account: {format_units(payment_before)} USDFC\n")

    info = await client.payments.account_info()
    print(f"Available to withdraw: {format_units(info.available_funds)} USDFC\n")

    if info.available_funds <= 0:
        print("No funds available to withdraw.")
        print("  → All funds are locked for active storage deals")
        print("  → Wait for deals to complete or deposit more funds\n")
        return 0

    amount = withdrawable(info.available_funds)
    print(f"Withdrawing {format_units(amount)} USDFC...")
    print("(Using 99.9% of available to avoid precision issues)\n")
    try:
        receipt = await client.payments.withdraw(amount)
    except Exception as e:
        print("Possible reasons:", file=sys.stderr)
        print("  • Funds became locked between check and withdrawal", file=sys.stderr)
        print("  • Insufficient gas (tFIL) in wallet", file=sys.stderr)
        print("  • Network congestion or RPC issues", file=sys.stderr)
        raise OperationError.wrap("withdraw_failed", e) from e

    print(f"Transaction Hash: {receipt.tx_hash}")
    if receipt.block_number is not None:
        print(f"✓ Withdrawal confirmed in block {receipt.block_number}\n")

    wallet_after = await client.payments.wallet_balance()
    payment_after = await client.payments.balance()
    print("Updated Balances:")
    print(f"  Wallet: {format_units(wallet_after)} USDFC (was {format_units(wallet_before)})")
    print(f"  Payment Account: {format_units(payment_after)} USDFC (was {format_units(payment_before)})\n")
    print(f"✅ Successfully withdrew {format_units(wallet_after - wallet_before)} USDFC to wallet!")
    log_event(log, "withdraw_confirmed", tx_hash=receipt.tx_hash, amount=amount)
    return 0


COMMANDS = {
    "deposit": cmd_deposit,
    "balances": cmd_balances,
    "health": cmd_health,
    "approvals": cmd_approvals,
    "rails": cmd_rails,
    "withdraw": cmd_withdraw,
}


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Payment account setup and inspection")
    sub = ap.add_subparsers(dest="command", required=True)

    dep = sub.add_parser("deposit", help="deposit USDFC and approve the storage operator")
    dep.add_argument("--amount", default="5.0", help="USDFC to deposit (default 5.0)")
    dep.add_argument("--settle-wait", dest="settle_wait", type=float, default=5.0, help="seconds to wait before reading allowances")

    sub.add_parser("balances", help="wallet and payment account balances")
    sub.add_parser("health", help="account lockup and days of runway")
    sub.add_parser("approvals", help="operator approval and allowances")
    sub.add_parser("rails", help="payment rails where this account pays")
    sub.add_parser("withdraw", help="withdraw 99.9%% of available funds")

    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    handler = COMMANDS[args.command]
    return common.run_main(lambda: handler(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
