# src/synapse_ops/walkthroughs/payment_tracking.py
from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List

from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.config import load_settings
from synapse_ops.errors import OperationError, PreconditionError
from synapse_ops.ledger import BYTES_PER_USD, QuotaLedger, User, quota_bytes_for_usd
from synapse_ops.structured_logging import log_event
from synapse_ops.units import format_bytes, format_token
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.payment_tracking")

DEMO_ADDRESS = "0x" + "a" * 40


def demo_tx_hash(now_ms: int) -> str:
    return f"0x{now_ms:x}abc123"


def user_payload(user: User) -> bytes:
    return (
        f"User data from {user.address}\n"
        f"Chain: {user.chain}\n"
        f"Timestamp: {iso_timestamp(time.time())}\n"
        "This data is stored on Filecoin via multi-chain architecture.\n"
        f"User paid on {user.chain.capitalize()}, storage happens on Filecoin.\n"
        "Minimum upload size is 127 bytes - this exceeds that requirement."
    ).encode("utf-8")


def _print_quota(ledger: QuotaLedger, user_id: int, title: str) -> None:
    q = ledger.get_quota(user_id)
    if q is None:
        raise LookupError(f"user {user_id} disappeared from the ledger")
    print(title)
    print(f"  Total Quota: {format_bytes(q.quota_bytes)}")
    print(f"  Used: {format_bytes(q.used_bytes)}")
    print(f"  Remaining: {format_bytes(q.remaining_bytes)}\n")


async def run(args: argparse.Namespace) -> int:
    print("Payment Tracking and Quota Management Demo\n")
    settings = load_settings()

    common.section("Step 1: Database Initialization")
    ledger = QuotaLedger.open(args.db_path or settings.db_path)
    print(f"SQLite database initialized: {ledger.db.path}")
    print("Tables: users, payments, uploads\n")

    common.section("Step 2: SDK Initialization")
    client = await common.build_client(settings)
    balance = await common.require_funded(client)
    print(f"Backend ready. Payment account: {format_token(balance)} USDFC\n")
    approval = await client.payments.service_approval(client.warm_storage_address())
    if not approval.is_approved:
        raise PreconditionError.operator_not_approved()

    common.section("Step 3: Simulate User Registration")
    existing = ledger.get_user(args.address)
    user = existing or ledger.ensure_user(args.address, args.chain, args.email)
    print("Existing user found:" if existing else "New user registered:")
    print(f"  Address: {user.address}")
    print(f"  Chain: {user.chain}")
    print(f"  Email: {user.email}")
    print(f"  Quota: {format_bytes(user.quota_bytes)}")
    print(f"  Used: {format_bytes(user.used_bytes)}\n")

    common.section("Step 4: Simulate L2 Payment")
    tx_hash = args.tx_hash or demo_tx_hash(int(time.time() * 1000))
    granted = quota_bytes_for_usd(args.amount)
    print(f"Payment received on {user.chain.capitalize()}:")
    print(f"  TX Hash: {tx_hash}")
    print(f"  Amount: ${args.amount:.2f} USD")
    print(f"  Quota Granted: {format_bytes(granted)}")
    # Payments are not verified on-chain in this demo.
    if ledger.grant_quota(user.id, args.amount, tx_hash, user.chain):
        print("Payment recorded in database.\n")
    else:
        print("Payment already processed (duplicate tx_hash).\n")
    _print_quota(ledger, user.id, "Updated user quota:")

    common.section("Step 5: Quota Enforcement")
    data = user_payload(user)
    print(f"Requested upload size: {format_bytes(len(data))}")
    if not ledger.reserve_upload(user.id, len(data)):
        q = ledger.get_quota(user.id)
        remaining = q.remaining_bytes if q is not None else 0
        print("\nUpload BLOCKED: Insufficient quota.")
        raise PreconditionError.insufficient_quota(len(data), remaining)
    print("Quota check PASSED. Quota reserved; proceeding with upload.\n")

    common.section("Step 6: Upload with Quota Deduction")
    print("Uploading to Filecoin...")
    try:
        result = await client.upload(data)
    except Exception as e:
        ledger.release_reservation(user.id, len(data))
        raise OperationError.wrap("upload_failed", e) from e
    ledger.commit_upload(user.id, result.piece_cid, len(data), result.size)
    print("Upload successful.")
    print(f"PieceCID: {result.piece_cid}")
    print(f"Size: {result.size} bytes")
    print("Upload recorded. Quota updated.\n")
    log_event(log, "tracked_upload", user_id=user.id, piece_cid=result.piece_cid, size=result.size)

    common.section("Step 7: Post-Upload Status")
    _print_quota(ledger, user.id, "Updated quota status:")
    uploads = ledger.user_uploads(user.id)
    print(f"User upload history ({len(uploads)} uploads):")
    for i, up in enumerate(uploads[:5], start=1):
        print(f"  {i}. {str(up['piece_cid'])[:30]}... ({format_bytes(int(up['size_bytes']))})")

    print("\n=== Summary ===\n")
    print(f"- User registered on: {user.chain}")
    print(f"- Payment processed: ${args.amount:.2f} USD")
    print(f"- Rate: $1 USD = {format_bytes(BYTES_PER_USD)}")
    print("- Upload completed: Yes")
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Track L2 payments as storage quota and enforce it on upload")
    ap.add_argument("--db", dest="db_path", default="", help="ledger SQLite path (default SYNAPSE_OPS_DB_PATH)")
    ap.add_argument("--address", default=DEMO_ADDRESS)
    ap.add_argument("--chain", default="base")
    ap.add_argument("--email", default="alice@example.com")
    ap.add_argument("--amount", type=float, default=5.0, help="payment in USD")
    ap.add_argument("--tx-hash", dest="tx_hash", default="", help="payment tx hash (default: generated)")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
