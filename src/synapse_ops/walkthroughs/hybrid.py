# src/synapse_ops/walkthroughs/hybrid.py
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.config import load_settings
from synapse_ops.errors import PreconditionError
from synapse_ops.payments.routing import AccountProfile, PaymentDecision, PaymentPath, evaluate_payment_path
from synapse_ops.sdk.client import SynapseClient
from synapse_ops.structured_logging import log_event
from synapse_ops.units import GIB, MIB, format_bytes, format_token
from synapse_ops.walkthroughs import common

log = logging.getLogger("synapse_ops.walkthroughs.hybrid")


def demo_users() -> Dict[str, AccountProfile]:
    return {
        "alice": AccountProfile("alice@example.com", "free", 200 * MIB, 500 * MIB, wallet_connected=False),
        "bob": AccountProfile("bob@example.com", "free", 490 * MIB, 500 * MIB, wallet_connected=True),
        "carol": AccountProfile("carol@example.com", "pro", 10 * GIB, 50 * GIB, wallet_connected=True),
    }


DEMO_SCENARIOS: List[Tuple[str, int]] = [
    ("alice", 50 * MIB),
    ("bob", 20 * MIB),
    ("carol", 100 * MIB),
]


def demo_payload(user_id: str, size: int, *, payer: str) -> bytes:
    # Simulated content; the size is only recorded. Kept above the 127 byte minimum.
    lines = [
        f"{'Sponsored' if payer == 'treasury' else 'Premium'} content for {user_id}",
        f"Size: {size} bytes (simulated)",
        "Sponsored by application treasury" if payer == "treasury" else "Paid by user wallet",
        f"Timestamp: {iso_timestamp(time.time())}",
        "Minimum upload size is 127 bytes.",
    ]
    return "\n".join(lines).encode("utf-8")


class HybridDemo:
    """Routes each upload to the treasury or the user wallet via evaluate_payment_path."""

    def __init__(self, treasury: SynapseClient, user_wallet: SynapseClient, users: Dict[str, AccountProfile]) -> None:
        self.treasury = treasury
        self.user_wallet = user_wallet
        self.users = users

    async def process_upload(self, user_id: str, size: int) -> Optional[PaymentDecision]:
        print(f"=== Processing Upload for {user_id} ===\n")
        user = self.users.get(user_id)
        if user is None:
            print("User not found.")
            log_event(log, "payment_path_unknown_user", level=logging.WARNING, user=user_id)
            return None
        print(f"User: {user.email}")
        print(f"Tier: {user.tier}")
        print(f"Storage: {format_bytes(user.storage_used)} / {format_bytes(user.storage_limit)}")
        print(f"Upload Size: {format_bytes(size)}")

        decision = evaluate_payment_path(user, size)
        print(f"\nDecision: {decision.path.value}")
        print(f"Reason: {decision.reason}\n")
        log_event(log, "payment_path", user=user_id, path=decision.path.value, size=size)

        if decision.path is PaymentPath.SPONSORED:
            await self._sponsored(user_id, size)
        elif decision.path is PaymentPath.USER_PAID:
            await self._user_paid(user_id, size)
        else:
            self._blocked(decision)
        return decision

    async def _sponsored(self, user_id: str, size: int) -> None:
        print("Executing SPONSORED upload (Treasury pays)...")
        try:
            res = await self.treasury.upload(demo_payload(user_id, size, payer="treasury"))
        except Exception as e:
            print(f"Sponsored upload failed: {e}", file=sys.stderr)
            log_event(log, "sponsored_upload_failed", level=logging.WARNING, user=user_id, error=str(e))
            return
        print("Upload successful (Treasury sponsored)")
        print(f"PieceCID: {res.piece_cid}")
        print("Payer: Treasury")
        self._add_usage(user_id, size)

    async def _user_paid(self, user_id: str, size: int) -> None:
        print("Executing USER_PAID upload (User pays)...")
        balance = await self.user_wallet.payments.balance()
        if balance == 0:
            print("User has no funds in payment account.")
            print("In production, prompt user to fund their account.")
            return
        try:
            res = await self.user_wallet.upload(demo_payload(user_id, size, payer="user"))
        except Exception as e:
            print(f"User-paid upload failed: {e}", file=sys.stderr)
            log_event(log, "user_paid_upload_failed", level=logging.WARNING, user=user_id, error=str(e))
            return
        print("Upload successful (User paid)")
        print(f"PieceCID: {res.piece_cid}")
        print("Payer: User Wallet")
        self._add_usage(user_id, size)

    @staticmethod
    def _blocked(decision: PaymentDecision) -> None:
        print("Upload BLOCKED")
        print(f"Reason: {decision.reason}\n")
        print("User action required:")
        print("  1. Connect a wallet with USDFC")
        print("  2. Fund their payment account")
        print("  3. Upgrade to Pro tier for higher limits")

    def _add_usage(self, user_id: str, size: int) -> None:
        u = self.users[user_id]
        self.users[user_id] = replace(u, storage_used=u.storage_used + int(size))
        print(f"Updated usage: {format_bytes(self.users[user_id].storage_used)}")


async def run(args: argparse.Namespace) -> int:
    print("Hybrid Payment Architecture Demo\n")
    print("Free tier users get sponsored. Power users pay directly.\n")

    settings = load_settings()
    treasury = await common.build_client(settings)
    # Demo uses the same key; in production the user wallet comes from a browser connection.
    user_wallet = await common.build_client(settings)

    common.section("System Initialization")
    balance = await treasury.payments.balance()
    print(f"Treasury Balance: {format_token(balance)} USDFC")
    if balance == 0:
        raise PreconditionError("treasury_empty", "Treasury empty - free tier unavailable.", hint="Fund the treasury payment account.")

    approval = await treasury.payments.service_approval(treasury.warm_storage_address())
    if not approval.is_approved or not approval.rate_allowance:
        raise PreconditionError.operator_not_approved()
    print("Treasury operator approved.\n")

    demo = HybridDemo(treasury, user_wallet, demo_users())
    for i, (user_id, size) in enumerate(DEMO_SCENARIOS):
        if i:
            print("\n" + "=" * 60 + "\n")
        await demo.process_upload(user_id, size)
    return 0


def _parse_args(argv: List[str]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Hybrid payment routing: treasury-sponsored vs user-paid uploads")
    return ap.parse_args(argv)


def main(argv: List[str]) -> int:
    args = _parse_args(argv)
    return common.run_main(lambda: run(args))


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
