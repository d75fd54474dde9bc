# src/synapse_ops/payments/routing.py
"""Who pays for an upload: the application treasury, the user, or nobody.

Pure decision logic. The hybrid walkthrough feeds it demo accounts and
dispatches on the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PAID_TIERS = frozenset({"pro", "enterprise"})


class PaymentPath(str, Enum):
    SPONSORED = "SPONSORED"
    USER_PAID = "USER_PAID"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class AccountProfile:
    email: str
    tier: str
    storage_used: int
    storage_limit: int
    wallet_connected: bool

    @property
    def remaining(self) -> int:
        return self.storage_limit - self.storage_used


@dataclass(frozen=True)
class PaymentDecision:
    path: PaymentPath
    reason: str


def evaluate_payment_path(account: AccountProfile, requested_size: int) -> PaymentDecision:
    # Rule order is significant: paid tiers win even with free quota left.
    if str(account.tier).lower() in PAID_TIERS:
        return PaymentDecision(PaymentPath.USER_PAID, "Pro/Enterprise tier - user pays for all storage")

    if int(requested_size) <= account.remaining:
        return PaymentDecision(PaymentPath.SPONSORED, "Within free tier quota - treasury sponsors")

    if account.wallet_connected:
        return PaymentDecision(PaymentPath.USER_PAID, "Over free quota - user wallet available for payment")

    return PaymentDecision(PaymentPath.BLOCKED, "Over free quota and no wallet connected - upgrade required")
