# src/synapse_ops/payments/__init__.py
from __future__ import annotations

from synapse_ops.payments.routing import AccountProfile, PaymentDecision, PaymentPath, evaluate_payment_path

__all__ = ["AccountProfile", "PaymentDecision", "PaymentPath", "evaluate_payment_path"]
