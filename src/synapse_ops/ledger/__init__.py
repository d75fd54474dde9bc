# src/synapse_ops/ledger/__init__.py
"""Local quota ledger (SQLite): users, payments, uploads."""

from __future__ import annotations

from synapse_ops.ledger.quota import BYTES_PER_USD, QuotaLedger, QuotaStatus, User, quota_bytes_for_usd
from synapse_ops.ledger.sqlite_db import SqliteDB

__all__ = [
    "BYTES_PER_USD",
    "QuotaLedger",
    "QuotaStatus",
    "SqliteDB",
    "User",
    "quota_bytes_for_usd",
]
