# src/synapse_ops/sdk/__init__.py
"""Synapse SDK boundary: protocol, result types and the live adapter.

The live adapter imports pynapse lazily so the ledger, routing and alerting
modules work without the SDK installed.
"""

from __future__ import annotations

from synapse_ops.sdk.client import (
    AccountInfo,
    PaymentsApi,
    Rail,
    ServiceApproval,
    StorageContext,
    StorageInfo,
    SynapseClient,
    TxReceipt,
    UploadResult,
)
from synapse_ops.sdk.pynapse_adapter import PynapseClient, connect

__all__ = [
    "AccountInfo",
    "PaymentsApi",
    "PynapseClient",
    "Rail",
    "ServiceApproval",
    "StorageContext",
    "StorageInfo",
    "SynapseClient",
    "TxReceipt",
    "UploadResult",
    "connect",
]
