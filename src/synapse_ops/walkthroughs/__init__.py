# src/synapse_ops/walkthroughs/__init__.py
"""One-shot CLI walkthroughs.

Each module exposes main(argv) -> int and is runnable with
`python -m synapse_ops.walkthroughs.<name>`.
"""

from __future__ import annotations

__all__ = [
    "alert_system",
    "beam",
    "datasets",
    "download_verify",
    "first_upload",
    "historical",
    "hybrid",
    "payment_tracking",
    "payments",
    "proof_monitoring",
    "streaming",
]
