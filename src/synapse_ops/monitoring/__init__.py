# src/synapse_ops/monitoring/__init__.py
"""Beam CDN monitoring: metrics collection, cost tracking, history and SLA reports (JSON files under the data dir)."""

from __future__ import annotations

METRICS_FILE = "metrics.json"
COSTS_FILE = "costs.json"
ALERTS_HISTORY_FILE = "alerts-history.json"

__all__ = ["ALERTS_HISTORY_FILE", "COSTS_FILE", "METRICS_FILE", "costs", "history", "metrics", "sla"]
