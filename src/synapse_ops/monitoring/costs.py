# src/synapse_ops/monitoring/costs.py
"""Beam CDN cost tracking (data/costs.json).

Each run appends a payment-account balance snapshot; spending is the balance
drop between the first and the latest snapshot.
"""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.json_store import read_json, write_json
from synapse_ops.units import to_decimal

Json = Dict[str, Any]

SECONDS_PER_DAY = 24 * 60 * 60


def empty_costs() -> Json:
    return {"snapshots": [], "analysis": {}}


def _parse_ts(ts: str) -> datetime:
    return datetime.fromisoformat(str(ts).replace("Z", "+00:00"))


def make_snapshot(balance: int, *, now: Optional[float] = None) -> Json:
    return {
        "timestamp": iso_timestamp(time.time() if now is None else now),
        "balance": float(to_decimal(balance)),
        "balanceRaw": str(int(balance)),
    }


def analyze_costs(snapshots: Sequence[Json], metrics: Optional[Json] = None, *, now: Optional[float] = None) -> Json:
    ts = iso_timestamp(time.time() if now is None else now)
    if len(snapshots) < 2:
        return {
            "totalSpent": 0,
            "costPerGB": 0,
            "dailySpendingRate": 0,
            "monthlyProjection": 0,
            "daysCovered": 0,
            "lastUpdated": ts,
        }

    first, last = snapshots[0], snapshots[-1]
    total_spent = float(first["balance"]) - float(last["balance"])

    cost_per_gb = 0.0
    egress = float(((metrics or {}).get("summary") or {}).get("totalEgressGB") or 0)
    if egress > 0:
        cost_per_gb = total_spent / egress

    days = (_parse_ts(last["timestamp"]) - _parse_ts(first["timestamp"])).total_seconds() / SECONDS_PER_DAY
    daily = total_spent / days if days > 0 else 0.0

    return {
        "totalSpent": total_spent,
        "costPerGB": cost_per_gb,
        "dailySpendingRate": daily,
        "monthlyProjection": daily * 30,
        "daysCovered": days,
        "lastUpdated": ts,
    }


def budget_warnings(analysis: Json, *, daily_threshold: float, monthly_threshold: float) -> List[str]:
    out: List[str] = []
    daily = float(analysis.get("dailySpendingRate") or 0)
    monthly = float(analysis.get("monthlyProjection") or 0)
    if daily > daily_threshold:
        out.append(f"Daily spending rate ({daily:.6f} USDFC) exceeds threshold ({daily_threshold:g} USDFC)")
    if monthly > monthly_threshold:
        out.append(f"Monthly projection ({monthly:.6f} USDFC) exceeds threshold ({monthly_threshold:g} USDFC)")
    return out


class CostStore:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Json:
        doc = read_json(self.path, empty_costs)
        if not isinstance(doc, dict) or not isinstance(doc.get("snapshots"), list):
            return empty_costs()
        return doc

    def record(self, snapshot: Json, metrics: Optional[Json] = None, *, now: Optional[float] = None) -> Json:
        doc = self.load()
        snaps: List[Json] = list(doc["snapshots"])
        snaps.append(snapshot)
        doc["snapshots"] = snaps
        doc["analysis"] = analyze_costs(snaps, metrics, now=now)
        write_json(self.path, doc)
        return doc
