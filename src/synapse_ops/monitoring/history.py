# src/synapse_ops/monitoring/history.py
"""Historical views over locally recorded activity.

Sources are the metrics.json operations (one per CDN round trip), the quota
ledger's upload rows and the payment account's lockup rate. Nothing here
talks to the chain.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from synapse_ops.units import EPOCHS_PER_DAY

Json = Dict[str, Any]

HEALTHY_SUCCESS_RATE = 99.0
DEGRADED_SUCCESS_RATE = 95.0

UNKNOWN_PROVIDER = "unknown"
STATUS_ICONS = {"healthy": "🟢", "degraded": "🟡", "failing": "🔴"}

ACTIVITY_BAR_WIDTH = 20


@dataclass(frozen=True)
class ProviderScore:
    provider: str
    operations: int
    successful: int

    @property
    def success_rate(self) -> float:
        if self.operations == 0:
            return 0.0
        return self.successful * 100 / self.operations

    @property
    def status(self) -> str:
        rate = self.success_rate
        if rate >= HEALTHY_SUCCESS_RATE:
            return "healthy"
        if rate >= DEGRADED_SUCCESS_RATE:
            return "degraded"
        return "failing"


def provider_scorecard(operations: Sequence[Json]) -> List[ProviderScore]:
    """Success rate per provider, busiest first. Operations recorded without a provider group under 'unknown'."""
    totals: Dict[str, List[int]] = {}
    for op in operations:
        t = totals.setdefault(str(op.get("provider") or UNKNOWN_PROVIDER), [0, 0])
        t[0] += 1
        if op.get("success"):
            t[1] += 1
    scores = [ProviderScore(provider=p, operations=n, successful=ok) for p, (n, ok) in totals.items()]
    return sorted(scores, key=lambda s: (-s.operations, s.provider))


def pieces_per_day(operations: Sequence[Json]) -> Dict[str, int]:
    """Stored pieces per UTC day (YYYY-MM-DD) from metrics operations."""
    out: Dict[str, int] = {}
    for op in operations:
        ts = str(op.get("timestamp") or "")
        if not op.get("pieceCid") or len(ts) < 10:
            continue
        day = ts[:10]
        out[day] = out.get(day, 0) + 1
    return out


def merge_counts(*counts: Mapping[str, int]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for c in counts:
        for day, n in c.items():
            out[day] = out.get(day, 0) + int(n)
    return out


def daily_series(counts: Mapping[str, int], *, today: date, days: int = 7) -> List[Tuple[str, int]]:
    """The last `days` days ending today, oldest first, with missing days as zero."""
    if days <= 0:
        raise ValueError("days must be positive")
    start = today - timedelta(days=days - 1)
    series = []
    for i in range(days):
        day = (start + timedelta(days=i)).isoformat()
        series.append((day, int(counts.get(day, 0))))
    return series


def activity_bar(value: int, peak: int, width: int = ACTIVITY_BAR_WIDTH) -> str:
    if peak <= 0 or value <= 0:
        return ""
    return "█" * max(1, round(value / peak * width))


def daily_burn(lockup_rate: int) -> int:
    """Base units locked per day at the current lockup rate."""
    return int(lockup_rate) * EPOCHS_PER_DAY


def monthly_burn(lockup_rate: int) -> int:
    return daily_burn(lockup_rate) * 30


def sum_pieces(series: Iterable[Tuple[str, int]]) -> int:
    return sum(n for _, n in series)
