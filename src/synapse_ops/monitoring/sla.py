# src/synapse_ops/monitoring/sla.py
"""Provider SLA compliance report.

Uptime is the success rate of recorded CDN round trips. Proof success is the
share of piece-holding data sets the PDP verifier still reports live. A metric
with nothing to measure is reported as "No data" and never breaches.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from synapse_ops.alerts.config import SlaTargets
from synapse_ops.sdk.client import DataSet

Json = Dict[str, Any]


@dataclass(frozen=True)
class SlaMetric:
    name: str
    target: float
    current: Optional[float]

    @property
    def compliant(self) -> bool:
        return self.current is None or self.current >= self.target

    @property
    def status(self) -> str:
        if self.current is None:
            return "– No data"
        return "✓ Compliant" if self.compliant else "✗ BREACH"


def uptime_percent(operations: Sequence[Json]) -> Optional[float]:
    if not operations:
        return None
    ok = sum(1 for op in operations if op.get("success"))
    return ok * 100 / len(operations)


def proof_success_percent(data_sets: Sequence[DataSet]) -> Optional[float]:
    holding = [d for d in data_sets if d.active_piece_count > 0]
    if not holding:
        return None
    return sum(1 for d in holding if d.is_live) * 100 / len(holding)


def sla_report(operations: Sequence[Json], data_sets: Sequence[DataSet], targets: SlaTargets) -> List[SlaMetric]:
    return [
        SlaMetric("Uptime", targets.uptime, uptime_percent(operations)),
        SlaMetric("Proof Success Rate", targets.proof_success, proof_success_percent(data_sets)),
    ]


def breached(report: Sequence[SlaMetric]) -> List[SlaMetric]:
    return [m for m in report if not m.compliant]


def _pct(v: Optional[float]) -> str:
    return "n/a" if v is None else f"{v:.1f}%"


def format_sla_table(report: Sequence[SlaMetric]) -> List[str]:
    lines = [
        "┌─────────────────────────────────────────────────────────────────┐",
        "│ Metric                │ Target    │ Current   │ Status         │",
        "├─────────────────────────────────────────────────────────────────┤",
    ]
    for m in report:
        lines.append(f"│ {m.name:<21} │ {_pct(m.target):<9} │ {_pct(m.current):<9} │ {m.status:<14} │")
    lines.append("└─────────────────────────────────────────────────────────────────┘")
    return lines
