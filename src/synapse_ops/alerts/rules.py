# src/synapse_ops/alerts/rules.py
"""Alert rule kinds.

Each rule is a frozen dataclass carrying its parameters and a message
template. The evaluator matches on the rule type; rules never hold callables.

Templates are str.format strings. Available fields:
  BalanceBelow:         balance, threshold (display strings, USDFC)
  OperatorNotApproved:  operator
  MetricThreshold:      value, limit (floats)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from synapse_ops.alerts.config import AlertThresholds, ThresholdPair
from synapse_ops.config import Settings
from synapse_ops.units import whole_tokens_to_units


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Direction(str, Enum):
    ABOVE = "above"
    BELOW = "below"


@dataclass(frozen=True)
class BalanceBelow:
    """Fires when floor <= balance < threshold (floor None means no lower bound). Base units."""

    id: str
    name: str
    severity: Severity
    threshold: int
    template: str
    floor: Optional[int] = None


@dataclass(frozen=True)
class OperatorNotApproved:
    id: str
    name: str
    severity: Severity
    template: str = "Storage operator is not approved. Storage operations will fail."


@dataclass(frozen=True)
class MetricThreshold:
    """Fires when metric is strictly beyond limit in the given direction.

    bound, when set, is the next-severity limit: a value beyond it belongs to
    the stricter rule, so this one stays quiet.
    """

    id: str
    name: str
    severity: Severity
    category: str
    metric: str
    limit: float
    direction: Direction
    template: str
    bound: Optional[float] = None


Rule = Union[BalanceBelow, OperatorNotApproved, MetricThreshold]


def default_rules(settings: Settings) -> List[Rule]:
    """Balance and operator rules used by the alert_system walkthrough."""
    low = whole_tokens_to_units(settings.low_balance_threshold)
    critical = whole_tokens_to_units(settings.critical_balance_threshold)
    return [
        BalanceBelow(
            id="low_balance",
            name="Low Balance Warning",
            severity=Severity.WARNING,
            threshold=low,
            floor=critical,
            template="Balance is low: {balance} USDFC",
        ),
        BalanceBelow(
            id="critical_balance",
            name="Critical Balance Alert",
            severity=Severity.CRITICAL,
            threshold=critical,
            template="CRITICAL: Balance below {threshold} USDFC! Current: {balance} USDFC",
        ),
        OperatorNotApproved(
            id="operator_not_approved",
            name="Operator Not Approved",
            severity=Severity.ERROR,
        ),
    ]


def _pair_rules(
    *,
    prefix: str,
    label: str,
    category: str,
    metric: str,
    pair: ThresholdPair,
    direction: Direction,
    warning_template: str,
    critical_template: str,
) -> List[Rule]:
    out: List[Rule] = [
        MetricThreshold(
            id=f"{prefix}_critical",
            name=f"{label} Critical",
            severity=Severity.CRITICAL,
            category=category,
            metric=metric,
            limit=float(pair.critical),
            direction=direction,
            template=critical_template,
        )
    ]
    if pair.warning is not None:
        out.append(
            MetricThreshold(
                id=f"{prefix}_warning",
                name=f"{label} Warning",
                severity=Severity.WARNING,
                category=category,
                metric=metric,
                limit=float(pair.warning),
                direction=direction,
                template=warning_template,
                bound=float(pair.critical),
            )
        )
    return out


def threshold_rules(config: AlertThresholds) -> List[Rule]:
    """Beam CDN rules: egress, daily cost, TTFB and success rate.

    Metric keys: egress_gb, daily_cost, avg_ttfb_ms, success_rate.
    """
    rules: List[Rule] = []
    rules += _pair_rules(
        prefix="egress_daily",
        label="Daily Egress",
        category="Egress",
        metric="egress_gb",
        pair=config.egress.daily,
        direction=Direction.ABOVE,
        warning_template="Daily egress ({value:.4f} GB) exceeds warning threshold ({limit:g} GB)",
        critical_template="Daily egress ({value:.4f} GB) exceeds critical threshold ({limit:g} GB)",
    )
    rules += _pair_rules(
        prefix="cost_daily",
        label="Daily Cost",
        category="Cost",
        metric="daily_cost",
        pair=config.cost.daily,
        direction=Direction.ABOVE,
        warning_template="Daily cost ({value:.6f} USDFC) exceeds warning threshold ({limit:g} USDFC)",
        critical_template="Daily cost ({value:.6f} USDFC) exceeds critical threshold ({limit:g} USDFC)",
    )
    rules += _pair_rules(
        prefix="ttfb",
        label="Average TTFB",
        category="Performance",
        metric="avg_ttfb_ms",
        pair=config.performance.ttfb,
        direction=Direction.ABOVE,
        warning_template="Average TTFB ({value:.2f}ms) exceeds warning threshold ({limit:g}ms)",
        critical_template="Average TTFB ({value:.2f}ms) exceeds critical threshold ({limit:g}ms)",
    )
    rules += _pair_rules(
        prefix="success_rate",
        label="Success Rate",
        category="Performance",
        metric="success_rate",
        pair=config.performance.success_rate,
        direction=Direction.BELOW,
        warning_template="Success rate ({value:.2f}%) below warning threshold ({limit:g}%)",
        critical_template="Success rate ({value:.2f}%) below critical threshold ({limit:g}%)",
    )
    return rules
