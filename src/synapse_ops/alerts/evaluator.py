# src/synapse_ops/alerts/evaluator.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from synapse_ops.alerts.rules import BalanceBelow, Direction, MetricThreshold, OperatorNotApproved, Rule, Severity
from synapse_ops.sdk.client import SynapseClient
from synapse_ops.structured_logging import log_event
from synapse_ops.units import format_token, format_units

Json = Dict[str, Any]

log = logging.getLogger("synapse_ops.alerts")


def iso_timestamp(ts: float) -> str:
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Alert:
    id: str
    name: str
    severity: Severity
    message: str
    timestamp: str
    category: Optional[str] = None

    def to_json(self) -> Json:
        out: Json = {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.category is not None:
            out["category"] = self.category
            out["type"] = self.severity.value.upper()
        return out


@dataclass
class AlertContext:
    """Inputs the rules are checked against. Missing pieces make dependent rules fail or stay quiet."""

    balance: Optional[int] = None
    client: Optional[SynapseClient] = None
    metrics: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleOutcome:
    rule: Rule
    alert: Optional[Alert] = None
    error: Optional[str] = None

    @property
    def triggered(self) -> bool:
        return self.alert is not None


# Each check returns the rendered message when the rule fires, else None.
Check = Callable[[Any, AlertContext], Awaitable[Optional[str]]]


async def _check_balance(rule: BalanceBelow, ctx: AlertContext) -> Optional[str]:
    if ctx.balance is None:
        raise ValueError("balance unavailable")
    bal = int(ctx.balance)
    if bal >= rule.threshold:
        return None
    if rule.floor is not None and bal < rule.floor:
        return None
    return rule.template.format(balance=format_token(bal), threshold=format_units(rule.threshold))


async def _check_operator(rule: OperatorNotApproved, ctx: AlertContext) -> Optional[str]:
    if ctx.client is None:
        raise ValueError("sdk client unavailable")
    operator = ctx.client.warm_storage_address()
    approval = await ctx.client.payments.service_approval(operator)
    if approval.is_approved:
        return None
    return rule.template.format(operator=operator)


async def _check_metric(rule: MetricThreshold, ctx: AlertContext) -> Optional[str]:
    raw = ctx.metrics.get(rule.metric)
    if raw is None:
        return None
    value = float(raw)
    if rule.direction is Direction.ABOVE:
        fired = value > rule.limit and (rule.bound is None or value <= rule.bound)
    else:
        fired = value < rule.limit and (rule.bound is None or value >= rule.bound)
    if not fired:
        return None
    return rule.template.format(value=value, limit=rule.limit)


_CHECKS: Dict[type, Check] = {
    BalanceBelow: _check_balance,
    OperatorNotApproved: _check_operator,
    MetricThreshold: _check_metric,
}


async def check_rules(
    rules: Sequence[Rule],
    ctx: AlertContext,
    *,
    clock: Callable[[], float] = time.time,
) -> List[RuleOutcome]:
    """Check every rule in order. A failing check is logged and recorded, never raised."""
    out: List[RuleOutcome] = []
    for rule in rules:
        check = _CHECKS.get(type(rule))
        if check is None:
            raise TypeError(f"unknown rule kind: {type(rule).__name__}")
        try:
            message = await check(rule, ctx)
        except Exception as e:
            log_event(log, "alert_rule_failed", level=logging.WARNING, rule_id=rule.id, error=str(e))
            out.append(RuleOutcome(rule=rule, error=str(e) or e.__class__.__name__))
            continue

        if message is None:
            out.append(RuleOutcome(rule=rule))
            continue

        alert = Alert(
            id=rule.id,
            name=rule.name,
            severity=rule.severity,
            message=message,
            timestamp=iso_timestamp(clock()),
            category=getattr(rule, "category", None),
        )
        log_event(log, "alert_triggered", rule_id=rule.id, severity=rule.severity.value)
        out.append(RuleOutcome(rule=rule, alert=alert))
    return out


async def evaluate_rules(
    rules: Sequence[Rule],
    ctx: AlertContext,
    *,
    clock: Callable[[], float] = time.time,
) -> List[Alert]:
    outcomes = await check_rules(rules, ctx, clock=clock)
    return [o.alert for o in outcomes if o.alert is not None]
