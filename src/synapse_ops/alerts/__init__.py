# src/synapse_ops/alerts/__init__.py
"""Rule-based alerting.

  - rules: tagged rule kinds (balance, operator approval, metric thresholds)
  - config: alert-config.json thresholds (pydantic)
  - evaluator: async rule checks -> Alert list
  - history: cooldown dedup state + alerts-history.json log
  - sinks / dispatcher: console, email and webhook routing
"""

from __future__ import annotations

from synapse_ops.alerts.config import AlertThresholds, ThresholdPair, load_alert_config
from synapse_ops.alerts.dispatcher import AlertDispatcher, DispatchReport
from synapse_ops.alerts.evaluator import Alert, AlertContext, RuleOutcome, check_rules, evaluate_rules
from synapse_ops.alerts.history import AlertHistory, AlertLog
from synapse_ops.alerts.rules import (
    BalanceBelow,
    Direction,
    MetricThreshold,
    OperatorNotApproved,
    Rule,
    Severity,
    default_rules,
    threshold_rules,
)
from synapse_ops.alerts.sinks import ConsoleSink, EmailSink, WebhookSink

__all__ = [
    "Alert",
    "AlertContext",
    "AlertDispatcher",
    "AlertHistory",
    "AlertLog",
    "AlertThresholds",
    "BalanceBelow",
    "ConsoleSink",
    "Direction",
    "DispatchReport",
    "EmailSink",
    "MetricThreshold",
    "OperatorNotApproved",
    "Rule",
    "RuleOutcome",
    "Severity",
    "ThresholdPair",
    "WebhookSink",
    "check_rules",
    "default_rules",
    "evaluate_rules",
    "load_alert_config",
    "threshold_rules",
]
