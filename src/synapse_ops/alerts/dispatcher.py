# src/synapse_ops/alerts/dispatcher.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from synapse_ops.alerts.evaluator import Alert
from synapse_ops.alerts.history import AlertHistory
from synapse_ops.alerts.rules import Severity
from synapse_ops.alerts.sinks import ConsoleSink, EmailSink, WebhookSink
from synapse_ops.config import Settings
from synapse_ops.structured_logging import log_event

log = logging.getLogger("synapse_ops.alerts")


class AlertSink(Protocol):
    name: str

    def send(self, alert: Alert) -> None: ...


@dataclass
class DispatchReport:
    delivered: Dict[str, List[str]] = field(default_factory=dict)
    suppressed: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str, str]] = field(default_factory=list)

    def sinks_for(self, alert_id: str) -> List[str]:
        return list(self.delivered.get(alert_id, []))


class AlertDispatcher:
    """Routes fired alerts to sinks, deduplicated through an owned AlertHistory.

    Routing:
      - console: every alert
      - email: critical only, when configured
      - webhook: every alert, when configured
    A sink failure is logged and reported; it never stops the other sinks.
    """

    def __init__(
        self,
        history: AlertHistory,
        *,
        console: AlertSink,
        email: Optional[AlertSink] = None,
        webhook: Optional[AlertSink] = None,
    ) -> None:
        self.history = history
        self.console = console
        self.email = email
        self.webhook = webhook

    @classmethod
    def from_settings(cls, settings: Settings, history: Optional[AlertHistory] = None) -> "AlertDispatcher":
        return cls(
            history or AlertHistory(settings.alert_cooldown_s),
            console=ConsoleSink(),
            email=EmailSink(settings.smtp) if settings.smtp.enabled else None,
            webhook=WebhookSink(settings.webhook_url) if settings.webhook_url else None,
        )

    def sinks_for(self, alert: Alert) -> List[AlertSink]:
        sinks: List[AlertSink] = [self.console]
        if self.email is not None and alert.severity is Severity.CRITICAL:
            sinks.append(self.email)
        if self.webhook is not None:
            sinks.append(self.webhook)
        return sinks

    def dispatch(self, alerts: Iterable[Alert]) -> DispatchReport:
        report = DispatchReport()
        for alert in alerts:
            if not self.history.should_send(alert.id):
                report.suppressed.append(alert.id)
                log_event(log, "alert_suppressed", rule_id=alert.id)
                continue
            self.history.mark_sent(alert.id)

            delivered: List[str] = []
            for sink in self.sinks_for(alert):
                try:
                    sink.send(alert)
                except Exception as e:
                    report.failures.append((alert.id, sink.name, str(e)))
                    log_event(log, "alert_sink_failed", level=logging.WARNING, rule_id=alert.id, sink=sink.name, error=str(e))
                    continue
                delivered.append(sink.name)
            report.delivered[alert.id] = delivered
            log_event(log, "alert_dispatched", rule_id=alert.id, severity=alert.severity.value, sinks=delivered)
        return report
