# src/synapse_ops/alerts/sinks.py
from __future__ import annotations

import json
import sys
import urllib.error
import urllib.request
from html import escape
from typing import Any, Dict, Optional, TextIO

from synapse_ops.alerts.evaluator import Alert
from synapse_ops.alerts.rules import Severity
from synapse_ops.config import CALIBRATION_CHAIN_ID, SmtpSettings
from synapse_ops.email.smtp_sender import send_email
from synapse_ops.errors import OperationError

Json = Dict[str, Any]

SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.ERROR: "🟠",
    Severity.WARNING: "🟡",
}


class ConsoleSink:
    name = "console"

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self._out = out

    def send(self, alert: Alert) -> None:
        out = self._out or sys.stdout
        icon = SEVERITY_ICONS.get(alert.severity, "⚠️")
        label = f"[{alert.severity.value.upper()}] {alert.category}" if alert.category else f"ALERT: {alert.name}"
        print(f"{icon} {label}", file=out)
        print(f"   {alert.message}", file=out)


class EmailSink:
    name = "email"

    def __init__(self, smtp: SmtpSettings) -> None:
        self.smtp = smtp

    @staticmethod
    def render_html(alert: Alert) -> str:
        return (
            "<h2>Filecoin Storage Alert</h2>\n"
            f"<p><strong>Alert:</strong> {escape(alert.name)}</p>\n"
            f"<p><strong>Severity:</strong> {escape(alert.severity.value)}</p>\n"
            f"<p><strong>Message:</strong> {escape(alert.message)}</p>\n"
            f"<p><strong>Time:</strong> {escape(alert.timestamp)}</p>\n"
        )

    def send(self, alert: Alert) -> None:
        send_email(
            self.smtp,
            to_email=self.smtp.recipient,
            subject=f"[{alert.severity.value.upper()}] {alert.name}",
            body_text=alert.message,
            body_html=self.render_html(alert),
        )


class WebhookSink:
    name = "webhook"

    def __init__(self, url: str, *, timeout_s: float = 10.0, network: str = "calibration", chain_id: int = CALIBRATION_CHAIN_ID) -> None:
        self.url = str(url)
        self.timeout_s = float(timeout_s)
        self.network = network
        self.chain_id = int(chain_id)

    def payload(self, alert: Alert) -> Json:
        return {
            "source": "filecoin-monitor",
            "alert": alert.to_json(),
            "metadata": {"network": self.network, "chainId": self.chain_id},
        }

    def send(self, alert: Alert) -> None:
        body = json.dumps(self.payload(alert), separators=(",", ":")).encode("utf-8")
        req = urllib.request.Request(url=self.url, method="POST", data=body)
        req.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                status = int(getattr(resp, "status", 200))
        except urllib.error.HTTPError as e:
            raise OperationError("webhook_failed", f"HTTP {e.code}", details={"url": self.url}) from e
        except urllib.error.URLError as e:
            raise OperationError("webhook_failed", str(e.reason), details={"url": self.url}) from e
        if not (200 <= status < 300):
            raise OperationError("webhook_failed", f"HTTP {status}", details={"url": self.url})
