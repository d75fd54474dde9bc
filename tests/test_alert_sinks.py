from __future__ import annotations

import json
import urllib.error

import pytest

from synapse_ops.alerts import Alert, EmailSink, Severity, WebhookSink
from synapse_ops.alerts import sinks as sinks_mod
from synapse_ops.config import SmtpSettings
from synapse_ops.email import smtp_sender
from synapse_ops.errors import OperationError

ALERT = Alert(
    id="critical_balance",
    name="Critical Balance Alert",
    severity=Severity.CRITICAL,
    message="CRITICAL: Balance below 0.1 USDFC! Current: 0.0500 USDFC",
    timestamp="2026-01-01T00:00:00.000Z",
)

SMTP = SmtpSettings(
    host="smtp.example.com",
    port=587,
    user="monitor",
    password="secret",
    sender="monitor@example.com",
    recipient="ops@example.com",
)


class _Resp:
    def __init__(self, status: int) -> None:
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_webhook_posts_json_envelope(monkeypatch) -> None:
    seen = {}

    def _urlopen(req, timeout=None):
        seen["url"] = req.full_url
        seen["method"] = req.get_method()
        seen["content_type"] = req.get_header("Content-type")
        seen["body"] = json.loads(req.data.decode("utf-8"))
        seen["timeout"] = timeout
        return _Resp(200)

    monkeypatch.setattr(sinks_mod.urllib.request, "urlopen", _urlopen)
    WebhookSink("https://hooks.example.com/abc").send(ALERT)

    assert seen["url"] == "https://hooks.example.com/abc"
    assert seen["method"] == "POST"
    assert seen["content_type"] == "application/json"
    assert seen["timeout"] == 10.0
    assert seen["body"] == {
        "source": "filecoin-monitor",
        "alert": {
            "id": "critical_balance",
            "name": "Critical Balance Alert",
            "severity": "critical",
            "message": ALERT.message,
            "timestamp": ALERT.timestamp,
        },
        "metadata": {"network": "calibration", "chainId": 314159},
    }


def test_webhook_non_2xx_raises(monkeypatch) -> None:
    monkeypatch.setattr(sinks_mod.urllib.request, "urlopen", lambda req, timeout=None: _Resp(302))
    with pytest.raises(OperationError) as ei:
        WebhookSink("https://hooks.example.com/abc").send(ALERT)
    assert ei.value.code == "webhook_failed"


def test_webhook_network_error_raises(monkeypatch) -> None:
    def _boom(req, timeout=None):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(sinks_mod.urllib.request, "urlopen", _boom)
    with pytest.raises(OperationError) as ei:
        WebhookSink("https://hooks.example.com/abc").send(ALERT)
    assert "connection refused" in ei.value.reason


def test_email_sink_renders_subject_and_escaped_html(monkeypatch) -> None:
    sent = {}

    def _send(smtp, *, to_email, subject, body_text, body_html=None):
        sent.update(smtp=smtp, to=to_email, subject=subject, text=body_text, html=body_html)

    monkeypatch.setattr(sinks_mod, "send_email", _send)
    alert = Alert(id="x", name="<b>Name</b>", severity=Severity.CRITICAL, message="a & b", timestamp="t")
    EmailSink(SMTP).send(alert)

    assert sent["to"] == "ops@example.com"
    assert sent["subject"] == "[CRITICAL] <b>Name</b>"
    assert sent["text"] == "a & b"
    assert "&lt;b&gt;Name&lt;/b&gt;" in sent["html"]
    assert "a &amp; b" in sent["html"]


class _FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None) -> None:
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        self.calls.append("ehlo")

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, msg):
        self.messages.append(msg)


def test_send_email_uses_starttls_on_587(monkeypatch) -> None:
    _FakeSMTP.instances = []
    monkeypatch.setattr(smtp_sender.smtplib, "SMTP", _FakeSMTP)

    smtp_sender.send_email(SMTP, to_email="ops@example.com", subject="s", body_text="hello", body_html="<p>hello</p>")

    (s,) = _FakeSMTP.instances
    assert (s.host, s.port) == ("smtp.example.com", 587)
    assert "starttls" in s.calls
    assert ("login", "monitor", "secret") in s.calls
    msg = s.messages[0]
    assert msg["To"] == "ops@example.com"
    assert msg["From"] == "monitor@example.com"
    assert msg.is_multipart()


def test_send_email_uses_ssl_on_465(monkeypatch) -> None:
    _FakeSMTP.instances = []
    monkeypatch.setattr(smtp_sender.smtplib, "SMTP_SSL", _FakeSMTP)
    monkeypatch.setattr(smtp_sender.smtplib, "SMTP", None)

    cfg = SmtpSettings("smtp.example.com", 465, "monitor", "secret", "", "ops@example.com")
    smtp_sender.send_email(cfg, to_email="ops@example.com", subject="s", body_text="hello")

    (s,) = _FakeSMTP.instances
    assert "starttls" not in s.calls
    assert s.messages[0]["From"] == "monitor"


def test_send_email_requires_configuration() -> None:
    with pytest.raises(RuntimeError):
        smtp_sender.send_email(SmtpSettings("", 587, "", "", "", ""), to_email="x@example.com", subject="s", body_text="b")
    with pytest.raises(RuntimeError):
        smtp_sender.send_email(SMTP, to_email="", subject="s", body_text="b")
