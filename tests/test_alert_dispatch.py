from __future__ import annotations

import io
import json
from typing import List

from synapse_ops.alerts import (
    Alert,
    AlertDispatcher,
    AlertHistory,
    AlertLog,
    ConsoleSink,
    EmailSink,
    Severity,
    WebhookSink,
)
from synapse_ops.config import load_settings


class _Clock:
    def __init__(self, t: float = 1_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


class _RecordingSink:
    def __init__(self, name: str, *, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.sent: List[str] = []

    def send(self, alert: Alert) -> None:
        if self.fail:
            raise RuntimeError(f"{self.name} down")
        self.sent.append(alert.id)


def _alert(alert_id: str, severity: Severity) -> Alert:
    return Alert(id=alert_id, name=alert_id.replace("_", " "), severity=severity, message="msg", timestamp="t")


def _dispatcher(clock=None, *, email=True, webhook=True, failing=()):
    history = AlertHistory(900, clock=clock or _Clock())
    console = _RecordingSink("console", fail="console" in failing)
    em = _RecordingSink("email", fail="email" in failing) if email else None
    wh = _RecordingSink("webhook", fail="webhook" in failing) if webhook else None
    return AlertDispatcher(history, console=console, email=em, webhook=wh), console, em, wh


def test_history_dedup_window_is_strict() -> None:
    clock = _Clock(0.0)
    h = AlertHistory(900, clock=clock)
    assert h.should_send("low_balance")
    h.mark_sent("low_balance")

    clock.t = 60.0
    assert not h.should_send("low_balance")
    clock.t = 900.0
    assert not h.should_send("low_balance")
    clock.t = 900.001
    assert h.should_send("low_balance")

    assert h.should_send("other_rule")
    assert h.last_sent("low_balance") == 0.0
    assert h.snapshot() == {"low_balance": 0.0}


def test_dispatch_suppresses_within_cooldown_then_fires_again() -> None:
    clock = _Clock(0.0)
    d, console, _, _ = _dispatcher(clock)

    first = d.dispatch([_alert("low_balance", Severity.WARNING)])
    assert first.sinks_for("low_balance") == ["console", "webhook"]

    clock.t = 60.0
    second = d.dispatch([_alert("low_balance", Severity.WARNING)])
    assert second.suppressed == ["low_balance"]
    assert second.sinks_for("low_balance") == []
    assert console.sent == ["low_balance"]

    clock.t = 60.0 * 16
    third = d.dispatch([_alert("low_balance", Severity.WARNING)])
    assert third.sinks_for("low_balance") == ["console", "webhook"]
    assert console.sent == ["low_balance", "low_balance"]


def test_warning_never_reaches_email() -> None:
    d, console, email, webhook = _dispatcher()
    d.dispatch([_alert("low_balance", Severity.WARNING), _alert("operator_not_approved", Severity.ERROR)])
    assert email.sent == []
    assert console.sent == ["low_balance", "operator_not_approved"]
    assert webhook.sent == ["low_balance", "operator_not_approved"]


def test_critical_reaches_every_configured_sink() -> None:
    d, console, email, webhook = _dispatcher()
    report = d.dispatch([_alert("critical_balance", Severity.CRITICAL)])
    assert report.sinks_for("critical_balance") == ["console", "email", "webhook"]
    assert console.sent == email.sent == webhook.sent == ["critical_balance"]


def test_unconfigured_sinks_are_skipped() -> None:
    d, console, _, _ = _dispatcher(email=False, webhook=False)
    report = d.dispatch([_alert("critical_balance", Severity.CRITICAL)])
    assert report.sinks_for("critical_balance") == ["console"]


def test_sink_failure_is_reported_and_others_continue() -> None:
    d, console, email, webhook = _dispatcher(failing=("email",))
    report = d.dispatch([_alert("critical_balance", Severity.CRITICAL)])
    assert report.sinks_for("critical_balance") == ["console", "webhook"]
    assert report.failures == [("critical_balance", "email", "email down")]
    assert webhook.sent == ["critical_balance"]

    # A failed delivery still counts as sent for dedup.
    again = d.dispatch([_alert("critical_balance", Severity.CRITICAL)])
    assert again.suppressed == ["critical_balance"]


def test_from_settings_builds_configured_sinks(monkeypatch) -> None:
    d = AlertDispatcher.from_settings(load_settings())
    assert isinstance(d.console, ConsoleSink)
    assert d.email is None and d.webhook is None

    monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/x")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "monitor")
    monkeypatch.setenv("ALERT_EMAIL", "ops@example.com")
    monkeypatch.setenv("SYNAPSE_OPS_ALERT_COOLDOWN_S", "30")
    d = AlertDispatcher.from_settings(load_settings())
    assert isinstance(d.email, EmailSink)
    assert isinstance(d.webhook, WebhookSink)
    assert d.history.cooldown_s == 30


def test_console_sink_output() -> None:
    out = io.StringIO()
    ConsoleSink(out).send(_alert("critical_balance", Severity.CRITICAL))
    text = out.getvalue()
    assert "🔴 ALERT: critical balance" in text
    assert "   msg" in text

    out = io.StringIO()
    ConsoleSink(out).send(
        Alert(id="ttfb_warning", name="x", severity=Severity.WARNING, message="slow", timestamp="t", category="Performance")
    )
    assert "🟡 [WARNING] Performance" in out.getvalue()


def test_alert_log_appends_and_trims(tmp_path) -> None:
    log = AlertLog(tmp_path / "data" / "alerts-history.json")
    assert log.load() == []

    for i in range(60):
        log.append([_alert(f"a{i}", Severity.WARNING)])
    history = log.append([_alert(f"b{i}", Severity.CRITICAL) for i in range(60)])

    assert len(history) == 100
    assert history[0]["id"] == "a20"
    assert history[-1]["id"] == "b59"
    assert json.loads((tmp_path / "data" / "alerts-history.json").read_text(encoding="utf-8")) == history


def test_alert_log_ignores_corrupt_file(tmp_path) -> None:
    p = tmp_path / "alerts-history.json"
    p.write_text("[oops", encoding="utf-8")
    log = AlertLog(p)
    assert log.load() == []
    assert log.append([]) == []
