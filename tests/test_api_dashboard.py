from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from synapse_ops.api import app as api_app
from synapse_ops.config import load_settings
from synapse_ops.ledger import BYTES_PER_USD, QuotaLedger

ADDR = "0x" + "a" * 40


def _client() -> TestClient:
    return TestClient(api_app.create_app(load_settings()))


def test_health() -> None:
    r = _client().get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("x-request-id")


def test_empty_monitoring_defaults() -> None:
    c = _client()
    assert c.get("/api/metrics").json() == {
        "summary": {"successRate": 0, "avgTTFB": 0, "totalEgressGB": 0},
        "operations": [],
    }
    costs = c.get("/api/costs").json()
    assert costs["snapshots"] == []
    assert costs["analysis"]["totalSpent"] == 0
    assert c.get("/api/alerts").json() == []


def test_monitoring_files_are_served(tmp_path) -> None:
    data = tmp_path / "data"
    data.mkdir()
    metrics = {"operations": [{"success": True}], "summary": {"successRate": 100}}
    (data / "metrics.json").write_text(json.dumps(metrics), encoding="utf-8")
    (data / "alerts-history.json").write_text(json.dumps([{"id": "ttfb_warning"}]), encoding="utf-8")

    c = _client()
    assert c.get("/api/metrics").json() == metrics
    assert c.get("/api/alerts").json() == [{"id": "ttfb_warning"}]


def test_quota_endpoint(tmp_path) -> None:
    led = QuotaLedger.open(str(tmp_path / "storage.db"))
    user = led.ensure_user(ADDR, "base")
    led.grant_quota(user.id, 1.0, "0xpay", "base")
    led.record_upload(user.id, "bafkpiece", 1024)

    c = _client()
    r = c.get(f"/api/users/{ADDR}/quota")
    assert r.status_code == 200
    assert r.json() == {
        "address": ADDR,
        "chain": "base",
        "quota_bytes": BYTES_PER_USD,
        "used_bytes": 1024,
        "remaining_bytes": BYTES_PER_USD - 1024,
    }

    assert c.get("/api/users/0xnobody/quota").status_code == 404


def test_quota_endpoint_without_ledger_file() -> None:
    app = api_app.create_app(load_settings())
    assert app.state.ledger is None
    assert TestClient(app).get(f"/api/users/{ADDR}/quota").status_code == 404


def test_build_ledger_can_be_replaced(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    led = QuotaLedger.open(str(tmp_path / "other.db"))
    led.ensure_user(ADDR, "polygon")
    monkeypatch.setattr(api_app, "build_ledger", lambda settings: led)

    app = api_app.create_app(load_settings())
    assert app.state.ledger is led
    with TestClient(app) as c:
        assert c.get(f"/api/users/{ADDR}/quota").json()["chain"] == "polygon"
