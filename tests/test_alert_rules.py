from __future__ import annotations

import asyncio
import json

import pytest

from synapse_ops.alerts import (
    AlertContext,
    AlertThresholds,
    MetricThreshold,
    Severity,
    check_rules,
    default_rules,
    evaluate_rules,
    load_alert_config,
    threshold_rules,
)
from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.config import load_settings
from synapse_ops.testing import FakeSynapse

ONE = 10**18


def _fired(rules, ctx):
    return {a.id: a for a in asyncio.run(evaluate_rules(rules, ctx, clock=lambda: 0.0))}


def test_iso_timestamp_millis_z() -> None:
    assert iso_timestamp(0) == "1970-01-01T00:00:00.000Z"
    assert iso_timestamp(1.5) == "1970-01-01T00:00:01.500Z"


@pytest.mark.parametrize(
    "balance,expected",
    [
        (2 * ONE, set()),
        (ONE, set()),
        (ONE // 2, {"low_balance"}),
        (ONE // 10, {"low_balance"}),
        (ONE // 20, {"critical_balance"}),
        (0, {"critical_balance"}),
    ],
)
def test_balance_rules_are_exclusive(balance, expected) -> None:
    client = FakeSynapse.funded(balance=balance)
    fired = _fired(default_rules(load_settings()), AlertContext(balance=balance, client=client))
    assert set(fired) == expected


def test_balance_messages_and_severity() -> None:
    rules = default_rules(load_settings())
    client = FakeSynapse.funded(balance=ONE // 2)

    low = _fired(rules, AlertContext(balance=ONE // 2, client=client))["low_balance"]
    assert low.severity is Severity.WARNING
    assert low.message == "Balance is low: 0.5000 USDFC"
    assert low.timestamp == "1970-01-01T00:00:00.000Z"

    crit = _fired(rules, AlertContext(balance=ONE // 20, client=client))["critical_balance"]
    assert crit.severity is Severity.CRITICAL
    assert crit.message == "CRITICAL: Balance below 0.1 USDFC! Current: 0.0500 USDFC"


def test_thresholds_follow_env(monkeypatch) -> None:
    monkeypatch.setenv("LOW_BALANCE_THRESHOLD", "10")
    monkeypatch.setenv("CRITICAL_BALANCE_THRESHOLD", "2")
    rules = default_rules(load_settings())
    client = FakeSynapse.funded(balance=5 * ONE)
    assert set(_fired(rules, AlertContext(balance=5 * ONE, client=client))) == {"low_balance"}


def test_operator_not_approved_fires() -> None:
    client = FakeSynapse.funded(balance=5 * ONE, approved=False)
    fired = _fired(default_rules(load_settings()), AlertContext(balance=5 * ONE, client=client))
    assert set(fired) == {"operator_not_approved"}
    assert fired["operator_not_approved"].severity is Severity.ERROR


def test_failing_check_is_skipped_and_others_still_run() -> None:
    client = FakeSynapse.funded(balance=ONE // 2)
    client.fail("payments.service_approval", RuntimeError("rpc down"))

    outcomes = asyncio.run(check_rules(default_rules(load_settings()), AlertContext(balance=ONE // 2, client=client)))
    by_id = {o.rule.id: o for o in outcomes}

    assert by_id["low_balance"].triggered
    assert not by_id["critical_balance"].triggered
    assert by_id["operator_not_approved"].error == "rpc down"
    assert not by_id["operator_not_approved"].triggered


def test_missing_inputs_are_rule_errors() -> None:
    outcomes = asyncio.run(check_rules(default_rules(load_settings()), AlertContext()))
    assert all(o.error for o in outcomes)
    assert asyncio.run(evaluate_rules(default_rules(load_settings()), AlertContext())) == []


def test_unknown_rule_kind_raises() -> None:
    with pytest.raises(TypeError):
        asyncio.run(check_rules([object()], AlertContext()))  # type: ignore[list-item]


def test_threshold_rules_ids_and_pairs() -> None:
    rules = threshold_rules(AlertThresholds())
    ids = [r.id for r in rules]
    assert ids == [
        "egress_daily_critical",
        "egress_daily_warning",
        "cost_daily_critical",
        "cost_daily_warning",
        "ttfb_critical",
        "ttfb_warning",
        "success_rate_critical",
        "success_rate_warning",
    ]
    assert all(isinstance(r, MetricThreshold) for r in rules)


@pytest.mark.parametrize(
    "metrics,expected",
    [
        ({"egress_gb": 1.0}, set()),
        ({"egress_gb": 7.0}, {"egress_daily_warning"}),
        ({"egress_gb": 12.0}, {"egress_daily_critical"}),
        ({"daily_cost": 0.3}, {"cost_daily_warning"}),
        ({"daily_cost": 0.6}, {"cost_daily_critical"}),
        ({"avg_ttfb_ms": 2500.0}, {"ttfb_warning"}),
        ({"avg_ttfb_ms": 6000.0}, {"ttfb_critical"}),
        ({"success_rate": 100.0}, set()),
        ({"success_rate": 92.0}, {"success_rate_warning"}),
        ({"success_rate": 80.0}, {"success_rate_critical"}),
        ({}, set()),
    ],
)
def test_threshold_rules_fire_one_severity(metrics, expected) -> None:
    fired = _fired(threshold_rules(AlertThresholds()), AlertContext(metrics=metrics))
    assert set(fired) == expected


def test_threshold_alert_json_has_category_and_type() -> None:
    fired = _fired(threshold_rules(AlertThresholds()), AlertContext(metrics={"avg_ttfb_ms": 6000.0}))
    doc = fired["ttfb_critical"].to_json()
    assert doc["category"] == "Performance"
    assert doc["type"] == "CRITICAL"
    assert doc["message"] == "Average TTFB (6000.00ms) exceeds critical threshold (5000ms)"


def test_load_alert_config_reads_camel_case(tmp_path) -> None:
    p = tmp_path / "alert-config.json"
    p.write_text(
        json.dumps(
            {
                "egressThresholds": {"daily": {"warning": 1, "critical": 2}},
                "performanceThresholds": {"successRate": {"warning": 99, "critical": 50}},
                "notes": "ignored",
            }
        ),
        encoding="utf-8",
    )
    cfg = load_alert_config(p)
    assert cfg.egress.daily.critical == 2
    assert cfg.performance.success_rate.warning == 99
    # Unspecified sections keep their defaults.
    assert cfg.cost.daily.critical == 0.5
    assert cfg.performance.ttfb.warning == 2000


def test_load_alert_config_falls_back_to_defaults(tmp_path) -> None:
    assert load_alert_config(tmp_path / "missing.json") == AlertThresholds()

    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{not json", encoding="utf-8")
    assert load_alert_config(bad_json) == AlertThresholds()

    negative = tmp_path / "neg.json"
    negative.write_text(json.dumps({"costThresholds": {"daily": {"critical": -1}}}), encoding="utf-8")
    assert load_alert_config(negative) == AlertThresholds()


def test_warning_optional_in_config(tmp_path) -> None:
    p = tmp_path / "alert-config.json"
    p.write_text(json.dumps({"egressThresholds": {"daily": {"critical": 3}}}), encoding="utf-8")
    rules = threshold_rules(load_alert_config(p))
    assert "egress_daily_warning" not in {r.id for r in rules}
    assert "egress_daily_critical" in {r.id for r in rules}


def test_sla_targets_in_alert_config(tmp_path) -> None:
    assert load_alert_config(tmp_path / "missing.json").sla.uptime == 99.9

    p = tmp_path / "alert-config.json"
    p.write_text(json.dumps({"slaTargets": {"uptime": 98.5, "proofSuccess": 90}}), encoding="utf-8")
    sla = load_alert_config(p).sla
    assert (sla.uptime, sla.proof_success) == (98.5, 90)

    p.write_text(json.dumps({"slaTargets": {"uptime": 150}}), encoding="utf-8")
    assert load_alert_config(p) == AlertThresholds()
