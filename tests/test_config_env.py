from __future__ import annotations

import asyncio
import logging
import os

import pytest

from synapse_ops.config import CALIBRATION_RPC_URL, load_settings
from synapse_ops.env import load_dotenv_if_present, reset_dotenv_state
from synapse_ops.errors import OperationError, PreconditionError
from synapse_ops.sdk import connect
from synapse_ops.walkthroughs import common


def test_settings_defaults() -> None:
    s = load_settings()
    assert s.private_key == ""
    assert s.rpc_url == CALIBRATION_RPC_URL
    assert s.webhook_url is None
    assert not s.smtp.enabled
    assert s.smtp.port == 587
    assert s.low_balance_threshold == 1.0
    assert s.critical_balance_threshold == 0.1
    assert s.cost_threshold_day == 0.5
    assert s.cost_threshold_month == 15.0
    assert s.alert_cooldown_s == 900
    assert s.api_port == 3000


def test_settings_tolerate_bad_numbers(monkeypatch) -> None:
    monkeypatch.setenv("SMTP_PORT", "not-a-port")
    monkeypatch.setenv("LOW_BALANCE_THRESHOLD", "lots")
    monkeypatch.setenv("SYNAPSE_OPS_ALERT_COOLDOWN_S", "-5")
    s = load_settings()
    assert s.smtp.port == 587
    assert s.low_balance_threshold == 1.0
    assert s.alert_cooldown_s == 0


def test_smtp_enabled_needs_recipient(monkeypatch) -> None:
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "monitor")
    assert not load_settings().smtp.enabled
    monkeypatch.setenv("ALERT_EMAIL", "ops@example.com")
    assert load_settings().smtp.enabled


def test_dotenv_local_wins_and_real_env_is_kept(tmp_path, monkeypatch) -> None:
    (tmp_path / ".env.local").write_text("PRIVATE_KEY=0xlocal\nWEBHOOK_URL=https://local.example.com\n", encoding="utf-8")
    (tmp_path / ".env").write_text("PRIVATE_KEY=0xshared\nRPC_URL=https://rpc.example.com\n", encoding="utf-8")
    monkeypatch.setenv("WEBHOOK_URL", "https://real.example.com")
    for k in ("PRIVATE_KEY", "RPC_URL"):
        monkeypatch.setenv(k, "")
        monkeypatch.delenv(k)

    loaded = load_dotenv_if_present()
    try:
        assert [os.path.basename(p) for p in loaded] == [".env.local", ".env"]
        s = load_settings()
        assert s.private_key == "0xlocal"
        assert s.rpc_url == "https://rpc.example.com"
        assert s.webhook_url == "https://real.example.com"

        # Loaded once per process until reset.
        assert load_dotenv_if_present() == []
    finally:
        os.environ.pop("PRIVATE_KEY", None)
        os.environ.pop("RPC_URL", None)
        reset_dotenv_state()


def test_explicit_dotenv_path(tmp_path, monkeypatch) -> None:
    p = tmp_path / "custom.env"
    p.write_text("COST_THRESHOLD_USDFC_DAY=2.5\n", encoding="utf-8")
    monkeypatch.setenv("SYNAPSE_OPS_DOTENV_PATH", str(p))
    try:
        assert load_dotenv_if_present() == [str(p)]
        assert load_settings().cost_threshold_day == 2.5
    finally:
        os.environ.pop("COST_THRESHOLD_USDFC_DAY", None)


def test_run_main_applies_log_level_from_dotenv(tmp_path, monkeypatch) -> None:
    (tmp_path / ".env").write_text("SYNAPSE_OPS_LOG_LEVEL=WARNING\n", encoding="utf-8")
    monkeypatch.delenv("SYNAPSE_OPS_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    previous = root.level
    seen = []

    async def entry() -> int:
        seen.append(logging.getLogger().level)
        return 0

    try:
        assert common.run_main(entry) == 0
    finally:
        os.environ.pop("SYNAPSE_OPS_LOG_LEVEL", None)
        root.setLevel(previous)
    assert seen == [logging.WARNING]


def test_error_constructors() -> None:
    e = PreconditionError.insufficient_quota(300, 104)
    assert e.code == "insufficient_quota"
    assert e.details == {"requested": 300, "remaining": 104}
    assert e.hint == "User must purchase more storage."

    w = OperationError.wrap("upload_failed", RuntimeError(""))
    assert w.reason == "RuntimeError"


def test_connect_requires_private_key() -> None:
    with pytest.raises(PreconditionError) as ei:
        asyncio.run(connect(load_settings()))
    assert ei.value.code == "missing_credentials"
