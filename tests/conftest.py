from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "synapse_ops" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

_ENV_VARS = [
    "PRIVATE_KEY",
    "RPC_URL",
    "WEBHOOK_URL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASS",
    "SMTP_FROM",
    "ALERT_EMAIL",
    "LOW_BALANCE_THRESHOLD",
    "CRITICAL_BALANCE_THRESHOLD",
    "COST_THRESHOLD_USDFC_DAY",
    "COST_THRESHOLD_USDFC_MONTH",
    "SYNAPSE_OPS_DOTENV_PATH",
    "SYNAPSE_OPS_ALERT_CONFIG",
    "SYNAPSE_OPS_ALERT_COOLDOWN_S",
]


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """Every test runs in its own directory with no ambient credentials or .env files."""
    from synapse_ops.env import reset_dotenv_state

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SYNAPSE_OPS_DB_PATH", str(tmp_path / "storage.db"))
    monkeypatch.setenv("SYNAPSE_OPS_DATA_DIR", str(tmp_path / "data"))

    # Keep pytest's log capture handlers in place.
    monkeypatch.setattr(logging.getLogger(), "_synapse_ops_configured", True, raising=False)

    reset_dotenv_state()
    yield
    reset_dotenv_state()


@pytest.fixture
def use_client(monkeypatch):
    """Make every walkthrough's build_client() return the given client."""
    from synapse_ops.walkthroughs import common

    def _install(client):
        async def _build(settings):
            return client

        monkeypatch.setattr(common, "build_client", _build)
        return client

    return _install
