# src/synapse_ops/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CALIBRATION_RPC_URL = "https://api.calibration.node.glif.io/rpc/v1"
CALIBRATION_CHAIN_ID = 314159


def _env_str(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return v.strip() if isinstance(v, str) and v.strip() else default


def env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


def _env_float(name: str, default: float) -> float:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return float(raw) if raw else float(default)
    except Exception:
        return float(default)


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    user: str
    password: str
    sender: str
    recipient: str

    @property
    def enabled(self) -> bool:
        # Recipient is required to send.
        return bool(self.host and self.user and self.recipient)


@dataclass(frozen=True)
class Settings:
    private_key: str
    rpc_url: str
    db_path: str
    data_dir: str
    alert_config_path: str
    webhook_url: Optional[str]
    smtp: SmtpSettings

    # Balance thresholds are in whole USDFC.
    low_balance_threshold: float = 1.0
    critical_balance_threshold: float = 0.1

    cost_threshold_day: float = 0.5
    cost_threshold_month: float = 15.0

    alert_cooldown_s: int = 15 * 60

    api_host: str = "127.0.0.1"
    api_port: int = 3000

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


def load_settings() -> Settings:
    smtp = SmtpSettings(
        host=_env_str("SMTP_HOST"),
        port=env_int("SMTP_PORT", 587),
        user=_env_str("SMTP_USER"),
        password=_env_str("SMTP_PASS"),
        sender=_env_str("SMTP_FROM", '"Filecoin Monitor" <monitor@filecoin.local>'),
        recipient=_env_str("ALERT_EMAIL"),
    )
    return Settings(
        private_key=_env_str("PRIVATE_KEY"),
        rpc_url=_env_str("RPC_URL", CALIBRATION_RPC_URL),
        db_path=_env_str("SYNAPSE_OPS_DB_PATH", "./storage.db"),
        data_dir=_env_str("SYNAPSE_OPS_DATA_DIR", "./data"),
        alert_config_path=_env_str("SYNAPSE_OPS_ALERT_CONFIG", "./alert-config.json"),
        webhook_url=_env_str("WEBHOOK_URL") or None,
        smtp=smtp,
        low_balance_threshold=_env_float("LOW_BALANCE_THRESHOLD", 1.0),
        critical_balance_threshold=_env_float("CRITICAL_BALANCE_THRESHOLD", 0.1),
        cost_threshold_day=_env_float("COST_THRESHOLD_USDFC_DAY", 0.5),
        cost_threshold_month=_env_float("COST_THRESHOLD_USDFC_MONTH", 15.0),
        alert_cooldown_s=max(0, env_int("SYNAPSE_OPS_ALERT_COOLDOWN_S", 15 * 60)),
        api_host=_env_str("SYNAPSE_OPS_API_HOST", "127.0.0.1"),
        api_port=env_int("SYNAPSE_OPS_API_PORT", 3000),
    )
