# src/synapse_ops/alerts/config.py
"""Threshold file for the Beam monitoring alerts (alert-config.json).

Unknown keys are ignored so the file can carry notes for operators. A missing
or invalid file falls back to the defaults below rather than disabling alerts.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from synapse_ops.structured_logging import log_event

log = logging.getLogger("synapse_ops.alerts")


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ThresholdPair(_ConfigModel):
    """warning/critical limits. warning is optional; critical always applies."""

    warning: Optional[float] = None
    critical: float

    @model_validator(mode="after")
    def _non_negative(self) -> "ThresholdPair":
        for v in (self.warning, self.critical):
            if v is not None and v < 0:
                raise ValueError("thresholds must be non-negative")
        return self


class EgressThresholds(_ConfigModel):
    daily: ThresholdPair = Field(default_factory=lambda: ThresholdPair(warning=5, critical=10))


class CostThresholds(_ConfigModel):
    daily: ThresholdPair = Field(default_factory=lambda: ThresholdPair(warning=0.25, critical=0.5))


class PerformanceThresholds(_ConfigModel):
    ttfb: ThresholdPair = Field(default_factory=lambda: ThresholdPair(warning=2000, critical=5000))
    success_rate: ThresholdPair = Field(
        default_factory=lambda: ThresholdPair(warning=95, critical=90),
        alias="successRate",
    )


class SlaTargets(_ConfigModel):
    """Provider SLA targets in percent."""

    uptime: float = Field(default=99.9, ge=0, le=100)
    proof_success: float = Field(default=99.0, ge=0, le=100, alias="proofSuccess")


class AlertThresholds(_ConfigModel):
    egress: EgressThresholds = Field(default_factory=EgressThresholds, alias="egressThresholds")
    cost: CostThresholds = Field(default_factory=CostThresholds, alias="costThresholds")
    performance: PerformanceThresholds = Field(default_factory=PerformanceThresholds, alias="performanceThresholds")
    sla: SlaTargets = Field(default_factory=SlaTargets, alias="slaTargets")


def load_alert_config(path: Union[str, Path]) -> AlertThresholds:
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
        return AlertThresholds.model_validate(raw)
    except FileNotFoundError:
        log_event(log, "alert_config_missing", level=logging.WARNING, path=str(p))
    except (OSError, ValueError, ValidationError) as e:
        log_event(log, "alert_config_invalid", level=logging.WARNING, path=str(p), error=str(e))
    return AlertThresholds()
