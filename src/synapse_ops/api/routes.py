# src/synapse_ops/api/routes.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from synapse_ops.alerts import AlertLog
from synapse_ops.monitoring import ALERTS_HISTORY_FILE, COSTS_FILE, METRICS_FILE
from synapse_ops.monitoring.costs import CostStore
from synapse_ops.monitoring.metrics import MetricsStore

Json = Dict[str, Any]

router = APIRouter()


def _data_dir(request: Request) -> Path:
    return Path(request.app.state.data_dir)


@router.get("/health")
def health() -> Json:
    return {"ok": True, "ts_ms": int(time.time() * 1000)}


@router.get("/api/metrics")
def get_metrics(request: Request) -> Json:
    doc = MetricsStore(_data_dir(request) / METRICS_FILE).load()
    if not doc["operations"]:
        return {"summary": {"successRate": 0, "avgTTFB": 0, "totalEgressGB": 0}, "operations": []}
    return doc


@router.get("/api/costs")
def get_costs(request: Request) -> Json:
    doc = CostStore(_data_dir(request) / COSTS_FILE).load()
    if not doc["snapshots"]:
        return {"snapshots": [], "analysis": {"totalSpent": 0, "dailySpendingRate": 0, "monthlyProjection": 0}}
    return doc


@router.get("/api/alerts")
def get_alerts(request: Request) -> Any:
    return AlertLog(_data_dir(request) / ALERTS_HISTORY_FILE).load()


@router.get("/api/users/{address}/quota")
def get_user_quota(address: str, request: Request) -> Json:
    ledger = request.app.state.ledger
    if ledger is None:
        raise HTTPException(status_code=404, detail="ledger not initialized")
    user = ledger.get_user(address)
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    status = ledger.get_quota(user.id)
    out: Json = {"address": user.address, "chain": user.chain}
    out.update(status.to_json() if status is not None else {})
    return out
