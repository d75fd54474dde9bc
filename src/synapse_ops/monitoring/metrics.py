# src/synapse_ops/monitoring/metrics.py
"""Beam CDN performance metrics (data/metrics.json).

File shape (camelCase keys, read by the dashboard):
  {"operations": [op, ...], "summary": {...}}

TTFB is taken as the measured download latency: the SDK returns the whole
payload at once, so first-byte time is not observable separately.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from synapse_ops.alerts.evaluator import iso_timestamp
from synapse_ops.json_store import read_json, write_json
from synapse_ops.sdk.client import SynapseClient
from synapse_ops.structured_logging import log_event
from synapse_ops.units import GIB, MIB

Json = Dict[str, Any]

TEST_FILE_SIZE = 1 * MIB

log = logging.getLogger("synapse_ops.monitoring")


def sample_payload(size: int = TEST_FILE_SIZE) -> bytes:
    return bytes(i % 256 for i in range(int(size)))


def empty_metrics() -> Json:
    return {"operations": [], "summary": {}}


def calculate_summary(operations: Sequence[Json], *, now: Optional[float] = None) -> Json:
    ts = iso_timestamp(time.time() if now is None else now)
    if not operations:
        return {
            "totalOperations": 0,
            "successfulOperations": 0,
            "failedOperations": 0,
            "successRate": 0,
            "totalEgressGB": 0,
            "avgTTFB": 0,
            "avgThroughput": 0,
            "lastUpdated": ts,
        }

    successful = [op for op in operations if op.get("success")]
    failed = len(operations) - len(successful)
    egress_bytes = sum(int(op.get("bytesTransferred") or 0) for op in operations)

    avg_ttfb = 0.0
    avg_tp = 0.0
    if successful:
        avg_ttfb = sum(float(op.get("ttfb") or 0) for op in successful) / len(successful)
        avg_tp = sum(float(op.get("throughput") or 0) for op in successful) / len(successful)

    return {
        "totalOperations": len(operations),
        "successfulOperations": len(successful),
        "failedOperations": failed,
        "successRate": len(successful) / len(operations) * 100,
        "totalEgressGB": egress_bytes / GIB,
        "avgTTFB": avg_ttfb,
        "avgThroughput": avg_tp,
        "lastUpdated": ts,
    }


async def collect_cycle(
    client: SynapseClient,
    *,
    size: int = TEST_FILE_SIZE,
    clock: Callable[[], float] = time.monotonic,
    wall_clock: Callable[[], float] = time.time,
) -> Json:
    """One CDN upload + download round trip. Failures are recorded in the result, not raised."""
    data = sample_payload(size)
    op: Json = {
        "timestamp": iso_timestamp(wall_clock()),
        "operation": "upload-download-cycle",
        "success": False,
        "ttfb": 0,
        "throughput": 0,
        "bytesTransferred": 0,
        "uploadTime": 0,
        "downloadTime": 0,
        "pieceCid": None,
        "provider": None,
    }

    try:
        ctx = await client.create_context(
            {"purpose": "metrics-collection", "timestamp": op["timestamp"]},
            with_cdn=True,
        )
        op["provider"] = ctx.provider

        started = clock()
        res = await ctx.upload(data)
        op["uploadTime"] = clock() - started
        op["pieceCid"] = res.piece_cid

        started = clock()
        downloaded = await ctx.download(res.piece_cid)
        elapsed = clock() - started

        op["downloadTime"] = elapsed
        op["ttfb"] = elapsed * 1000.0
        op["bytesTransferred"] = len(downloaded)
        op["throughput"] = (len(downloaded) / MIB) / elapsed if elapsed > 0 else 0
        op["success"] = downloaded == data
    except Exception as e:
        op["success"] = False
        op["error"] = str(e)
        log_event(log, "metrics_cycle_failed", level=logging.WARNING, error=str(e))

    return op


class MetricsStore:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Json:
        doc = read_json(self.path, empty_metrics)
        if not isinstance(doc, dict) or not isinstance(doc.get("operations"), list):
            return empty_metrics()
        return doc

    def record(self, op: Json, *, now: Optional[float] = None) -> Json:
        doc = self.load()
        ops: List[Json] = list(doc["operations"])
        ops.append(op)
        doc["operations"] = ops
        doc["summary"] = calculate_summary(ops, now=now)
        write_json(self.path, doc)
        return doc


def metric_values(metrics: Optional[Json], costs: Optional[Json] = None) -> Dict[str, float]:
    """Flatten the metrics and costs files into the keys MetricThreshold rules read."""
    out: Dict[str, float] = {}
    summary = (metrics or {}).get("summary") or {}
    if summary:
        out["egress_gb"] = float(summary.get("totalEgressGB") or 0)
        out["avg_ttfb_ms"] = float(summary.get("avgTTFB") or 0)
        out["success_rate"] = float(summary.get("successRate") or 0)
    analysis = (costs or {}).get("analysis") or {}
    if analysis:
        out["daily_cost"] = float(analysis.get("dailySpendingRate") or 0)
    return out
