# src/synapse_ops/structured_logging.py
from __future__ import annotations

import json
import logging
import os
import sys
import time
import uuid
from typing import Any, Dict, Optional, TextIO

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

Json = Dict[str, Any]

_MARKER = "_synapse_ops_configured"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dumps(payload: Json) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line.

    Records produced by log_event() are already JSON and pass through. Plain
    records (uvicorn, sqlite3 warnings, ...) are wrapped so the stream stays
    machine-readable.
    """

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if msg.startswith("{") and getattr(record, "structured", False):
            return msg
        payload: Json = {
            "ts_ms": int(record.created * 1000),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": msg,
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return _dumps(payload)


def configure_structured_logging(stream: Optional[TextIO] = None) -> None:
    """Send JSON-line logs to stderr.

    Walkthrough output is printed to stdout, so logs never interleave with it.
    Level comes from SYNAPSE_OPS_LOG_LEVEL (default INFO). Repeated calls only
    update the level.
    """
    level_name = (os.environ.get("SYNAPSE_OPS_LOG_LEVEL") or "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, _MARKER, False):
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonLineFormatter())
    root.handlers = [handler]
    setattr(root, _MARKER, True)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log one structured event: {"ts_ms", "event", **fields}."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": event, "level": logging.getLevelName(level).lower()}
    payload.update(fields)
    logger.log(level, _dumps(payload), extra={"structured": True})


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Logs one `http_request` event per dashboard request.

    The request id is taken from the x-request-id header (or generated), kept on
    request.state and echoed on the response. SYNAPSE_OPS_LOG_REQUESTS=0
    disables the event but keeps the header.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("SYNAPSE_OPS_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "off"}
        self._logger = logging.getLogger("synapse_ops.http")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.monotonic()
        response: Optional[Response] = None
        err: Optional[str] = None
        try:
            response = await call_next(request)
        except Exception as e:
            err = f"{e.__class__.__name__}: {e}"
            raise
        finally:
            if self._enabled:
                log_event(
                    self._logger,
                    "http_request",
                    level=logging.INFO if err is None else logging.ERROR,
                    request_id=request_id,
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code if response is not None else 500,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                    error=err,
                )

        response.headers["x-request-id"] = request_id
        return response
