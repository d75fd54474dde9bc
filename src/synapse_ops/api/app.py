# src/synapse_ops/api/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from synapse_ops import __version__
from synapse_ops.api.routes import router
from synapse_ops.config import Settings, load_settings
from synapse_ops.ledger import QuotaLedger
from synapse_ops.structured_logging import RequestLogMiddleware


def build_ledger(settings: Settings) -> Optional[QuotaLedger]:
    """Open the quota ledger if its file exists.

    The dashboard never creates a ledger. Tests monkeypatch
    `synapse_ops.api.app.build_ledger` to inject one.
    """
    if not Path(settings.db_path).is_file():
        return None
    return QuotaLedger.open(settings.db_path)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the dashboard application.

    State on app.state:
      - settings: resolved Settings
      - data_dir: directory holding metrics.json / costs.json / alerts-history.json
      - ledger: QuotaLedger or None when no ledger file exists
    """
    settings = settings or load_settings()

    app = FastAPI(title="Synapse Ops Dashboard", version=__version__)
    app.state.settings = settings
    app.state.data_dir = Path(settings.data_dir)
    app.state.ledger = build_ledger(settings)

    app.add_middleware(RequestLogMiddleware)
    app.include_router(router)
    return app
