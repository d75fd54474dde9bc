# src/synapse_ops/api/__main__.py
from __future__ import annotations

import uvicorn

from synapse_ops.env import load_dotenv_if_present
from synapse_ops.structured_logging import configure_structured_logging


def main() -> None:
    # Load .env before any settings are read.
    load_dotenv_if_present()
    configure_structured_logging()

    from synapse_ops.api.app import create_app
    from synapse_ops.config import load_settings

    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port, log_level="info")


if __name__ == "__main__":
    main()
