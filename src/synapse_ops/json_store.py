# src/synapse_ops/json_store.py
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Union

from synapse_ops.structured_logging import log_event

log = logging.getLogger("synapse_ops.store")

PathLike = Union[str, Path]


def read_json(path: PathLike, default: Callable[[], Any]) -> Any:
    """Load a JSON file. Missing or unreadable files yield default() (logged, not raised)."""
    p = Path(path)
    if not p.exists():
        return default()
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log_event(log, "json_store_unreadable", level=logging.WARNING, path=str(p), error=str(e))
        return default()


def write_json(path: PathLike, obj: Any) -> None:
    """Write pretty JSON via a temp file + rename so readers never see a partial file."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(obj, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp, p)
