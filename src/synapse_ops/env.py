# src/synapse_ops/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

_LOADED = False

# Local overrides win over the shared file; neither overrides the real environment.
DEFAULT_DOTENV_FILES = (".env.local", ".env")


def load_dotenv_if_present(dotenv_path: Optional[str] = None) -> List[str]:
    """
    Load .env files once per process.

    Path rules:
        1) If dotenv_path arg provided, load only that file.
        2) Else if SYNAPSE_OPS_DOTENV_PATH is set, load only that file.
        3) Else load ".env.local" then ".env" from the current directory.

    Values already present in the environment are never overridden, so a
    file loaded earlier takes precedence over one loaded later.

    Returns the list of files that were found and loaded.
    """
    global _LOADED
    if _LOADED:
        return []

    explicit = dotenv_path or os.getenv("SYNAPSE_OPS_DOTENV_PATH")
    candidates = [explicit] if explicit else list(DEFAULT_DOTENV_FILES)

    loaded: List[str] = []
    for raw in candidates:
        path = Path(raw).expanduser()
        if not path.is_file():
            continue
        load_dotenv(dotenv_path=str(path), override=False)
        loaded.append(str(path))

    _LOADED = True
    return loaded


def reset_dotenv_state() -> None:
    """Allow a fresh load (tests)."""
    global _LOADED
    _LOADED = False
