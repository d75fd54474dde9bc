# src/synapse_ops/alerts/history.py
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from synapse_ops.alerts.evaluator import Alert
from synapse_ops.json_store import read_json, write_json

Json = Dict[str, Any]

DEFAULT_COOLDOWN_S = 15 * 60
ALERT_LOG_LIMIT = 100


class AlertHistory:
    """Rule id -> last time a notification for it went out.

    Owned by one dispatcher for the life of a process. A rule is suppressed
    until strictly more than cooldown_s has passed since it last fired.
    """

    def __init__(self, cooldown_s: float = DEFAULT_COOLDOWN_S, *, clock: Callable[[], float] = time.time) -> None:
        self.cooldown_s = float(cooldown_s)
        self._clock = clock
        self._last_sent: Dict[str, float] = {}

    def should_send(self, rule_id: str) -> bool:
        last = self._last_sent.get(rule_id)
        if last is None:
            return True
        return (self._clock() - last) > self.cooldown_s

    def mark_sent(self, rule_id: str) -> None:
        self._last_sent[rule_id] = self._clock()

    def last_sent(self, rule_id: str) -> Optional[float]:
        return self._last_sent.get(rule_id)

    def snapshot(self) -> Dict[str, float]:
        return dict(self._last_sent)


class AlertLog:
    """alerts-history.json: fired alerts, oldest first, capped at the newest 100."""

    def __init__(self, path: Union[str, Path], *, limit: int = ALERT_LOG_LIMIT) -> None:
        self.path = Path(path)
        self.limit = int(limit)

    def load(self) -> List[Json]:
        data = read_json(self.path, list)
        if not isinstance(data, list):
            return []
        return [x for x in data if isinstance(x, dict)]

    def append(self, alerts: Iterable[Alert]) -> List[Json]:
        new = [a.to_json() for a in alerts]
        if not new:
            return self.load()
        history = self.load() + new
        trimmed = history[-self.limit :]
        write_json(self.path, trimmed)
        return trimmed
