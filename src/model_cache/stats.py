"""Hit/miss/load/purge counters and event reporting."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("model_cache")

Delegate = Callable[[str, Dict[str, Any]], None]


class CacheEvent(str, Enum):
    HIT = "hit"
    MISS = "miss"
    LOAD = "load"
    PURGE = "purge"
    INIT = "init"
    OPS = "ops"


COUNTED = (CacheEvent.HIT, CacheEvent.MISS, CacheEvent.LOAD, CacheEvent.PURGE)


def log_delegate(event: str, details: Dict[str, Any]) -> None:
    """Default delegate: one DEBUG line per event on the ``model_cache`` logger."""
    logger.debug(f"CACHE {event.upper()} {details}")


class StatsCollector:
    """
    Process-wide cache counters.

    Counters always increase. Events reach the delegate only when ``verbose``
    is set, except the ``ops`` heartbeat which is always reported.
    """

    def __init__(
        self,
        verbose: bool = False,
        delegate: Optional[Delegate] = None,
        sizes: Optional[Callable[[], Dict[str, int]]] = None,
    ) -> None:
        self.verbose = verbose
        self.delegate = delegate or log_delegate
        self._sizes = sizes or dict
        self.counters: Dict[str, int] = {event.value: 0 for event in COUNTED}

    @property
    def ratio(self) -> float:
        lookups = self.counters["hit"] + self.counters["miss"]
        return self.counters["hit"] / lookups if lookups else 0.0

    def record(self, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        event = CacheEvent(event).value
        if event in self.counters:
            self.counters[event] += 1
        if not self.verbose and event != CacheEvent.OPS.value:
            return
        self.delegate(event, {**(details or {}), **self.snapshot()})

    def snapshot(self) -> Dict[str, Any]:
        return {
            **self.counters,
            "ratio": self.ratio,
            "size": self._sizes(),
        }
