"""Per-model entry store with TTL semantics."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple, Union

Expiry = Union[float, bool]


def compute_expiry(ttl: Union[int, float, bool, None], now: Optional[float] = None) -> Expiry:
    """Absolute expiry for a TTL in seconds; False means the entry never expires."""
    if ttl is None or isinstance(ttl, bool) or ttl <= 0:
        return False
    return (time.time() if now is None else now) + ttl


@dataclass
class CacheEntry:
    data: Any
    expires_at: Expiry = False

    def is_live(self, now: Optional[float] = None) -> bool:
        if not self.expires_at:
            return True
        return self.expires_at > (time.time() if now is None else now)

    def is_expired(self, now: Optional[float] = None) -> bool:
        return not self.is_live(now)


class EntryStore:
    """Mapping of key hash to CacheEntry for a single model.

    Iteration follows insertion order; overwriting a hash moves it to the end.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, digest: str) -> Optional[CacheEntry]:
        """Return the live entry for ``digest`` or None if absent or stale."""
        entry = self._entries.get(digest)
        if entry is None or not entry.is_live():
            return None
        return entry

    def set(self, digest: str, data: Any, ttl: Union[int, float, bool, None]) -> Optional[CacheEntry]:
        if data is None:
            return None
        entry = CacheEntry(data=data, expires_at=compute_expiry(ttl))
        self._entries.pop(digest, None)
        self._entries[digest] = entry
        return entry

    def delete(self, digest: str) -> bool:
        return self._entries.pop(digest, None) is not None

    def clear(self) -> int:
        cleared = len(self._entries)
        self._entries.clear()
        return cleared

    def size(self) -> int:
        return len(self._entries)

    def entries(self) -> Iterator[Tuple[str, CacheEntry]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, digest: object) -> bool:
        return digest in self._entries
