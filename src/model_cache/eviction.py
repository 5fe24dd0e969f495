"""
Eviction policy for entry stores.

One pass over the store:
1. expired entries are deleted as they are met
2. the live entry with the earliest expiry is remembered
3. if the store is still over its limit, that single entry is deleted

Entries that never expire are only considered when no expiring entry is
left; then the oldest inserted one goes. Repeated purges converge back
under the limit.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .store import EntryStore, Expiry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurgedEntry:
    hash: str
    expires: Expiry
    expired: bool


def purge(
    store: EntryStore,
    limit: int,
    on_purge: Optional[Callable[[PurgedEntry], None]] = None,
) -> List[PurgedEntry]:
    """Purge expired entries and evict at most one live entry if over ``limit``.

    Args:
        store: Store to scan
        limit: Maximum number of entries the store should hold
        on_purge: Called once per deleted entry

    Returns:
        Deleted entries in deletion order
    """
    now = time.time()
    purged: List[PurgedEntry] = []
    oldest: Optional[PurgedEntry] = None
    first_forever: Optional[str] = None

    def _drop(item: PurgedEntry) -> None:
        store.delete(item.hash)
        purged.append(item)
        if on_purge is not None:
            on_purge(item)

    for digest, entry in store.entries():
        if entry.expires_at and entry.expires_at <= now:
            _drop(PurgedEntry(hash=digest, expires=entry.expires_at, expired=True))
        elif entry.expires_at:
            if oldest is None or entry.expires_at < oldest.expires:
                oldest = PurgedEntry(hash=digest, expires=entry.expires_at, expired=False)
        elif first_forever is None:
            first_forever = digest

    if store.size() > limit:
        if oldest is None and first_forever is not None:
            oldest = PurgedEntry(hash=first_forever, expires=False, expired=False)
        if oldest is not None:
            _drop(oldest)

    if purged:
        logger.debug(f"Purged {len(purged)} entries from {store.name or 'store'} (limit={limit})")
    return purged
