"""
Model Cache
Transparent, in-memory read cache in front of model (data-access) classes

Implements:
- init(model) → wrapped model with cached reads and invalidating writes
- clear(*models) → clear models and everything associated with them
- size(*models) → number of stored entries
- purge(*models) → drop expired entries, evict when over limit
- stats → {hit, miss, load, purge, ratio, size}
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Union

from .associations import AssociationGraph
from .config import CacheConfig, CacheOptions, build_configs
from .eviction import PurgedEntry, purge
from .interception import CachedModel, model_name
from .key_codec import KeyCodec
from .stats import CacheEvent, StatsCollector
from .store import EntryStore

logger = logging.getLogger(__name__)


class ModelCache:
    """
    In-memory cache for asynchronous model operations.

    Design principles:
    - Transparent: callers keep calling the model the way they always did
    - One store per configured model, bounded by its limit
    - Writes clear the written model and every model associated with it
    - Best effort: staleness is bounded by TTL, not prevented
    """

    def __init__(
        self,
        config: Optional[Dict[str, Union[CacheConfig, Dict[str, Any], None]]] = None,
        options: Union[CacheOptions, Dict[str, Any], None] = None,
    ):
        """Initialize cache with per-model config and reporting options."""
        if not isinstance(options, CacheOptions):
            options = CacheOptions.from_dict(options)
        self.options = options
        self.config: Dict[str, CacheConfig] = build_configs(config)
        self.codec = KeyCodec()
        self.associations = AssociationGraph()
        self._stores: Dict[str, EntryStore] = {name: EntryStore(name) for name in self.config}
        self.stats = StatsCollector(
            verbose=options.debug,
            delegate=options.delegate,
            sizes=self.sizes,
        )
        self._heart: Optional[asyncio.Task] = None
        self._closed = False
        self.start_heartbeat()

        logger.info(f"ModelCache initialized for {len(self.config)} models")

    # Models

    def init(self, model: Any) -> CachedModel:
        """
        Wrap a model.

        Args:
            model: Model class (or object) exposing async read operations

        Returns:
            CachedModel; uncached models get a plain pass-through wrapper
        """
        name = model_name(model)
        config = self.config.get(name)
        if config is not None:
            self._stores.setdefault(name, EntryStore(name))
        self.stats.record(CacheEvent.INIT, {"type": name, **_describe(config)})
        logger.info(f"Wrapped model {name} ({'cached' if config else 'uncached'})")
        return CachedModel(self, model, config)

    wrap = init

    def store(self, name: str) -> EntryStore:
        return self._stores[name]

    def register_associations(self, name: str, associated: Iterable[str]) -> int:
        """Register ``name`` <-> each associated name. Returns the number of new edges."""
        added = self.associations.add_edges(name, [other for other in associated if other])
        if added:
            logger.debug(f"{name}: {added} new associations")
        return added

    def register_model_associations(self, model: Any) -> int:
        associations = getattr(model, "associations", None)
        if not associations:
            return 0
        if isinstance(associations, Mapping):
            associations = associations.values()
        return self.register_associations(
            model_name(model), [name for name in map(_association_target, associations) if name]
        )

    # Maintenance

    def _names(self, names: Iterable[str]) -> List[str]:
        names = list(names)
        return names if names else list(self._stores)

    def clear(self, *names: str) -> int:
        """Clear the given models (default: all) plus their association closure."""
        cleared = 0
        for name in self.associations.closure(self._names(names)):
            store = self._stores.get(name)
            if store is not None:
                cleared += store.clear()
        logger.debug(f"Cleared {cleared} cache entries ({', '.join(names) or 'all'})")
        return cleared

    def size(self, *names: str) -> int:
        return sum(self._stores[name].size() for name in self._names(names) if name in self._stores)

    def sizes(self) -> Dict[str, int]:
        return {name: store.size() for name, store in self._stores.items()}

    def purge(self, *names: str) -> List[PurgedEntry]:
        """Drop expired entries and evict the oldest entry of models over their limit."""
        purged: List[PurgedEntry] = []
        for name in self._names(names):
            store = self._stores.get(name)
            if store is None:
                continue
            purged.extend(purge(store, self.config[name].limit, on_purge=self._record_purge))
        return purged

    purge_all = purge

    def _record_purge(self, item: PurgedEntry) -> None:
        self.stats.record(CacheEvent.PURGE, {"hash": item.hash, "expires": item.expires})

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.snapshot()

    # Heartbeat

    @property
    def heartbeat_running(self) -> bool:
        return self._heart is not None and not self._heart.done()

    def start_heartbeat(self) -> bool:
        """Schedule the periodic ``ops`` report on the running loop, once."""
        if self._closed or self.options.ops <= 0:
            return False
        if self.heartbeat_running:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the first intercepted call starts it
            return False
        self._heart = loop.create_task(self._beat())
        return True

    async def _beat(self) -> None:
        while True:
            await asyncio.sleep(self.options.ops)
            self.stats.record(CacheEvent.OPS)

    def close(self) -> None:
        """Cancel the heartbeat. The cache stays usable, without reporting."""
        self._closed = True
        if self._heart is not None:
            self._heart.cancel()
            self._heart = None
            logger.info("ModelCache heartbeat stopped")

    async def aclose(self) -> None:
        heart = self._heart
        self.close()
        if heart is not None:
            try:
                await heart
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> "ModelCache":
        self.start_heartbeat()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _association_target(association: Any) -> Optional[str]:
    if isinstance(association, str):
        return association
    target = getattr(association, "target", association)
    if target is None or isinstance(target, str):
        return target
    return model_name(target)


def _describe(config: Optional[CacheConfig]) -> Dict[str, Any]:
    if config is None:
        return {}
    return {
        "ttl": config.ttl,
        "methods": sorted(config.methods),
        "methods_update": sorted(config.methods_update),
        "limit": config.limit,
        "clear_on_update": config.clear_on_update,
    }
