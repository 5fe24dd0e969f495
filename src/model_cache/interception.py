"""
Model Interception: Transparent Caching Wrappers

Implements:
- CachedModel: wraps a model, dispatches member access by classification
- CachedOperation: read-through caching for cacheable operations
- Invalidating operations clear the model's association closure on access
- The ``associate`` hook registers discovered associations after it runs
"""

import functools
import inspect
import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from .config import CacheConfig
from .errors import ContractViolation
from .stats import CacheEvent

if TYPE_CHECKING:
    from .cache import ModelCache

logger = logging.getLogger(__name__)

ASSOCIATE_HOOK = "associate"

_WRAPPER_SLOTS = frozenset({"_cache", "_model", "_config", "_type_name", "_members"})


class MemberKind(str, Enum):
    CACHED = "cached"
    INVALIDATING = "invalidating"
    ASSOCIATE = "associate"
    PASS_THROUGH = "pass_through"


def model_name(model: Any) -> str:
    """Name a model by its ``name`` string, falling back to ``__name__``."""
    name = getattr(model, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(model, "__name__", None) or type(model).__name__


def within_transaction(args: Sequence[Any], kwargs: Dict[str, Any]) -> bool:
    """
    True if the call carries an active transaction marker.

    Objects count only when ``transaction`` was set on the instance, so
    attributes a mock synthesizes on access never bypass the cache.
    """
    if kwargs.get("transaction"):
        return True
    for arg in args:
        if isinstance(arg, Mapping):
            if arg.get("transaction"):
                return True
        elif not isinstance(arg, type):
            attrs = getattr(arg, "__dict__", None)
            if isinstance(attrs, dict) and attrs.get("transaction"):
                return True
    return False


def classify(config: Optional[CacheConfig]) -> Dict[str, MemberKind]:
    """Build the member classification table for a model."""
    table: Dict[str, MemberKind] = {}
    if config is not None:
        table.update({name: MemberKind.CACHED for name in config.methods})
        # Writes win when a name is listed as both
        table.update({name: MemberKind.INVALIDATING for name in config.methods_update})
    table[ASSOCIATE_HOOK] = MemberKind.ASSOCIATE
    return table


class CachedOperation:
    """
    Read-through wrapper around one cacheable model operation.

    Calling it returns a coroutine. Attributes missing on the wrapper are
    read from the original member, so mock decorations stay reachable
    (``User.find_one.assert_called_once()``).
    """

    def __init__(self, cache: "ModelCache", model: Any, type_name: str, operation: str,
                 original: Any, config: CacheConfig):
        self._cache = cache
        self._model = model
        self._type_name = type_name
        self._operation = operation
        self._original = original
        self._config = config
        self.__name__ = operation
        self.__doc__ = getattr(original, "__doc__", None)

    def __getattr__(self, item: str) -> Any:
        original = self.__dict__.get("_original")
        if original is None:
            raise AttributeError(item)
        return getattr(original, item)

    def __repr__(self) -> str:
        return f"<CachedOperation {self._type_name}.{self._operation}>"

    def _invoke(self, args: Sequence[Any], kwargs: Dict[str, Any]) -> Any:
        result = self._original(*args, **kwargs)
        if not inspect.isawaitable(result):
            raise ContractViolation(
                f"{self._type_name}.{self._operation}() did not return an awaitable but should"
            )
        return result

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        cache = self._cache
        cache.start_heartbeat()

        if within_transaction(args, kwargs):
            return await self._invoke(args, kwargs)

        key, digest = cache.codec.key_for(self._type_name, self._operation, args, kwargs)
        store = cache.store(self._type_name)
        entry = store.get(digest)
        if entry is not None:
            cache.stats.record(CacheEvent.HIT, {"key": key, "hash": digest, "expires": entry.expires_at})
            return entry.data

        cache.stats.record(CacheEvent.MISS, {"key": key, "hash": digest})
        data = await self._invoke(args, kwargs)
        if data is not None:
            entry = store.set(digest, data, self._config.ttl)
            cache.stats.record(CacheEvent.LOAD, {"key": key, "hash": digest, "expires": entry.expires_at})
            if store.size() > self._config.limit:
                cache.purge(self._type_name)
        return data


class CachedModel:
    """
    Transparent wrapper returned by ``ModelCache.init``.

    Members are dispatched through a classification table built once:
    cacheable reads get a CachedOperation, writes clear the model's cache
    closure on access, ``associate`` registers associations, and everything
    else is read straight from the model.
    """

    def __init__(self, cache: "ModelCache", model: Any, config: Optional[CacheConfig] = None):
        object.__setattr__(self, "_cache", cache)
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_config", config)
        object.__setattr__(self, "_type_name", model_name(model))
        object.__setattr__(self, "_members", classify(config))

    def member_kind(self, name: str) -> MemberKind:
        return self._members.get(name, MemberKind.PASS_THROUGH)

    def __getattr__(self, name: str) -> Any:
        if name in _WRAPPER_SLOTS:
            raise AttributeError(name)
        kind = self.member_kind(name)
        original = getattr(self._model, name)

        if kind is MemberKind.ASSOCIATE:
            return self._wrap_associate(original) if callable(original) else original
        if self._config is None or kind is MemberKind.PASS_THROUGH:
            return original
        if kind is MemberKind.INVALIDATING:
            if self._config.clear_on_update:
                logger.debug(f"{self._type_name}.{name} accessed, clearing cache")
                self._cache.clear(self._type_name)
            return original
        return CachedOperation(self._cache, self._model, self._type_name, name, original, self._config)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._model, name, value)

    def __delattr__(self, name: str) -> None:
        delattr(self._model, name)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._model(*args, **kwargs)

    def __repr__(self) -> str:
        state = "cached" if self._config is not None else "uncached"
        return f"<CachedModel {self._type_name} ({state})>"

    def no_cache(self) -> Any:
        """Return the raw model, bypassing the cache."""
        return self._model

    def clear_cache(self) -> int:
        """Clear this model's cache and that of its associated models."""
        return self._cache.clear(self._type_name)

    def clear_cache_all(self) -> int:
        return self._cache.clear()

    def _wrap_associate(self, original: Any) -> Any:
        cache, model = self._cache, self._model

        @functools.wraps(original)
        def associate(*args: Any, **kwargs: Any) -> Any:
            result = original(*args, **kwargs)
            if inspect.isawaitable(result):
                return _register_after(result, cache, model)
            cache.register_model_associations(model)
            return result

        return associate


async def _register_after(awaitable: Any, cache: "ModelCache", model: Any) -> Any:
    result = await awaitable
    cache.register_model_associations(model)
    return result
