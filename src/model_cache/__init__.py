"""
Model Cache
Transparent, client-side, in-memory read cache for async model classes
"""

from .associations import AssociationGraph
from .cache import ModelCache
from .config import (
    DEFAULT_METHODS,
    DEFAULT_UPDATE_METHODS,
    CacheConfig,
    CacheOptions,
    load_config,
)
from .errors import CacheError, ConfigError, ContractViolation, KeyDerivationError
from .eviction import PurgedEntry, purge
from .interception import CachedModel, CachedOperation, MemberKind, within_transaction
from .key_codec import KeyCodec, derive_key, hash_key
from .stats import CacheEvent, StatsCollector, log_delegate
from .store import CacheEntry, EntryStore

__version__ = "0.1.0"

__all__ = [
    'ModelCache', 'CachedModel', 'CachedOperation', 'MemberKind', 'within_transaction',
    'CacheConfig', 'CacheOptions', 'load_config', 'DEFAULT_METHODS', 'DEFAULT_UPDATE_METHODS',
    'CacheEntry', 'EntryStore', 'PurgedEntry', 'purge',
    'AssociationGraph',
    'KeyCodec', 'derive_key', 'hash_key',
    'CacheEvent', 'StatsCollector', 'log_delegate',
    'CacheError', 'ConfigError', 'ContractViolation', 'KeyDerivationError',
]
