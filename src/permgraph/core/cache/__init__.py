"""Cache module for permission decisions.

Provides:
- The ``CacheStore`` protocol and its Redis and in-memory implementations
- ``PermissionCache``, the scoped, fail-silent decision cache
"""

from permgraph.core.cache.base import CacheStore
from permgraph.core.cache.manager import PermissionCache, escape_subject
from permgraph.core.cache.memory import MemoryCacheStore
from permgraph.core.cache.redis import RedisCacheStore, escape_glob


__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "PermissionCache",
    "RedisCacheStore",
    "escape_glob",
    "escape_subject",
]
