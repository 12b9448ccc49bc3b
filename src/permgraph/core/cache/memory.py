"""In-process cache store with per-key expiry and a size bound."""

import time
from collections import OrderedDict

from permgraph.core.constants import DEFAULT_MEMORY_CACHE_MAX_ENTRIES, MEMORY_CACHE_SWEEP_SECONDS


class MemoryCacheStore:
    """Dictionary-backed ``CacheStore`` with TTL and LRU eviction.

    Expired entries are dropped when read and, at most once per
    ``sweep_interval``, swept in bulk on write. Beyond ``max_entries`` the
    least recently used entry is evicted. Each operation is a single
    synchronous step, so it is safe to share between coroutines on one loop.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MEMORY_CACHE_MAX_ENTRIES,
        sweep_interval: float = MEMORY_CACHE_SWEEP_SECONDS,
    ) -> None:
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._data: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        self._next_sweep = time.monotonic() + sweep_interval

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        now = time.monotonic()
        if now >= self._next_sweep:
            self._sweep(now)

        self._data[key] = (value, now + ttl_seconds if ttl_seconds else None)
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._data if key.startswith(prefix)]
        for key in keys:
            del self._data[key]
        return len(keys)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
        self._next_sweep = now + self.sweep_interval
