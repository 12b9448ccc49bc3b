"""Key-value store protocol the result cache is built on."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    """Minimal string key-value store with TTLs and prefix deletion."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` and return how many went."""
        ...
