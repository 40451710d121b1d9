"""In-process TTL store.

Used with STORAGE_BACKEND=memory for single-instance deployments and in
tests. Not shared between processes.
"""

import time
from collections.abc import Callable


class MemoryStorage:
    """Dict-backed store with Redis-like TTL semantics."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}

    def _purge(self, key: str) -> None:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def _store(self, key: str, value: str, ex: int | None) -> None:
        self._data[key] = value
        if ex is None:
            self._expires.pop(key, None)
        else:
            self._expires[key] = self._clock() + ex

    async def connect(self) -> None:
        """No-op, kept for lifespan symmetry with RedisStorage."""

    async def disconnect(self) -> None:
        self._data.clear()
        self._expires.clear()

    async def get(self, key: str) -> str | None:
        self._purge(key)
        return self._data.get(key)

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        self._purge(key)
        if key in self._data:
            return False
        self._store(key, value, ex)
        return True

    async def incr(self, key: str, amount: int = 1) -> int:
        self._purge(key)
        current = int(self._data.get(key, "0"))
        new_value = current + amount
        # INCR keeps the existing TTL
        self._data[key] = str(new_value)
        return new_value

    async def expire(self, key: str, seconds: int) -> bool:
        self._purge(key)
        if key not in self._data:
            return False
        self._expires[key] = self._clock() + seconds
        return True

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            self._purge(key)
            if key in self._data:
                del self._data[key]
                self._expires.pop(key, None)
                deleted += 1
        return deleted

    async def health_check(self) -> bool:
        return True

    def size(self) -> int:
        """Number of live keys."""
        for key in list(self._data):
            self._purge(key)
        return len(self._data)
