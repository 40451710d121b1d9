"""Key-value store protocol.

Rate limiting and deduplication only need individual keys with TTLs.
Both RedisStorage and MemoryStorage satisfy this protocol.
"""

from typing import Protocol


class KeyValueStore(Protocol):
    """Protocol for TTL key-value stores."""

    async def get(self, key: str) -> str | None:
        """Get string value, None when missing or expired."""
        ...

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set only if the key does not exist.

        Returns:
            True if the key was created, False if it already existed
        """
        ...

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment integer value, creating it at 0 first. Returns new value."""
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        """Set expiration on an existing key."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys. Returns number of keys removed."""
        ...

    async def health_check(self) -> bool:
        """Check store availability."""
        ...
