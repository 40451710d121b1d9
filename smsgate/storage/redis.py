"""Redis connection pool and utilities.

Redis stores rate-limit counters and dedup reservations, both with TTLs.
"""

from redis.asyncio import ConnectionPool, Redis

from smsgate.config import Settings, get_settings


class RedisStorage:
    """Redis storage with connection pool."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize Redis storage (pool is created on connect)."""
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Create connection pool and connect to Redis."""
        settings = self._settings or get_settings()
        self._pool = ConnectionPool.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
        self._client = Redis(connection_pool=self._pool)

    async def disconnect(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.disconnect()
            self._pool = None

    @property
    def client(self) -> Redis:
        """Get Redis client. Raises if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set if not exists with optional expiration."""
        return bool(await self.client.set(key, value, nx=True, ex=ex))

    async def delete(self, *keys: str) -> int:
        """Delete keys."""
        return await self.client.delete(*keys)

    async def expire(self, key: str, seconds: int) -> bool:
        """Set expiration on key."""
        return bool(await self.client.expire(key, seconds))

    async def incr(self, key: str, amount: int = 1) -> int:
        """Increment key by amount."""
        return await self.client.incrby(key, amount)

    async def get(self, key: str) -> str | None:
        """Get string value."""
        return await self.client.get(key)

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            await self.client.ping()
            return True
        except Exception:
            return False
