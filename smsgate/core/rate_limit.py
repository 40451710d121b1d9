"""Rate limiter: fixed-window request counters in the key-value store.

One counter per sender key and window. Counter is read first and only
incremented when the request is admitted, so rejected requests do not
extend a burst.
"""

import logging
import time
from collections.abc import Callable

from redis.exceptions import RedisError

from smsgate.models import UNKNOWN_SENDER, RateLimitResult
from smsgate.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


def rate_key(device: str | None, client_ip: str | None) -> str:
    """Derive the rate limit key.

    Precedence: known device, then client address, then the literal "unknown".

    Args:
        device: Trimmed device name ("unknown" or empty when missing)
        client_ip: First address reported by the proxy headers

    Returns:
        Rate limit key
    """
    if device and device != UNKNOWN_SENDER:
        return f"device:{device}"
    if client_ip:
        return f"ip:{client_ip}"
    return UNKNOWN_SENDER


class RateLimiter:
    """Fixed-window rate limiter backed by a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        max_requests: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize rate limiter.

        Args:
            store: Store holding the counters
            max_requests: Requests admitted per key per window
            window_seconds: Window length in seconds
            clock: Wall clock in seconds
        """
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def _get_window_key(self, key: str) -> tuple[str, int]:
        """Get store key for the current window and seconds left in it."""
        now = self._clock()
        window = int(now // self.window_seconds)
        remaining = max(1, int((window + 1) * self.window_seconds - now))
        return f"rate:{key}:{window}", remaining

    async def check_rate_limit(self, key: str) -> RateLimitResult:
        """Check and count one request for key.

        Store failures fail open: the request is admitted and a warning logged.

        Args:
            key: Rate limit key from rate_key()

        Returns:
            RateLimitResult with allowed flag and reason when rejected
        """
        window_key, remaining = self._get_window_key(key)
        try:
            current_str = await self.store.get(window_key)
            current = int(current_str) if current_str else 0

            # Check limit before incrementing
            if current >= self.max_requests:
                logger.info(f"Rate limit hit for {key}: {current}/{self.max_requests}")
                return RateLimitResult(
                    allowed=False,
                    error=f"Rate limit exceeded, retry in {remaining}s",
                    count=current,
                )

            new_count = await self.store.incr(window_key, 1)
            await self.store.expire(window_key, self.window_seconds)
        except (RedisError, OSError) as e:
            logger.warning(f"Rate limit store unavailable, allowing request for {key}: {e}")
            return RateLimitResult(allowed=True)

        return RateLimitResult(allowed=True, count=new_count)
