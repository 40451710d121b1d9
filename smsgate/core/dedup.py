"""Inbound SMS deduplication.

SET sms:{fingerprint} NX EX 300. If the key exists the SMS is a duplicate
and is acknowledged without pushing.
"""

import logging
import time
from collections.abc import Callable

from redis.exceptions import RedisError

from smsgate.core.fingerprint import compute_fingerprint, get_dedup_key
from smsgate.models import DedupeRecord, DedupResult, InboundEvent
from smsgate.storage.base import KeyValueStore

logger = logging.getLogger(__name__)

CONTENT_PREFIX_LENGTH = 100


class Deduplicator:
    """Short-TTL reservation of content fingerprints."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _build_record(self, event: InboundEvent) -> DedupeRecord:
        return DedupeRecord(
            device=event.sender_id,
            timestamp=int(self._clock() * 1000),
            content=event.content[:CONTENT_PREFIX_LENGTH],
        )

    async def check_and_reserve(self, event: InboundEvent) -> DedupResult:
        """Check if event is a duplicate and reserve its fingerprint if not.

        Uses a single conditional write, so two concurrent identical requests
        cannot both pass. Store failures fail open (event treated as new).

        Args:
            event: Validated inbound event

        Returns:
            DedupResult with duplicate flag and fingerprint
        """
        fingerprint = compute_fingerprint(event.sender_id, event.content)
        key = get_dedup_key(fingerprint)
        record = self._build_record(event)

        try:
            # True if key was created (new), False if already exists (duplicate)
            is_new = await self.store.setnx(key, record.model_dump_json(), ex=self.ttl_seconds)
        except (RedisError, OSError) as e:
            logger.warning(f"Dedup store unavailable, treating {fingerprint[:8]} as new: {e}")
            return DedupResult(duplicate=False, fingerprint=fingerprint)

        if not is_new:
            logger.info(f"Duplicate SMS detected: {fingerprint[:8]}...")
        return DedupResult(duplicate=not is_new, fingerprint=fingerprint)

    async def get_record(self, event: InboundEvent) -> DedupeRecord | None:
        """Load the reservation for event, None if absent or expired."""
        key = get_dedup_key(compute_fingerprint(event.sender_id, event.content))
        raw = await self.store.get(key)
        if raw is None:
            return None
        return DedupeRecord.model_validate_json(raw)

    async def release(self, event: InboundEvent) -> None:
        """Release reservation (lets the same content through again).

        Args:
            event: Event whose fingerprint should be forgotten
        """
        key = get_dedup_key(compute_fingerprint(event.sender_id, event.content))
        await self.store.delete(key)
