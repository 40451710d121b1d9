"""SMS forwarding pipeline.

validate → rate limit → dedup → (debug gate) → dispatch. Each stage runs
only if the previous one passed; a rejected request has no side effects
from later stages.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from smsgate.channels.base import NotificationChannel
from smsgate.config import Settings
from smsgate.core.dedup import Deduplicator
from smsgate.core.dispatch import DispatchCoordinator, select_title
from smsgate.core.rate_limit import RateLimiter, rate_key
from smsgate.core.timestamps import TimestampValidator
from smsgate.core.validator import RequestValidator, resolve_code
from smsgate.errors import ErrorCode, RejectedRequest
from smsgate.models import DispatchOutcome, Notification, PipelineResponse
from smsgate.storage.base import KeyValueStore

logger = logging.getLogger(__name__)


def outcome_body(outcome: DispatchOutcome, code: str | None) -> dict[str, Any]:
    """Success body: one flag per channel (Bark reports its delivery count)."""
    body: dict[str, Any] = {"success": True, "message": "forwarded", "code": code}
    for name, result in outcome.per_channel.items():
        body[name] = result.delivered_count if name == "bark" else result.success
    errors = outcome.errors()
    if errors:
        body["errors"] = errors
    return body


class SmsPipeline:
    """Wires validator, rate limiter, deduplicator and dispatcher together."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        channels: Sequence[NotificationChannel],
        validator: RequestValidator | None = None,
        rate_limiter: RateLimiter | None = None,
        deduplicator: Deduplicator | None = None,
    ) -> None:
        """Initialize pipeline from explicit configuration.

        Args:
            settings: Token, limits and TTLs
            store: Shared store for rate counters and dedup records
            channels: Channel adapters to fan out to
            validator: Override for tests (built from settings by default)
            rate_limiter: Override for tests
            deduplicator: Override for tests
        """
        self.settings = settings
        self.validator = validator or RequestValidator(
            settings.api_token,
            TimestampValidator(settings.timestamp_tolerance_seconds),
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            store,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        self.deduplicator = deduplicator or Deduplicator(store, ttl_seconds=settings.dedup_ttl_seconds)
        self.dispatcher = DispatchCoordinator(channels)

    async def handle(
        self,
        headers: Mapping[str, str],
        body: bytes,
        debug: bool = False,
    ) -> PipelineResponse:
        """Process one forward request.

        Args:
            headers: Request headers
            body: Raw request body
            debug: Request-scoped debug flag (?debug=true)

        Returns:
            PipelineResponse with HTTP status and JSON body
        """
        try:
            return await self._process(headers, body, debug or self.settings.debug)
        except RejectedRequest as e:
            return PipelineResponse(status_code=e.status_code, body=e.to_body())

    async def _process(self, headers: Mapping[str, str], body: bytes, debug: bool) -> PipelineResponse:
        event = self.validator.validate(headers, body)

        key = rate_key(event.sender_id, event.client_ip)
        rate = await self.rate_limiter.check_rate_limit(key)
        if not rate.allowed:
            raise RejectedRequest(ErrorCode.RATE_LIMITED, rate.error or "Too many requests")

        code = resolve_code(event)

        dedup = await self.deduplicator.check_and_reserve(event)
        if dedup.duplicate:
            return PipelineResponse(
                body={"success": True, "message": "skipped", "reason": "duplicate", "code": code},
            )

        # Debug mode keeps the dedup record, skips delivery
        if debug:
            logger.info("Debug mode: skipping all pushes")
            return PipelineResponse(
                body={
                    "success": True,
                    "message": "debug",
                    "code": code,
                    "note": "All pushes skipped in debug mode",
                },
            )

        notification = Notification(
            title=select_title(code),
            content=event.content,
            sender_id=event.sender_id,
            code=code,
            targets=event.targets,
        )
        outcome = await self.dispatcher.dispatch(notification)

        if not outcome.any_success:
            raise RejectedRequest(
                ErrorCode.ALL_CHANNELS_FAILED,
                "Push failed",
                extra={
                    "errors": {name: result.error for name, result in outcome.per_channel.items()},
                },
            )

        return PipelineResponse(body=outcome_body(outcome, code))
