"""Channel protocol and shared webhook transport.

Every push service gets one adapter implementing NotificationChannel.
Adapters share a single httpx client through WebhookTransport.
"""

import logging
from datetime import datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smsgate.models import ChannelResult, Notification

logger = logging.getLogger(__name__)


class NotificationChannel(Protocol):
    """Protocol for push channel adapters."""

    name: str

    def is_configured(self) -> bool:
        """Check that webhook or keys are configured.

        Returns:
            True if the channel can send, False otherwise
        """
        ...

    async def send(self, notification: Notification) -> ChannelResult:
        """Format and deliver one notification.

        Must not raise: transport and provider errors are returned as
        ChannelResult(success=False, error=...).

        Args:
            notification: Title, content, sender and code to deliver

        Returns:
            ChannelResult for this channel
        """
        ...


class WebhookTransport:
    """JSON-over-HTTP POST with connection-level retry."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str = "SMS-Forwarder/1.0",
        retry_attempts: int = 2,
    ) -> None:
        """Initialize transport.

        Args:
            client: Shared httpx client (timeouts are configured on it)
            user_agent: User-Agent header for every request
            retry_attempts: Attempts per request on connection errors
        """
        self.client = client
        self.user_agent = user_agent
        self.retry_attempts = max(1, retry_attempts)

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        params: dict[str, str] | None = None,
    ) -> tuple[httpx.Response, dict[str, Any]]:
        """POST payload as JSON.

        Only transport errors (connect, timeouts) are retried; HTTP error
        statuses are returned to the caller.

        Args:
            url: Webhook URL
            payload: JSON body
            params: Extra query parameters

        Returns:
            Tuple of (response, decoded JSON body or {} when not JSON)

        Raises:
            httpx.TransportError: When every attempt failed
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
        ):
            with attempt:
                response = await self.client.post(url, json=payload, params=params, headers=headers)
        return response, safe_json(response)


def safe_json(response: httpx.Response) -> dict[str, Any]:
    """Decode response body, {} when it is not a JSON object."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def format_local_time(timezone_name: str = "Asia/Shanghai", now: datetime | None = None) -> str:
    """Human-readable local time for message footers."""
    moment = now or datetime.now(ZoneInfo(timezone_name))
    return moment.astimezone(ZoneInfo(timezone_name)).strftime("%Y/%m/%d %H:%M:%S")


def not_configured(channel: str, what: str) -> ChannelResult:
    """Result for a channel without webhook or keys."""
    logger.warning(f"No {what} configured")
    return ChannelResult(channel=channel, success=False, error=f"{what} not configured")
