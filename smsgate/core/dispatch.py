"""Concurrent fan-out to all channels and aggregation of their results."""

import asyncio
import logging
from collections.abc import Sequence

from smsgate.channels.base import NotificationChannel
from smsgate.models import ChannelResult, DispatchOutcome, Notification

logger = logging.getLogger(__name__)

CODE_TITLE = "📩 短信验证码"
MESSAGE_TITLE = "📩 新短信"


def select_title(code: str | None) -> str:
    """Verification-code title when a code is known, generic otherwise."""
    return CODE_TITLE if code else MESSAGE_TITLE


class DispatchCoordinator:
    """Sends one notification through every channel at once."""

    def __init__(self, channels: Sequence[NotificationChannel]) -> None:
        self.channels = list(channels)

    @property
    def channel_names(self) -> list[str]:
        return [channel.name for channel in self.channels]

    async def _send_one(self, channel: NotificationChannel, notification: Notification) -> ChannelResult:
        """Run one channel; an escaped exception becomes a failed result."""
        try:
            return await channel.send(notification)
        except Exception as e:
            logger.exception(f"Channel {channel.name} raised")
            return ChannelResult(channel=channel.name, success=False, error=str(e) or type(e).__name__)

    async def dispatch(self, notification: Notification) -> DispatchOutcome:
        """Send notification through all channels and wait for all of them.

        No short-circuit and no retry: a slow channel delays the outcome but
        never blocks the others.

        Args:
            notification: Message to deliver

        Returns:
            DispatchOutcome with one ChannelResult per channel, in channel order
        """
        results = await asyncio.gather(
            *(self._send_one(channel, notification) for channel in self.channels)
        )
        outcome = DispatchOutcome(
            per_channel={channel.name: result for channel, result in zip(self.channels, results)}
        )

        summary = ", ".join(
            f"{name}={result.delivered_count if name == 'bark' else result.success}"
            for name, result in outcome.per_channel.items()
        )
        if outcome.any_success:
            logger.info(f"SMS forwarded: code={notification.code}, {summary}")
        else:
            logger.error(f"All push channels failed: {summary}")
        return outcome
