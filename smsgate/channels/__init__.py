"""Push channel adapters."""

import httpx

from smsgate.channels.bark import BarkChannel
from smsgate.channels.base import NotificationChannel, WebhookTransport
from smsgate.channels.dingtalk import DingtalkChannel
from smsgate.channels.feishu import FeishuChannel
from smsgate.channels.wecom import WecomChannel
from smsgate.config import Settings


def build_channels(settings: Settings, client: httpx.AsyncClient) -> list[NotificationChannel]:
    """Build every channel adapter from settings.

    Unconfigured channels are included; they report "not configured"
    without making a request.
    """
    transport = WebhookTransport(
        client,
        user_agent=settings.user_agent,
        retry_attempts=settings.channel_retry_attempts,
    )
    return [
        FeishuChannel(transport, settings.feishu_webhook, settings.feishu_secret, settings.display_timezone),
        WecomChannel(transport, settings.wecom_webhook, settings.display_timezone),
        DingtalkChannel(transport, settings.dingtalk_webhook, settings.dingtalk_secret, settings.display_timezone),
        BarkChannel(transport, settings.bark_keys, settings.bark_server, settings.bark_group),
    ]


__all__ = [
    "BarkChannel",
    "DingtalkChannel",
    "FeishuChannel",
    "NotificationChannel",
    "WebhookTransport",
    "WecomChannel",
    "build_channels",
]
