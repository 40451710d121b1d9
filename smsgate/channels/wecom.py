"""WeCom (WeChat Work) group bot adapter, markdown message."""

import logging

from smsgate.channels.base import WebhookTransport, format_local_time, not_configured
from smsgate.models import ChannelResult, Notification

logger = logging.getLogger(__name__)


def escape_wecom_markdown(text: str) -> str:
    return text.replace("<", "&lt;").replace(">", "&gt;")


def build_wecom_markdown(notification: Notification, local_time: str) -> str:
    """Build WeCom markdown text.

    WeCom supports <font color="info|comment|warning"> for highlights.
    """
    lines = [f"### {notification.title}"]

    if notification.code:
        lines.append(f'> **🔐 验证码: <font color="warning">{notification.code}</font>**')
        lines.append("")

    lines.append("**📝 短信内容**")
    lines.append(f"> {escape_wecom_markdown(notification.content)}")
    lines.append("")

    if notification.sender_label:
        lines.append(f"📱 **来自**: {notification.sender_label}")

    lines.append(f"🕐 **时间**: {local_time}")
    return "\n".join(lines)


class WecomChannel:
    """WeCom webhook adapter."""

    name = "wecom"

    def __init__(
        self,
        transport: WebhookTransport,
        webhook_url: str,
        timezone_name: str = "Asia/Shanghai",
    ) -> None:
        self.transport = transport
        self.webhook_url = webhook_url
        self.timezone_name = timezone_name

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, notification: Notification) -> ChannelResult:
        """Send markdown to WeCom. Success requires HTTP 2xx and errcode == 0."""
        if not self.is_configured():
            return not_configured(self.name, "WeCom webhook")

        payload = {
            "msgtype": "markdown",
            "markdown": {"content": build_wecom_markdown(notification, format_local_time(self.timezone_name))},
        }

        try:
            response, result = await self.transport.post_json(self.webhook_url, payload)
        except Exception as e:
            logger.error(f"WeCom push error: {e}")
            return ChannelResult(channel=self.name, success=False, error=str(e) or type(e).__name__)

        if response.is_success and result.get("errcode") == 0:
            logger.info("WeCom push success")
            return ChannelResult(channel=self.name, success=True, delivered_count=1)

        error_msg = result.get("errmsg") or result.get("msg") or f"HTTP {response.status_code}"
        logger.error(f"WeCom push failed: {error_msg}")
        return ChannelResult(channel=self.name, success=False, error=error_msg)
