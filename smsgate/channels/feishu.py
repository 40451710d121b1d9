"""Feishu (Lark) custom bot adapter.

Sends an interactive card. When a signing secret is configured the body
carries timestamp + sign (HMAC-SHA256 of "{timestamp}\\n{secret}", base64).
"""

import base64
import hashlib
import hmac
import logging
import time
from typing import Any

from smsgate.channels.base import WebhookTransport, format_local_time, not_configured
from smsgate.models import ChannelResult, Notification

logger = logging.getLogger(__name__)


def escape_lark_md(text: str) -> str:
    """Escape the few characters lark_md treats specially."""
    return text.replace("\\", "\\\\").replace("*", "\\*").replace("`", "\\`")


def generate_signature(timestamp: int, secret: str) -> str:
    """Feishu webhook signature.

    Args:
        timestamp: Unix timestamp in seconds
        secret: Bot signing secret

    Returns:
        Base64 HMAC-SHA256 signature
    """
    string_to_sign = f"{timestamp}\n{secret}"
    hmac_code = hmac.new(string_to_sign.encode("utf-8"), digestmod=hashlib.sha256).digest()
    return base64.b64encode(hmac_code).decode("utf-8")


def build_feishu_card(notification: Notification, local_time: str) -> dict[str, Any]:
    """Build Feishu interactive card payload."""
    elements: list[dict[str, Any]] = []

    if notification.code:
        elements.append({
            "tag": "div",
            "text": {"tag": "lark_md", "content": f"**🔐 验证码: `{notification.code}`**"},
        })
        elements.append({"tag": "hr"})

    elements.append({
        "tag": "div",
        "text": {"tag": "lark_md", "content": f"📝 **短信内容**\n{escape_lark_md(notification.content)}"},
    })

    if notification.sender_label:
        elements.append({
            "tag": "note",
            "elements": [{"tag": "plain_text", "content": f"📱 来自: {notification.sender_label}"}],
        })

    elements.append({
        "tag": "note",
        "elements": [{"tag": "plain_text", "content": f"🕐 {local_time}"}],
    })

    return {
        "msg_type": "interactive",
        "card": {
            "header": {
                "title": {"tag": "plain_text", "content": notification.title},
                "template": "blue" if notification.code else "turquoise",
            },
            "elements": elements,
        },
    }


class FeishuChannel:
    """Feishu webhook adapter."""

    name = "feishu"

    def __init__(
        self,
        transport: WebhookTransport,
        webhook_url: str,
        secret: str = "",
        timezone_name: str = "Asia/Shanghai",
    ) -> None:
        self.transport = transport
        self.webhook_url = webhook_url
        self.secret = secret.strip()
        self.timezone_name = timezone_name

    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, notification: Notification) -> ChannelResult:
        """Send card to Feishu. Success requires HTTP 2xx and code == 0."""
        if not self.is_configured():
            return not_configured(self.name, "Feishu webhook")

        payload = build_feishu_card(notification, format_local_time(self.timezone_name))
        if self.secret:
            timestamp = int(time.time())
            payload["timestamp"] = str(timestamp)
            payload["sign"] = generate_signature(timestamp, self.secret)

        try:
            response, result = await self.transport.post_json(self.webhook_url, payload)
        except Exception as e:
            logger.error(f"Feishu push error: {e}")
            return ChannelResult(channel=self.name, success=False, error=str(e) or type(e).__name__)

        if response.is_success and result.get("code") == 0:
            logger.info("Feishu push success")
            return ChannelResult(channel=self.name, success=True, delivered_count=1)

        error_msg = result.get("msg") or result.get("message") or f"HTTP {response.status_code}"
        logger.error(f"Feishu push failed: {error_msg}")
        return ChannelResult(channel=self.name, success=False, error=error_msg)
