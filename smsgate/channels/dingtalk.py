"""DingTalk robot adapter, actionCard message.

With a signing secret, timestamp (ms) and sign are appended to the webhook
URL query: sign = base64(HMAC-SHA256(key=secret, "{timestamp}\\n{secret}")).
"""

import base64
import hashlib
import hmac
import logging
import time

from smsgate.channels.base import WebhookTransport, format_local_time, not_configured
from smsgate.models import ChannelResult, Notification

logger = logging.getLogger(__name__)


def escape_dingtalk_markdown(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace("`", "\\`")
        .replace("*", "\\*")
        .replace("_", "\\_")
    )


def sign_dingtalk(secret: str, timestamp_ms: int) -> str:
    """DingTalk robot signature.

    Args:
        secret: Robot signing secret (SEC...)
        timestamp_ms: Epoch milliseconds, sent alongside the signature

    Returns:
        Base64 HMAC-SHA256 signature
    """
    secret = secret.strip()
    string_to_sign = f"{timestamp_ms}\n{secret}"
    digest = hmac.new(secret.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def build_dingtalk_markdown(notification: Notification, local_time: str) -> str:
    """Build DingTalk markdown text."""
    lines = [f"### {notification.title}", ""]

    if notification.code:
        lines.extend([f"> **🔐 验证码: `{notification.code}`**", "", "---", ""])

    lines.extend(["**📝 短信内容**", "", f"> {escape_dingtalk_markdown(notification.content)}", ""])

    if notification.sender_label:
        lines.extend([f"📱 **来自**: {notification.sender_label}", ""])

    lines.append(f"🕐 **时间**: {local_time}")
    return "\n".join(lines)


class DingtalkChannel:
    """DingTalk webhook adapter."""

    name = "dingtalk"

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
        """Send actionCard to DingTalk. Success requires HTTP 2xx and errcode == 0."""
        if not self.is_configured():
            return not_configured(self.name, "DingTalk webhook")

        params = None
        if self.secret:
            timestamp_ms = int(time.time() * 1000)
            params = {"timestamp": str(timestamp_ms), "sign": sign_dingtalk(self.secret, timestamp_ms)}

        payload = {
            "msgtype": "actionCard",
            "actionCard": {
                "title": notification.title,
                "text": build_dingtalk_markdown(notification, format_local_time(self.timezone_name)),
                "hideAvatar": "0",
                "btnOrientation": "0",
                "singleTitle": "查看详情",
                "singleURL": "dingtalk://dingtalkclient/action/openapp",
            },
        }

        try:
            response, result = await self.transport.post_json(self.webhook_url, payload, params=params)
        except Exception as e:
            logger.error(f"DingTalk push error: {e}")
            return ChannelResult(channel=self.name, success=False, error=str(e) or type(e).__name__)

        if response.is_success and result.get("errcode") == 0:
            logger.info("DingTalk push success")
            return ChannelResult(channel=self.name, success=True, delivered_count=1)

        error_msg = result.get("errmsg") or result.get("msg") or f"HTTP {response.status_code}"
        logger.error(f"DingTalk push failed: {error_msg}")
        return ChannelResult(channel=self.name, success=False, error=error_msg)
