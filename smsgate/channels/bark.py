"""Bark (iOS push) broadcast adapter.

BARK_KEYS holds one or more device keys, each optionally named:
"me:AbCdEf,wife:GhIjKl" or "AbCdEf". Requests may name targets; every
selected key gets its own push and the result counts deliveries.
"""

import asyncio
import logging
from typing import Any

from smsgate.channels.base import WebhookTransport, not_configured
from smsgate.models import ChannelResult, Notification

logger = logging.getLogger(__name__)


def parse_bark_keys(raw: str) -> dict[str, str]:
    """Parse BARK_KEYS into {name: device_key}.

    Args:
        raw: Comma-separated entries, "name:key" or bare "key"

    Returns:
        Ordered mapping; bare keys are named by themselves
    """
    keys: dict[str, str] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, sep, key = entry.partition(":")
        if sep:
            name, key = name.strip(), key.strip()
        else:
            name = key = entry
        if name and key:
            keys[name] = key
    return keys


def build_bark_content(notification: Notification) -> tuple[str, str]:
    """Bark title and body. The code goes in the title so it shows on the lock screen."""
    title = f"验证码 {notification.code}" if notification.code else notification.title
    body = notification.content
    if notification.sender_label:
        body = f"{body}\n📱 来自: {notification.sender_label}"
    return title, body


class BarkChannel:
    """Bark push adapter with named targets."""

    name = "bark"

    def __init__(
        self,
        transport: WebhookTransport,
        keys: str | dict[str, str],
        server: str = "https://api.day.app",
        group: str = "SMS",
    ) -> None:
        self.transport = transport
        self.keys = parse_bark_keys(keys) if isinstance(keys, str) else dict(keys)
        self.push_url = f"{server.rstrip('/')}/push"
        self.group = group

    def is_configured(self) -> bool:
        return bool(self.keys)

    def select_keys(self, targets: list[str | None] | None) -> tuple[dict[str, str], list[str]]:
        """Resolve requested targets to device keys.

        Null entries are ignored; no named target means every key.

        Returns:
            Tuple of (selected {name: key}, unknown target names)
        """
        names = [t.strip() for t in (targets or []) if isinstance(t, str) and t.strip()]
        if not names:
            return dict(self.keys), []

        selected: dict[str, str] = {}
        unknown: list[str] = []
        for name in names:
            if name in self.keys:
                selected[name] = self.keys[name]
            elif name not in unknown:
                unknown.append(name)
        return selected, unknown

    async def _push_one(self, name: str, device_key: str, payload: dict[str, Any]) -> str | None:
        """Push to one device. Returns error text, None on success."""
        try:
            response, result = await self.transport.post_json(
                self.push_url,
                {**payload, "device_key": device_key},
            )
        except Exception as e:
            return f"{name}: {str(e) or type(e).__name__}"

        if response.is_success and result.get("code") == 200:
            return None
        return f"{name}: {result.get('message') or f'HTTP {response.status_code}'}"

    async def send(self, notification: Notification) -> ChannelResult:
        """Push to every selected key concurrently.

        success is True when at least one key received the push.
        """
        if not self.is_configured():
            return not_configured(self.name, "Bark keys")

        selected, unknown = self.select_keys(notification.targets)
        errors = [f"{name}: unknown target" for name in unknown]

        title, body = build_bark_content(notification)
        payload: dict[str, Any] = {"title": title, "body": body, "group": self.group}
        if notification.code:
            payload["copy"] = notification.code

        outcomes = await asyncio.gather(
            *(self._push_one(name, key, payload) for name, key in selected.items())
        )
        errors.extend(error for error in outcomes if error)
        delivered = sum(1 for error in outcomes if error is None)

        if delivered:
            logger.info(f"Bark push success: {delivered}/{len(selected)}")
        else:
            logger.error(f"Bark push failed: {errors}")

        return ChannelResult(
            channel=self.name,
            success=delivered > 0,
            error="; ".join(errors) if errors else None,
            delivered_count=delivered,
        )
