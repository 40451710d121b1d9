"""Shared fixtures: settings, counting store, fake channels."""

import json
import time
from typing import Any

import pytest

from smsgate.config import Settings
from smsgate.models import ChannelResult, Notification
from smsgate.storage.memory import MemoryStorage

API_TOKEN = "test-token"


class CountingStore(MemoryStorage):
    """MemoryStorage that records every call."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[str] = []

    async def get(self, key: str) -> str | None:
        self.calls.append("get")
        return await super().get(key)

    async def setnx(self, key: str, value: str, ex: int | None = None) -> bool:
        self.calls.append("setnx")
        return await super().setnx(key, value, ex=ex)

    async def incr(self, key: str, amount: int = 1) -> int:
        self.calls.append("incr")
        return await super().incr(key, amount)

    async def expire(self, key: str, seconds: int) -> bool:
        self.calls.append("expire")
        return await super().expire(key, seconds)

    async def delete(self, *keys: str) -> int:
        self.calls.append("delete")
        return await super().delete(*keys)


class FakeChannel:
    """Channel that records notifications and returns a fixed verdict."""

    def __init__(
        self,
        name: str,
        success: bool = True,
        error: str | None = None,
        delivered_count: int | None = None,
        configured: bool = True,
    ) -> None:
        self.name = name
        self.success = success
        self.error = error
        self.delivered_count = delivered_count
        self.configured = configured
        self.sent: list[Notification] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, notification: Notification) -> ChannelResult:
        if not self.configured:
            return ChannelResult(channel=self.name, success=False, error=f"{self.name} not configured")
        self.sent.append(notification)
        delivered = self.delivered_count if self.delivered_count is not None else int(self.success)
        return ChannelResult(
            channel=self.name,
            success=self.success,
            error=None if self.success else (self.error or "push failed"),
            delivered_count=delivered,
        )


def make_body(**fields: Any) -> bytes:
    """JSON body with a fresh timestamp unless one is given."""
    fields.setdefault("timestamp", int(time.time() * 1000))
    return json.dumps(fields).encode("utf-8")


def auth_headers(token: str = API_TOKEN, **extra: str) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
    headers.update(extra)
    return headers


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of the environment."""
    return Settings(
        _env_file=None,
        api_token=API_TOKEN,
        debug=False,
        storage_backend="memory",
        feishu_webhook="",
        wecom_webhook="",
        dingtalk_webhook="",
        bark_keys="",
        rate_limit_max_requests=3,
        rate_limit_window_seconds=60,
        channel_retry_attempts=1,
    )


@pytest.fixture
def store() -> CountingStore:
    return CountingStore()


@pytest.fixture
def channels() -> list[FakeChannel]:
    return [
        FakeChannel("feishu"),
        FakeChannel("wecom"),
        FakeChannel("dingtalk"),
        FakeChannel("bark", delivered_count=2),
    ]
