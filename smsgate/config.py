"""Application configuration using pydantic-settings.

All environment variables are loaded from .env file or environment.
No hardcoded secrets, webhook URLs, or tokens.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Inbound authentication
    api_token: str = Field(..., description="Bearer token expected from the forwarding device")
    debug: bool = Field(
        default=False,
        description="Debug mode: validate and record dedup entries, skip all pushes",
    )

    # Key-value store
    storage_backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Backend for rate-limit counters and dedup records",
    )
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_password: str = Field(default="", description="Redis password (requirepass)")
    redis_db: int = Field(default=0, description="Redis database number")

    # Admission control
    rate_limit_max_requests: int = Field(default=10, description="Requests allowed per key per window")
    rate_limit_window_seconds: int = Field(default=60, description="Rate limit window length")
    dedup_ttl_seconds: int = Field(default=300, description="How long a content fingerprint blocks redelivery")
    timestamp_tolerance_seconds: int = Field(
        default=300,
        description="Allowed clock skew between the device timestamp and now, both directions",
    )

    # Feishu
    feishu_webhook: str = Field(default="", description="Feishu custom bot webhook URL")
    feishu_secret: str = Field(default="", description="Feishu bot signing secret (optional)")

    # WeCom
    wecom_webhook: str = Field(default="", description="WeCom group bot webhook URL")

    # DingTalk
    dingtalk_webhook: str = Field(default="", description="DingTalk robot webhook URL")
    dingtalk_secret: str = Field(default="", description="DingTalk robot signing secret (optional)")

    # Bark
    bark_keys: str = Field(
        default="",
        description="Comma-separated Bark device keys, optionally named as name:key",
    )
    bark_server: str = Field(default="https://api.day.app", description="Bark server base URL")
    bark_group: str = Field(default="SMS", description="Bark notification group")

    # Outbound transport
    channel_timeout_seconds: float = Field(default=10.0, description="Per-request webhook timeout")
    channel_retry_attempts: int = Field(
        default=2,
        description="Attempts per webhook request on connection errors",
    )
    user_agent: str = Field(default="SMS-Forwarder/1.0", description="User-Agent for outbound webhooks")

    # Presentation
    display_timezone: str = Field(
        default="Asia/Shanghai",
        description="Timezone for the human-readable time in notifications",
    )

    # Application settings
    app_name: str = Field(default="SMS Gate", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def redis_url(self) -> str:
        """Construct Redis URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Using @lru_cache prevents crash on import when .env is missing (e.g. during tests).
    Settings are loaded lazily on first access.
    """
    return Settings()
