"""Pydantic v2 models for data boundaries.

Everything that crosses a stage of the forwarding pipeline is one of these.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_SENDER = "unknown"


class InboundEvent(BaseModel):
    """Validated inbound SMS notification.

    Built once per request by the validator, discarded after the response.
    """

    model_config = ConfigDict(frozen=True)

    sender_id: str = Field(default=UNKNOWN_SENDER, description="Forwarding device name")
    content: str = Field(..., min_length=1, max_length=1000, description="Trimmed SMS text")
    declared_code: str | None = Field(default=None, description="Code supplied by the caller")
    timestamp_ms: int = Field(..., description="Device timestamp, epoch milliseconds")
    targets: list[str | None] | None = Field(
        default=None,
        description="Named broadcast targets (Bark keys); None means all",
    )
    client_ip: str | None = Field(default=None, description="First proxy-reported client address")


class DedupeRecord(BaseModel):
    """Value stored under a content fingerprint."""

    device: str
    timestamp: int = Field(..., description="Reservation time, epoch milliseconds")
    content: str = Field(..., max_length=100, description="First 100 characters of the content")


class RateLimitResult(BaseModel):
    """Verdict of one rate limit check."""

    allowed: bool
    error: str | None = None
    count: int = 0


class DedupResult(BaseModel):
    """Verdict of one dedup reservation."""

    duplicate: bool
    fingerprint: str


class Notification(BaseModel):
    """What every channel receives for one forwarded SMS."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    sender_id: str = UNKNOWN_SENDER
    code: str | None = None
    targets: list[str | None] | None = None

    @property
    def sender_label(self) -> str | None:
        """Sender shown in messages, None when the device is unknown."""
        if not self.sender_id or self.sender_id == UNKNOWN_SENDER:
            return None
        return self.sender_id


class ChannelResult(BaseModel):
    """Outcome of one channel for one notification."""

    channel: str
    success: bool
    error: str | None = None
    delivered_count: int = Field(default=0, ge=0)


class DispatchOutcome(BaseModel):
    """Aggregated outcome of all channels for one notification."""

    per_channel: dict[str, ChannelResult] = Field(default_factory=dict)

    @property
    def any_success(self) -> bool:
        return any(result.success for result in self.per_channel.values())

    def errors(self) -> dict[str, str | None]:
        """Error text of every failed channel."""
        return {
            name: result.error
            for name, result in self.per_channel.items()
            if not result.success
        }


class PipelineResponse(BaseModel):
    """HTTP-agnostic response produced by the pipeline."""

    status_code: int = 200
    body: dict[str, Any] = Field(default_factory=dict)
