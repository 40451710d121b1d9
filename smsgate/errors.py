"""Request rejection taxonomy.

Every rejection is terminal for the request and is rendered as
``{"success": false, "message": ..., "error": <code>}`` with the mapped
HTTP status. Channel delivery errors never show up here individually; they
only escalate as ALL_CHANNELS_FAILED.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Request-level error codes."""

    AUTH_FAILED = "AUTH_FAILED"
    MALFORMED_BODY = "MALFORMED_BODY"
    INVALID_CONTENT = "INVALID_CONTENT"
    STALE_OR_FUTURE_TIMESTAMP = "STALE_OR_FUTURE_TIMESTAMP"
    RATE_LIMITED = "RATE_LIMITED"
    ALL_CHANNELS_FAILED = "ALL_CHANNELS_FAILED"


STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.AUTH_FAILED: 401,
    ErrorCode.MALFORMED_BODY: 400,
    ErrorCode.INVALID_CONTENT: 400,
    ErrorCode.STALE_OR_FUTURE_TIMESTAMP: 400,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.ALL_CHANNELS_FAILED: 502,
}


class RejectedRequest(Exception):
    """Raised by a pipeline stage to stop processing the request."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.extra = extra or {}

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE[self.code]

    def to_body(self) -> dict[str, Any]:
        """Render the JSON body returned to the caller."""
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error": self.code.value,
        }
        body.update(self.extra)
        return body
