"""Inbound request validation.

Authentication, body parsing, content coercion and timestamp freshness.
Pure gate: it never touches a store.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from smsgate.core.codes import extract_code
from smsgate.core.timestamps import TimestampValidator
from smsgate.errors import ErrorCode, RejectedRequest
from smsgate.models import UNKNOWN_SENDER, InboundEvent

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1000

# JSON "\ud800" escapes decode to lone surrogates, which cannot be encoded as UTF-8
_LONE_SURROGATE = re.compile(r"[\ud800-\udfff]")


def replace_lone_surrogates(text: str) -> str:
    """Replace unpaired surrogates with U+FFFD."""
    return _LONE_SURROGATE.sub("\ufffd", text)


def coerce_content(value: Any) -> str:
    """Coerce any JSON value to text the way loosely-typed callers expect.

    iOS Shortcuts, generic webhooks and curl send numbers, booleans or null
    here. None becomes "", booleans "true"/"false", integral floats lose
    their ".0", containers become JSON text. Unpaired surrogates become U+FFFD.
    """
    return replace_lone_surrogates(_coerce(value))


def _coerce(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _first_token(value: str | None) -> str:
    return (value or "").split(",")[0].strip()


def client_ip_from_headers(headers: Mapping[str, str]) -> str | None:
    """First address from CF-Connecting-IP, else X-Forwarded-For."""
    raw = headers.get("cf-connecting-ip") or headers.get("x-forwarded-for") or ""
    return _first_token(raw) or None


class RequestValidator:
    """Turns raw headers and body into an InboundEvent or a rejection."""

    def __init__(self, api_token: str, timestamp_validator: TimestampValidator) -> None:
        self.expected_auth = f"Bearer {api_token}"
        self.timestamp_validator = timestamp_validator

    def authenticate(self, headers: Mapping[str, str]) -> None:
        """Check the bearer token.

        Raises:
            RejectedRequest: AUTH_FAILED on missing or wrong token
        """
        auth = (headers.get("authorization") or "").strip()
        if auth != self.expected_auth:
            logger.info("Auth failed")
            raise RejectedRequest(ErrorCode.AUTH_FAILED, "Unauthorized")

    def parse_body(self, body: bytes) -> dict[str, Any]:
        """Parse JSON body; non-object JSON is treated as an empty object.

        Raises:
            RejectedRequest: MALFORMED_BODY when body is not JSON
        """
        try:
            data = json.loads(body)
        except (ValueError, TypeError):
            raise RejectedRequest(ErrorCode.MALFORMED_BODY, "Invalid JSON")
        if not isinstance(data, dict):
            return {}
        return data

    def validate(self, headers: Mapping[str, str], body: bytes) -> InboundEvent:
        """Validate request and build the inbound event.

        Args:
            headers: Request headers (any case)
            body: Raw request body

        Returns:
            InboundEvent

        Raises:
            RejectedRequest: On the first failed check
        """
        headers = {key.lower(): value for key, value in headers.items()}
        self.authenticate(headers)
        data = self.parse_body(body)

        # Coerce first, then check emptiness
        content = coerce_content(data.get("content")).strip()
        if not content:
            raise RejectedRequest(ErrorCode.INVALID_CONTENT, "Missing or invalid content field")
        if len(content) > MAX_CONTENT_LENGTH:
            raise RejectedRequest(ErrorCode.INVALID_CONTENT, "Content too long")

        logger.info(
            f"Received SMS forward request: device={data.get('device')!r}, "
            f"content_length={len(content)}, has_code={bool(data.get('code'))}"
        )

        check = self.timestamp_validator.validate(data.get("timestamp"))
        if not check.valid:
            raise RejectedRequest(ErrorCode.STALE_OR_FUTURE_TIMESTAMP, check.error or "Invalid timestamp")

        device = data.get("device")
        device = replace_lone_surrogates(device).strip() if isinstance(device, str) else ""

        declared_code = data.get("code")
        declared_code = coerce_content(declared_code) if declared_code else None

        targets = data.get("target")
        if isinstance(targets, list):
            targets = [t if t is None else coerce_content(t) for t in targets]
        else:
            targets = None

        return InboundEvent(
            sender_id=device or UNKNOWN_SENDER,
            content=content,
            declared_code=declared_code,
            timestamp_ms=check.timestamp_ms,
            targets=targets,
            client_ip=client_ip_from_headers(headers),
        )


def resolve_code(event: InboundEvent) -> str | None:
    """Caller-supplied code if present, else one extracted from the content."""
    if event.declared_code:
        return event.declared_code
    return extract_code(event.content)
