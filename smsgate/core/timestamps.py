"""Request timestamp freshness check.

Devices send their clock in epoch milliseconds. Requests outside
±tolerance of server time are rejected, which bounds replay of captured
requests.
"""

import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

# Anything below this is treated as epoch seconds (10^11 ms is March 1973)
SECONDS_CUTOFF = 100_000_000_000


class TimestampCheck(BaseModel):
    """Verdict of one timestamp check."""

    valid: bool
    error: str | None = None
    timestamp_ms: int | None = None


def parse_timestamp_ms(value: Any) -> int | None:
    """Parse a device timestamp into epoch milliseconds.

    Args:
        value: int, float or numeric string; seconds are scaled to ms

    Returns:
        Epoch milliseconds, or None if the value is not a number
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None

    timestamp_ms = int(value)
    if abs(timestamp_ms) < SECONDS_CUTOFF:
        timestamp_ms = int(value * 1000)
    return timestamp_ms


class TimestampValidator:
    """Checks that a request timestamp is within tolerance of now."""

    def __init__(
        self,
        tolerance_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def validate(self, value: Any) -> TimestampCheck:
        """Validate timestamp freshness.

        Args:
            value: Raw ``timestamp`` field from the request body

        Returns:
            TimestampCheck; error is the caller-facing reason when invalid
        """
        if value is None:
            return TimestampCheck(valid=False, error="Missing timestamp")

        timestamp_ms = parse_timestamp_ms(value)
        if timestamp_ms is None:
            return TimestampCheck(valid=False, error="Invalid timestamp")

        now_ms = int(self._clock() * 1000)
        tolerance_ms = self.tolerance_seconds * 1000
        if now_ms - timestamp_ms > tolerance_ms:
            return TimestampCheck(
                valid=False,
                error=f"Request expired (timestamp older than {self.tolerance_seconds}s)",
            )
        if timestamp_ms - now_ms > tolerance_ms:
            return TimestampCheck(
                valid=False,
                error=f"Timestamp is in the future (more than {self.tolerance_seconds}s ahead)",
            )

        return TimestampCheck(valid=True, timestamp_ms=timestamp_ms)
