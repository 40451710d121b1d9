"""Content fingerprint for deduplication.

fingerprint = sha256(device + "\\n" + content), or sha256(content) when the
device is unknown.
"""

import hashlib

from smsgate.models import UNKNOWN_SENDER


def fingerprint_source(sender_id: str | None, content: str) -> str:
    """Build the string that gets hashed.

    Args:
        sender_id: Forwarding device name, "unknown" or None if not known
        content: Trimmed SMS content

    Returns:
        Hash input string
    """
    if sender_id and sender_id != UNKNOWN_SENDER:
        return f"{sender_id}\n{content}"
    return content


def compute_fingerprint(sender_id: str | None, content: str) -> str:
    """Compute content fingerprint.

    Args:
        sender_id: Forwarding device name
        content: Trimmed SMS content

    Returns:
        SHA256 hash as hex string
    """
    source = fingerprint_source(sender_id, content)
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def get_dedup_key(fingerprint: str) -> str:
    """Get store key for a dedup reservation.

    Args:
        fingerprint: SHA256 fingerprint

    Returns:
        Store key string
    """
    return f"sms:{fingerprint}"
