"""
Utility functions for the mail relay.

Provides time, comparison and log-masking helpers.
"""

import hmac
import time
from typing import Any, Dict, List, Union


def now_ms() -> int:
    """Get current Unix time in epoch milliseconds."""
    return int(time.time() * 1000)


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Compare two strings/bytes in constant time to prevent timing attacks.
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]


def scrub_secret(text: str, secret: str) -> str:
    """Remove every occurrence of a secret from a message."""
    if not secret:
        return text
    return text.replace(secret, "[REDACTED]")


SENSITIVE_FIELDS = ["signature", "secret", "password", "pass", "token"]


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to mask

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            if isinstance(value, str) and len(value) > 8:
                result[key] = value[:4] + "..." + value[-4:]
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
