"""
Timestamp freshness checks.

A request is stale when it is older than the configured window. Timestamps
from the future are accepted unless a maximum skew is configured.
"""

from typing import Optional

from .canonicalization import Timestamp


def is_fresh(
    timestamp_ms: Timestamp,
    now_ms: int,
    window_ms: int,
    max_future_skew_ms: Optional[int] = None
) -> bool:
    """
    Evaluate the freshness window.

    Args:
        timestamp_ms: Request timestamp (epoch milliseconds)
        now_ms: Current server time (epoch milliseconds)
        window_ms: Maximum allowed age
        max_future_skew_ms: If set, maximum allowed lead over server time

    Returns:
        True if the timestamp is within the window, False otherwise
    """
    if now_ms - timestamp_ms > window_ms:
        return False
    if max_future_skew_ms is not None and timestamp_ms - now_ms > max_future_skew_ms:
        return False
    return True


def age_ms(timestamp_ms: Timestamp, now_ms: int) -> int:
    """Request age in milliseconds (negative for future timestamps)."""
    return int(now_ms - timestamp_ms)
