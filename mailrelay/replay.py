"""
In-memory replay cache.

Remembers recently accepted (signature, timestamp) pairs until their
timestamp falls out of the freshness window, so an intercepted request
cannot be resubmitted while it is still fresh. Entries are not persisted
across restarts.
"""

import threading
from collections import OrderedDict
from typing import Tuple

from .canonicalization import Timestamp


class ReplayCache:
    """
    Bounded TTL cache of seen envelopes.

    Thread-safe. When full, the oldest entry is evicted.
    """

    def __init__(self, ttl_ms: int, max_entries: int = 10000):
        self._ttl = ttl_ms
        self._max = max(1, max_entries)
        # key -> expiry (epoch ms)
        self._seen: "OrderedDict[Tuple[str, Timestamp], float]" = OrderedDict()
        self._lock = threading.Lock()

    def reserve(self, signature: str, timestamp: Timestamp, now_ms: int) -> bool:
        """
        Record an envelope as seen.

        A future-dated timestamp stays fresh longer than the TTL, so the
        entry lives until the later of now and the timestamp, plus the TTL.

        Returns:
            True if this is the first sighting within the TTL
            False if the envelope is a replay
        """
        key = (signature.lower(), timestamp)
        with self._lock:
            self._evict_expired(now_ms)
            expires_at = self._seen.get(key)
            if expires_at is not None and expires_at >= now_ms:
                return False
            self._seen[key] = max(now_ms, timestamp) + self._ttl
            self._seen.move_to_end(key)
            while len(self._seen) > self._max:
                self._seen.popitem(last=False)
            return True

    def release(self, signature: str, timestamp: Timestamp) -> None:
        """Forget an envelope so the caller may resubmit it."""
        with self._lock:
            self._seen.pop((signature.lower(), timestamp), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def _evict_expired(self, now_ms: int) -> int:
        removed = 0
        while self._seen:
            key, expires_at = next(iter(self._seen.items()))
            if expires_at >= now_ms:
                break
            del self._seen[key]
            removed += 1
        return removed
