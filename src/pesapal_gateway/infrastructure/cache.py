"""In-process TTL cache for tokens and IPN registrations."""

import time
from collections.abc import Callable
from typing import Any, NamedTuple

import structlog

logger = structlog.get_logger(__name__)


class CacheEntry(NamedTuple):
    """Cached value and its monotonic expiry deadline."""

    value: Any
    expires_at: float


class TokenCache:
    """
    Key/value store where every entry carries its own time-to-live.

    Entries expire independently of any expiry tracked by the caller; a
    missing or expired entry is reported as absent and removed.

    The clock is injectable so tests can move time without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug("cache_entry_expired", key=key)
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Lifetime in seconds; None keeps the entry until deleted
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        expires_at = float("inf") if ttl_seconds is None else self._clock() + ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._entries.values() if now < entry.expires_at)
