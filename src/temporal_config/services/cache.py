"""Resolution cache.

Process-local TTL cache of resolved values keyed by
``(kind, key, variant, scope_token, bucket)``. Lookups close to "now" share a
single ``current`` bucket; point-in-time lookups are cached per exact
timestamp with a shorter TTL. A ``current`` entry never outlives the next
window boundary seen when it was resolved.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any

from temporal_config.constants import CACHE_BUCKET_CURRENT
from temporal_config.models.enums import VersionKind
from temporal_config.models.results import CacheStats
from temporal_config.models.scope import Scope
from temporal_config.utils.timeutils import to_epoch_us, utc_now

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str, str, str]


class ResolutionCache:
    """Thread-safe TTL cache for resolved configuration values.

    Entries for a key are dropped wholesale when any scope of that key is
    written. A per-key generation counter stops a read that started before a
    write from re-populating the cache with the pre-write value.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        historical_ttl_seconds: float = 30.0,
        max_entries: int = 1000,
        current_window_seconds: float = 1.0,
    ):
        self.ttl_seconds = ttl_seconds
        self.historical_ttl_seconds = historical_ttl_seconds
        self.max_entries = max_entries
        self.current_window_seconds = current_window_seconds
        self._entries: dict[CacheKey, tuple[Any, float, float]] = {}
        self._generations: dict[tuple[str, str], int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._closed = False

    def bucket_for(self, as_of: datetime | None) -> str:
        """Cache bucket for a lookup time."""
        if as_of is None:
            return CACHE_BUCKET_CURRENT
        distance_us = abs(to_epoch_us(as_of) - to_epoch_us(utc_now()))
        if distance_us < self.current_window_seconds * 1_000_000:
            return CACHE_BUCKET_CURRENT
        return str(to_epoch_us(as_of))

    def make_key(
        self, kind: VersionKind, key: str, variant: str, scope: Scope, as_of: datetime | None
    ) -> CacheKey:
        return (kind.value, key, variant, scope.cache_token(), self.bucket_for(as_of))

    def generation(self, kind: VersionKind, key: str) -> tuple[int, int]:
        """Write generation of a key; changes on every invalidation or clear."""
        with self._lock:
            return self._epoch, self._generations.get((kind.value, key), 0)

    def get(self, cache_key: CacheKey) -> tuple[bool, Any]:
        """Look up an entry.

        Returns:
            Tuple of (found, value). ``value`` may legitimately be None.
        """
        with self._lock:
            cached = self._entries.get(cache_key)
            if cached is not None:
                value, stored_at, ttl = cached
                if time.monotonic() - stored_at < ttl:
                    self._hits += 1
                    return True, value
                # Expired, remove it
                self._entries.pop(cache_key, None)
            self._misses += 1
        return False, None

    def is_current(self, cache_key: CacheKey) -> bool:
        """True for keys in the shared "now" bucket."""
        return cache_key[4] == CACHE_BUCKET_CURRENT

    def set(
        self,
        cache_key: CacheKey,
        value: Any,
        generation: tuple[int, int] | None = None,
        expires_at: datetime | None = None,
    ) -> None:
        """Store an entry.

        Args:
            cache_key: Key from :meth:`make_key`.
            value: Resolved value.
            generation: Generation read before resolving; the entry is
                discarded if the key was written since.
            expires_at: Instant the resolution stops being valid (a window
                end or a pending start). Caps the TTL; nothing is stored
                when it has already passed.
        """
        if self._closed:
            return
        ttl = self.ttl_seconds if self.is_current(cache_key) else self.historical_ttl_seconds
        if expires_at is not None:
            remaining = (expires_at - utc_now()).total_seconds()
            if remaining <= 0:
                return
            ttl = min(ttl, remaining)
        with self._lock:
            if generation is not None:
                current = (self._epoch, self._generations.get((cache_key[0], cache_key[1]), 0))
                if current != generation:
                    logger.debug(f"Discarding stale resolution for {cache_key[1]}")
                    return
            if len(self._entries) >= self.max_entries:
                self._prune()
            self._entries[cache_key] = (value, time.monotonic(), ttl)

    def _prune(self) -> None:
        # Caller holds the lock. Expired entries go first, then the oldest.
        now = time.monotonic()
        self._entries = {k: v for k, v in self._entries.items() if now - v[1] < v[2]}
        overflow = len(self._entries) - self.max_entries + 1
        if overflow > 0:
            oldest = sorted(self._entries.items(), key=lambda item: item[1][1])[:overflow]
            for k, _ in oldest:
                self._entries.pop(k, None)

    def invalidate_key(self, kind: VersionKind, key: str) -> int:
        """Drop every cached entry of a key across all scopes and buckets.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            generation_key = (kind.value, key)
            self._generations[generation_key] = self._generations.get(generation_key, 0) + 1
            doomed = [k for k in self._entries if k[0] == kind.value and k[1] == key]
            for k in doomed:
                self._entries.pop(k, None)
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cached resolution(s) for {key}")
        return len(doomed)

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()
            self._epoch += 1
        logger.info("Resolution cache cleared")

    def stats(self) -> CacheStats:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }

    def shutdown(self) -> None:
        """Clear the cache and stop accepting new entries."""
        self.clear()
        self._closed = True
