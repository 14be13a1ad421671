"""Serialized version writes.

Every write (set, rollback, restore) goes through :class:`VersionWriter`,
which holds a per-(kind, key, variant, scope) lock around the store append and
invalidates the resolution cache after the commit.
"""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from temporal_config.exceptions import WriteConflict
from temporal_config.models.enums import VersionKind
from temporal_config.models.scope import Scope
from temporal_config.services.cache import ResolutionCache
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import ChangeLogEntry, ConfigVersion
from temporal_config.utils.timeutils import utc_now

logger = logging.getLogger(__name__)

LockKey = tuple[str, str, str, str]


class VersionWriter:
    """Appends versions one writer at a time per key and scope."""

    def __init__(self, store: ConfigStore, cache: ResolutionCache, retries: int = 1):
        self.store = store
        self.cache = cache
        self.retries = retries
        # lock key -> (lock, number of writers holding or waiting on it)
        self._locks: dict[LockKey, tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _locked(self, kind: VersionKind, key: str, variant: str, scope: Scope) -> Iterator[None]:
        """Hold the write lock of one (kind, key, variant, scope).

        Locks are dropped once no writer uses them.
        """
        lock_key = (kind.value, key, variant, scope.cache_token())
        with self._locks_guard:
            lock, users = self._locks.get(lock_key, (threading.Lock(), 0))
            self._locks[lock_key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[lock_key]
                if users == 1:
                    del self._locks[lock_key]
                else:
                    self._locks[lock_key] = (lock, users - 1)

    def lock_count(self) -> int:
        """Number of write locks currently held or awaited."""
        with self._locks_guard:
            return len(self._locks)

    def write(
        self,
        kind: VersionKind,
        key: str,
        variant: str,
        scope: Scope,
        value: Any,
        actor: str | None,
        effective_from: datetime | None = None,
        effective_to: datetime | None = None,
        change: ChangeLogEntry | None = None,
    ) -> tuple[ConfigVersion, int | None]:
        """Append a version and its change-log row.

        Args:
            kind: Setting, rule or template.
            key: Key to write.
            variant: Variant ('' for settings and rules).
            scope: Exact scope to write at.
            value: Already type-checked value.
            actor: Who is writing.
            effective_from: Window start; now when omitted.
            effective_to: Window end; open-ended when omitted.
            change: Change-log row committed in the same transaction.

        Returns:
            Tuple of (stored version, change-log id or None).

        Raises:
            WriteConflict: If the write still collides after retrying.
        """
        started = time.perf_counter()
        attempts = self.retries + 1
        with self._locked(kind, key, variant, scope):
            for attempt in range(1, attempts + 1):
                start = effective_from if effective_from is not None else utc_now()
                if change is not None:
                    change.timestamp = utc_now()
                try:
                    result = self.store.record_version(
                        kind,
                        key,
                        variant,
                        scope,
                        value,
                        start,
                        effective_to,
                        actor,
                        change,
                        started=started,
                    )
                    break
                except WriteConflict:
                    if attempt == attempts:
                        logger.warning(
                            f"Write conflict on {kind.value} {key} @ {scope} "
                            f"after {attempts} attempt(s)"
                        )
                        raise WriteConflict(key, scope.cache_token(), attempts) from None
                    logger.debug(f"Write conflict on {key} @ {scope}, retrying")

        # After commit
        self.cache.invalidate_key(kind, key)
        version = result[0]
        logger.info(
            f"Wrote {kind.value} {key} v{version.version} @ {scope} by {actor or 'unknown'}"
        )
        return result
