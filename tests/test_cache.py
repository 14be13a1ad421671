"""Tests for the resolution cache."""

import time
from datetime import UTC, datetime, timedelta

from temporal_config.models.enums import VersionKind
from temporal_config.models.scope import Scope
from temporal_config.services.cache import ResolutionCache

SETTING = VersionKind.SETTING
PAST = datetime(2025, 1, 1, tzinfo=UTC)


def _key(
    cache: ResolutionCache,
    key: str = "max_workflows",
    scope: Scope | None = None,
    as_of: datetime | None = None,
):
    return cache.make_key(SETTING, key, "", scope or Scope(), as_of)


class TestBuckets:
    """Time bucketing of lookups."""

    def test_now_lookups_share_current_bucket(self):
        cache = ResolutionCache()
        assert cache.bucket_for(None) == "current"
        assert cache.bucket_for(datetime.now(UTC)) == "current"

    def test_historical_lookups_get_their_own_bucket(self):
        cache = ResolutionCache()
        assert cache.bucket_for(PAST) not in ("current", cache.bucket_for(None))
        assert cache.bucket_for(PAST) == cache.bucket_for(PAST.replace(tzinfo=None))


class TestGetSet:
    """Hits, misses and expiry."""

    def test_hit_and_miss_counters(self):
        cache = ResolutionCache()
        key = _key(cache)

        assert cache.get(key) == (False, None)
        cache.set(key, 25)
        assert cache.get(key) == (True, 25)
        assert cache.stats() == {"size": 1, "max_entries": 1000, "hits": 1, "misses": 1}

    def test_none_is_a_cacheable_value(self):
        cache = ResolutionCache()
        key = _key(cache)
        cache.set(key, None)
        assert cache.get(key) == (True, None)

    def test_expired_entries_miss(self):
        cache = ResolutionCache(ttl_seconds=0.0)
        key = _key(cache)
        cache.set(key, 25)
        assert cache.get(key) == (False, None)
        assert cache.stats()["size"] == 0

    def test_historical_entries_use_historical_ttl(self):
        cache = ResolutionCache(ttl_seconds=300.0, historical_ttl_seconds=0.0)
        current, historical = _key(cache), _key(cache, as_of=PAST)
        cache.set(current, 1)
        cache.set(historical, 2)
        assert cache.get(current) == (True, 1)
        assert cache.get(historical) == (False, None)

    def test_expires_at_caps_the_ttl(self):
        cache = ResolutionCache(ttl_seconds=300.0)
        key = _key(cache)
        cache.set(key, 25, expires_at=datetime.now(UTC) + timedelta(milliseconds=50))
        assert cache.get(key) == (True, 25)

        time.sleep(0.1)
        assert cache.get(key) == (False, None)

    def test_already_expired_resolution_is_not_stored(self):
        cache = ResolutionCache()
        key = _key(cache)
        cache.set(key, 25, expires_at=datetime.now(UTC) - timedelta(seconds=1))
        assert cache.stats()["size"] == 0

    def test_prunes_oldest_entries_at_capacity(self):
        cache = ResolutionCache(max_entries=2)
        keys = [_key(cache, key=f"k{i}") for i in range(3)]
        for i, key in enumerate(keys):
            cache.set(key, i)

        assert cache.stats()["size"] == 2
        assert cache.get(keys[0]) == (False, None)
        assert cache.get(keys[2]) == (True, 2)


class TestInvalidation:
    """Invalidation and generation checks."""

    def test_invalidate_key_drops_every_scope_and_bucket(self):
        cache = ResolutionCache()
        cache.set(_key(cache), 1)
        cache.set(_key(cache, scope=Scope(agent_id=7)), 2)
        cache.set(_key(cache, as_of=PAST), 3)
        cache.set(_key(cache, key="ui.theme"), "dark")

        assert cache.invalidate_key(SETTING, "max_workflows") == 3
        assert cache.get(_key(cache, key="ui.theme")) == (True, "dark")

    def test_stale_resolution_is_not_cached_after_write(self):
        cache = ResolutionCache()
        key = _key(cache)
        generation = cache.generation(SETTING, "max_workflows")

        cache.invalidate_key(SETTING, "max_workflows")
        cache.set(key, "stale", generation=generation)

        assert cache.get(key) == (False, None)

    def test_stale_resolution_is_not_cached_after_clear(self):
        cache = ResolutionCache()
        key = _key(cache)
        generation = cache.generation(SETTING, "max_workflows")

        cache.clear()
        cache.set(key, "stale", generation=generation)

        assert cache.get(key) == (False, None)

    def test_current_generation_is_cached(self):
        cache = ResolutionCache()
        key = _key(cache)
        cache.set(key, 25, generation=cache.generation(SETTING, "max_workflows"))
        assert cache.get(key) == (True, 25)

    def test_shutdown_stops_accepting_entries(self):
        cache = ResolutionCache()
        key = _key(cache)
        cache.set(key, 1)
        cache.shutdown()
        cache.set(key, 2)
        assert cache.stats()["size"] == 0
