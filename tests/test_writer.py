"""Tests for serialized version writes.

Covers:
- concurrent writers to one key and scope
- retry on a lost race
- lock bookkeeping
"""

import threading

import pytest

from temporal_config.exceptions import WriteConflict
from temporal_config.models.enums import VersionKind
from temporal_config.models.scope import Scope
from temporal_config.services.cache import ResolutionCache
from temporal_config.services.config_service import ConfigService
from temporal_config.services.writer import VersionWriter
from temporal_config.store.core import ConfigStore

KEY = "max_workflows"
GLOBAL = Scope()
WRITERS = 8


class FlakyStore:
    """Delegates to a real store but loses the first ``failures`` races."""

    def __init__(self, store: ConfigStore, failures: int):
        self.store = store
        self.failures = failures
        self.calls = 0

    def record_version(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise WriteConflict(KEY, "global", attempts=1)
        return self.store.record_version(*args, **kwargs)


def _run_concurrently(target, count: int) -> list[BaseException]:
    errors: list[BaseException] = []
    barrier = threading.Barrier(count)

    def worker(i: int) -> None:
        barrier.wait()
        try:
            target(i)
        except BaseException as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


class TestConcurrentWrites:
    """Writers racing on one key and scope."""

    def test_concurrent_sets_produce_contiguous_versions(self, seeded_service: ConfigService):
        errors = _run_concurrently(
            lambda i: seeded_service.set_setting(KEY, i + 1, actor=f"writer-{i}"), WRITERS
        )

        assert errors == []
        history = list(reversed(seeded_service.get_version_history(KEY, limit=WRITERS * 2)))
        assert [v.version for v in history] == list(range(1, WRITERS + 1))
        assert sorted(v.value for v in history) == list(range(1, WRITERS + 1))
        for earlier, later in zip(history, history[1:], strict=False):
            assert earlier.effective_to == later.effective_from
        assert history[-1].effective_to is None

    def test_concurrent_sets_log_one_change_each(self, seeded_service: ConfigService):
        _run_concurrently(lambda i: seeded_service.set_setting(KEY, i + 1), WRITERS)

        changes = seeded_service.get_change_history(KEY, limit=WRITERS * 2)
        assert sorted(c.version for c in changes) == list(range(1, WRITERS + 1))

    def test_last_writer_is_current(self, seeded_service: ConfigService):
        _run_concurrently(lambda i: seeded_service.set_setting(KEY, i + 1), WRITERS)

        [latest] = seeded_service.get_version_history(KEY, limit=1)
        assert seeded_service.get_setting(KEY) == latest.value

    def test_locks_are_released_after_concurrent_writes(self, seeded_service: ConfigService):
        _run_concurrently(
            lambda i: seeded_service.set_setting(KEY, i, scope=Scope(agent_id=i % 3)), WRITERS
        )

        assert seeded_service.writer.lock_count() == 0


class TestRetry:
    """Lost races are retried once by default."""

    def test_single_conflict_is_retried(self, store: ConfigStore):
        flaky = FlakyStore(store, failures=1)
        writer = VersionWriter(flaky, ResolutionCache())

        version, _ = writer.write(VersionKind.SETTING, KEY, "", GLOBAL, 10, "tester")

        assert flaky.calls == 2
        assert version.version == 1
        assert store.get_history(VersionKind.SETTING, KEY, "", GLOBAL, 10)[0].value == 10

    def test_repeated_conflict_is_raised(self, store: ConfigStore):
        flaky = FlakyStore(store, failures=2)
        writer = VersionWriter(flaky, ResolutionCache())

        with pytest.raises(WriteConflict) as exc_info:
            writer.write(VersionKind.SETTING, KEY, "", GLOBAL, 10, "tester")

        assert flaky.calls == 2
        assert exc_info.value.details == {"key": KEY, "scope": "global", "attempts": 2}
        assert store.get_history(VersionKind.SETTING, KEY, "", GLOBAL, 10) == []

    def test_retry_count_is_configurable(self, store: ConfigStore):
        flaky = FlakyStore(store, failures=3)
        writer = VersionWriter(flaky, ResolutionCache(), retries=3)

        version, _ = writer.write(VersionKind.SETTING, KEY, "", GLOBAL, 10, "tester")

        assert flaky.calls == 4
        assert version.version == 1


class TestLocks:
    """Lock bookkeeping."""

    def test_lock_is_dropped_after_write(self, store: ConfigStore):
        writer = VersionWriter(store, ResolutionCache())
        for i in range(5):
            writer.write(VersionKind.SETTING, KEY, "", Scope(agent_id=i), i, "tester")

        assert writer.lock_count() == 0

    def test_lock_is_dropped_after_failed_write(self, store: ConfigStore):
        writer = VersionWriter(FlakyStore(store, failures=5), ResolutionCache())
        with pytest.raises(WriteConflict):
            writer.write(VersionKind.SETTING, KEY, "", GLOBAL, 10, "tester")

        assert writer.lock_count() == 0
