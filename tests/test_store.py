"""Tests for the SQLite config store.

Covers:
- schema creation and version
- registry upsert / retire
- version append, window closing and overlap rejection
- point-in-time reads on half-open windows
- change-log rows written in the same transaction as versions
- next version start lookups across scopes
- snapshots and audit activity persistence
"""

import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from temporal_config.exceptions import DuplicateSnapshotName, InvalidWindow, WindowOverlap
from temporal_config.models.enums import ChangeOperation, ValueType, VersionKind
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.scope import Scope
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import AuditActivity, ChangeLogEntry, Snapshot
from temporal_config.store.schema import SCHEMA_VERSION

KEY = "max_workflows"
GLOBAL = Scope()
AGENT = Scope(agent_id=7)
T0 = datetime(2025, 1, 1, tzinfo=UTC)
T1 = datetime(2025, 2, 1, tzinfo=UTC)
T2 = datetime(2025, 3, 1, tzinfo=UTC)


def _record(store: ConfigStore, value, start, end=None, scope=GLOBAL, change=None):
    return store.record_version(
        VersionKind.SETTING, KEY, "", scope, value, start, end, "tester", change
    )


class TestSchema:
    """Database creation."""

    def test_creates_parent_directory_and_schema(self, db_path: Path, store: ConfigStore):
        assert db_path.exists()
        assert store.get_schema_version() == SCHEMA_VERSION

    def test_reopening_keeps_data(self, db_path: Path, store: ConfigStore):
        store.upsert_entry(ConfigEntry(key=KEY, value_type=ValueType.NUMBER, default_value=10))
        store.close()

        reopened = ConfigStore(db_path)
        try:
            assert reopened.get_entry(KEY).default_value == 10
        finally:
            reopened.close()


class TestRegistry:
    """Registry persistence."""

    def test_upsert_updates_and_preserves_created_at(self, store: ConfigStore):
        first = store.upsert_entry(ConfigEntry(key=KEY, value_type=ValueType.NUMBER))
        store.upsert_entry(
            ConfigEntry(key=KEY, value_type=ValueType.NUMBER, default_value=5, category="biz")
        )

        stored = store.get_entry(KEY)
        assert stored.default_value == 5
        assert stored.category == "biz"
        assert stored.created_at == first.created_at
        assert stored.updated_at >= first.updated_at

    def test_retire_is_soft_and_idempotent(self, store: ConfigStore):
        store.upsert_entry(ConfigEntry(key=KEY, value_type=ValueType.NUMBER))

        assert store.retire_entry(KEY) is True
        assert store.retire_entry(KEY) is False
        assert store.get_entry(KEY).deleted is True
        assert store.list_entries() == []
        assert [e.key for e in store.list_entries(include_deleted=True)] == [KEY]

    def test_list_filters_by_category(self, store: ConfigStore):
        store.upsert_entry(ConfigEntry(key="a", value_type=ValueType.STRING, category="ui"))
        store.upsert_entry(ConfigEntry(key="b", value_type=ValueType.STRING, category="business"))
        assert [e.key for e in store.list_entries(category="ui")] == ["a"]


class TestVersions:
    """Version append and point-in-time reads."""

    def test_new_version_closes_open_one(self, store: ConfigStore):
        v1, _ = _record(store, 10, T0)
        v2, _ = _record(store, 20, T1)

        assert (v1.version, v2.version) == (1, 2)
        history = store.get_history(VersionKind.SETTING, KEY, "", GLOBAL, limit=10)
        assert [v.version for v in history] == [2, 1]
        assert history[1].effective_to == T1
        assert history[0].effective_to is None
        assert history[0].is_open

    def test_windows_are_half_open(self, store: ConfigStore):
        _record(store, 10, T0)
        _record(store, 20, T1)

        def value_at(when):
            found = store.value_as_of(VersionKind.SETTING, KEY, "", GLOBAL, when)
            return found.value if found else None

        assert value_at(T0 - timedelta(microseconds=1)) is None
        assert value_at(T0) == 10
        assert value_at(T1 - timedelta(microseconds=1)) == 10
        assert value_at(T1) == 20
        assert value_at(T2) == 20

    def test_rejects_empty_or_inverted_window(self, store: ConfigStore):
        with pytest.raises(InvalidWindow):
            _record(store, 10, T1, T0)
        with pytest.raises(InvalidWindow):
            _record(store, 10, T1, T1)

    def test_rejects_overlap_with_closed_window(self, store: ConfigStore):
        _record(store, 10, T0, T2)
        with pytest.raises(WindowOverlap) as exc_info:
            _record(store, 20, T1)
        assert exc_info.value.conflicting_version == 1

    def test_rejects_write_before_future_dated_version(self, store: ConfigStore):
        _record(store, 10, T0)
        _record(store, 30, T2)
        with pytest.raises(WindowOverlap):
            _record(store, 20, T1)

    def test_adjacent_closed_window_is_allowed(self, store: ConfigStore):
        _record(store, 10, T0, T1)
        v2, _ = _record(store, 20, T1)
        assert v2.version == 2

    def test_versions_are_numbered_per_scope(self, store: ConfigStore):
        _record(store, 10, T0)
        _record(store, 20, T1)
        agent_version, _ = _record(store, 30, T0, scope=AGENT)

        assert agent_version.version == 1
        assert store.get_version(VersionKind.SETTING, KEY, "", AGENT, 1).value == 30
        assert store.get_version(VersionKind.SETTING, KEY, "", AGENT, 2) is None
        assert store.keys_with_versions(VersionKind.SETTING, AGENT) == [KEY]

    def test_change_row_records_previous_value_and_version(self, store: ConfigStore):
        _record(store, 10, T0)
        change = ChangeLogEntry(
            operation=ChangeOperation.SET, target_key=KEY, actor="tester", new_value=20
        )
        _, change_log_id = _record(store, 20, T1, change=change)

        stored = store.get_change(change_log_id)
        assert stored.previous_value == 10
        assert stored.new_value == 20
        assert stored.version == 2
        assert stored.success is True

    def test_execution_time_covers_the_version_write(self, store: ConfigStore):
        change = ChangeLogEntry(
            operation=ChangeOperation.SET, target_key=KEY, actor="tester", new_value=10
        )
        _, change_log_id = store.record_version(
            VersionKind.SETTING,
            KEY,
            "",
            GLOBAL,
            10,
            T0,
            None,
            "tester",
            change,
            started=time.perf_counter() - 0.25,
        )

        assert store.get_change(change_log_id).execution_time_ms >= 250

    def test_failed_insert_leaves_no_change_row(self, store: ConfigStore):
        _record(store, 10, T0, T2)
        change = ChangeLogEntry(
            operation=ChangeOperation.SET, target_key=KEY, actor="tester", new_value=20
        )
        with pytest.raises(WindowOverlap):
            _record(store, 20, T1, change=change)
        assert store.get_change_history(KEY, None, None, None, limit=10) == []


class TestChangeHistory:
    """Change-log queries."""

    def test_filters_by_scope_operation_and_date(self, store: ConfigStore):
        for scope, operation in [
            (GLOBAL, ChangeOperation.SET),
            (AGENT, ChangeOperation.SET),
            (AGENT, ChangeOperation.ROLLBACK),
        ]:
            store.append_change(
                ChangeLogEntry(operation=operation, target_key=KEY, actor="t", scope=scope)
            )

        assert len(store.get_change_history(KEY, None, None, None, limit=10)) == 3
        assert len(store.get_change_history(KEY, AGENT, None, None, limit=10)) == 2
        rollbacks = store.get_change_history(
            KEY, None, None, None, limit=10, operation=ChangeOperation.ROLLBACK
        )
        assert [row.operation for row in rollbacks] == [ChangeOperation.ROLLBACK]
        future = datetime.now(UTC) + timedelta(days=1)
        assert store.get_change_history(KEY, None, future, None, limit=10) == []

    def test_newest_first(self, store: ConfigStore):
        first = store.append_change(
            ChangeLogEntry(operation=ChangeOperation.SET, target_key=KEY, actor="t")
        )
        second = store.append_change(
            ChangeLogEntry(operation=ChangeOperation.SET, target_key=KEY, actor="t")
        )
        rows = store.get_change_history(KEY, None, None, None, limit=10)
        assert [row.id for row in rows] == [second, first]


class TestSnapshotsAndAudit:
    """Snapshot and audit persistence."""

    def test_snapshot_round_trip(self, store: ConfigStore):
        snapshot = store.insert_snapshot(
            Snapshot(
                name="before-launch",
                created_by="tester",
                captured_entries={KEY: 10, "ui.theme": "dark"},
                scope_filter=Scope(persona="rachel"),
            )
        )

        loaded = store.get_snapshot(snapshot.id)
        assert loaded.captured_entries == {KEY: 10, "ui.theme": "dark"}
        assert loaded.scope_filter == Scope(persona="rachel")
        assert loaded.metrics["entries"] == 2
        assert store.snapshot_name_exists("before-launch")
        assert store.get_snapshot(snapshot.id + 1) is None

    def test_duplicate_snapshot_name(self, store: ConfigStore):
        store.insert_snapshot(Snapshot(name="s", created_by="t"))
        with pytest.raises(DuplicateSnapshotName):
            store.insert_snapshot(Snapshot(name="s", created_by="t"))

    def test_audit_activity_filters_by_actor(self, store: ConfigStore):
        store.record_activity(AuditActivity(actor="ana", operation="set_setting", target=KEY))
        store.record_activity(
            AuditActivity(actor="bo", operation="retire", target=KEY, details={"retired": True})
        )

        assert len(store.list_activity(10)) == 2
        [only] = store.list_activity(10, actor="bo")
        assert only.details == {"retired": True}


class TestBoundaries:
    """Upcoming version starts."""

    def test_next_start_after_spans_given_scopes(self, store: ConfigStore):
        _record(store, 10, T0)
        _record(store, 20, T2, scope=AGENT)
        _record(store, 30, T1, scope=Scope(workflow_id=3))

        assert store.next_start_after(VersionKind.SETTING, KEY, "", [GLOBAL, AGENT], T0) == T2
        assert (
            store.next_start_after(
                VersionKind.SETTING, KEY, "", [GLOBAL, AGENT, Scope(workflow_id=3)], T0
            )
            == T1
        )
        assert store.next_start_after(VersionKind.SETTING, KEY, "", [GLOBAL], T0) is None
