"""Snapshot manager.

Captures the resolved value of every registered key at one instant and
restores captured values later through the regular write path.
"""

import logging
import threading
import time

from temporal_config.constants import BULK_TARGET_KEY
from temporal_config.exceptions import (
    DuplicateSnapshotName,
    PartialBulkFailure,
    SnapshotNotFound,
    TemporalConfigError,
)
from temporal_config.models.enums import ChangeOperation
from temporal_config.models.results import RollbackResult
from temporal_config.models.scope import Scope
from temporal_config.services.resolver import Resolver
from temporal_config.services.rollback import (
    PlannedWrite,
    check_no_future_version,
    commit_plan,
    record_failure,
)
from temporal_config.services.writer import VersionWriter
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import ChangeLogEntry, Snapshot
from temporal_config.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


class SnapshotManager:
    """Creates, lists and restores snapshots."""

    def __init__(self, store: ConfigStore, resolver: Resolver, writer: VersionWriter):
        self.store = store
        self.resolver = resolver
        self.writer = writer

    def create_snapshot(
        self,
        name: str,
        actor: str,
        description: str | None = None,
        scope_filter: Scope | None = None,
    ) -> Snapshot:
        """Capture resolved values for every active key overridable at the filter's level.

        All keys are resolved at the same captured instant.

        Raises:
            DuplicateSnapshotName: If the name is already taken.
        """
        scope_filter = scope_filter or Scope.global_scope()
        if self.store.snapshot_name_exists(name):
            raise DuplicateSnapshotName(name)

        captured_at = utc_now()
        captured = {
            entry.key: self.resolver.resolve(entry.key, scope_filter, as_of=captured_at)
            for entry in self.store.list_entries()
            if entry.allows(scope_filter)
        }
        return self.store.insert_snapshot(
            Snapshot(
                name=name,
                description=description,
                scope_filter=scope_filter,
                captured_entries=captured,
                created_by=actor,
                captured_at=captured_at,
            )
        )

    def get_snapshot(self, snapshot_id: int) -> Snapshot:
        """Get a snapshot.

        Raises:
            SnapshotNotFound: If no snapshot has that id.
        """
        snapshot = self.store.get_snapshot(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFound(snapshot_id)
        return snapshot

    def list_snapshots(self, limit: int) -> list[Snapshot]:
        return self.store.list_snapshots(limit)

    def restore_from_snapshot(
        self,
        snapshot_id: int,
        actor: str,
        scope: Scope | None = None,
        reason: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RollbackResult:
        """Write captured values back, effective now.

        Values already equal to the current resolved value are skipped, as are
        keys that have been retired or may not be overridden at ``scope``.
        Failures are reported in the result, never raised.

        Args:
            snapshot_id: Snapshot to restore.
            actor: Who is restoring.
            scope: Scope to write at; defaults to the snapshot's scope filter.
            reason: Free-text reason for the change log.
            cancel_event: Checked between keys.
        """
        started = time.perf_counter()
        snapshot = self.store.get_snapshot(snapshot_id)
        if snapshot is None:
            error = SnapshotNotFound(snapshot_id)
            logger.error(f"Restore failed: {error}")
            return record_failure(
                self.store,
                ChangeLogEntry(
                    operation=ChangeOperation.RESTORE,
                    target_key=BULK_TARGET_KEY,
                    actor=actor,
                    scope=scope or Scope.global_scope(),
                    reason=reason,
                    affected_count=0,
                ),
                error,
                started,
            )

        target_scope = scope if scope is not None else snapshot.scope_filter

        def make_change(item: PlannedWrite) -> ChangeLogEntry:
            return ChangeLogEntry(
                operation=ChangeOperation.RESTORE,
                target_key=item.entry.key,
                actor=actor,
                scope=target_scope,
                new_value=item.value,
                reason=reason,
                snapshot_id=snapshot_id,
            )

        try:
            plan = self._plan_restore(snapshot, target_scope)
            committed = commit_plan(
                self.writer, plan, target_scope, actor, make_change, cancel_event=cancel_event
            )
        except PartialBulkFailure as e:
            logger.error(f"Restore of snapshot {snapshot_id} failed: {e}")
            return record_failure(
                self.store,
                ChangeLogEntry(
                    operation=ChangeOperation.RESTORE,
                    target_key=BULK_TARGET_KEY,
                    actor=actor,
                    scope=target_scope,
                    reason=reason,
                    snapshot_id=snapshot_id,
                    affected_count=e.affected_count,
                ),
                e,
                started,
            )

        change_log_id = self.store.append_change(
            ChangeLogEntry(
                operation=ChangeOperation.RESTORE,
                target_key=BULK_TARGET_KEY,
                actor=actor,
                scope=target_scope,
                reason=reason,
                snapshot_id=snapshot_id,
                affected_count=len(committed),
                execution_time_ms=int((time.perf_counter() - started) * 1000),
            )
        )
        logger.info(
            f"Restored {len(committed)} key(s) from snapshot {snapshot_id} @ {target_scope}"
        )
        return {
            "success": True,
            "affected_count": len(committed),
            "change_log_id": change_log_id,
            "execution_time_ms": int((time.perf_counter() - started) * 1000),
        }

    def _plan_restore(self, snapshot: Snapshot, scope: Scope) -> list[PlannedWrite]:
        plan: list[PlannedWrite] = []
        for key in sorted(snapshot.captured_entries):
            entry = self.store.get_entry(key)
            if entry is None or entry.deleted:
                logger.warning(f"Restore skips {key}: key is no longer registered")
                continue
            if not entry.allows(scope):
                logger.warning(f"Restore skips {key}: not overridable at {scope.level.value}")
                continue
            captured = snapshot.captured_entries[key]
            if captured is None:
                continue
            try:
                value = entry.coerce(captured)
                if self.resolver.resolve(key, scope) == value:
                    continue
                check_no_future_version(self.store, key, scope)
            except TemporalConfigError as e:
                raise PartialBulkFailure(key, [], cause=e) from e
            plan.append(PlannedWrite(entry=entry, value=value))
        return plan
