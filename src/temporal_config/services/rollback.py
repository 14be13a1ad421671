"""Rollback engine.

Rollbacks never rewrite history: they append a new version carrying the
historical value, effective now, through the regular write path.

Bulk rollbacks run in two passes. Every candidate key is validated first;
keys are then committed one at a time. A failure during the commit pass
stops the operation and keys already committed stay committed.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from temporal_config.config.settings import RollbackSettings
from temporal_config.constants import BULK_TARGET_KEY, SETTING_VARIANT
from temporal_config.exceptions import (
    InvalidRollbackTarget,
    PartialBulkFailure,
    TemporalConfigError,
    UnknownKey,
    VersionNotFound,
    WindowOverlap,
)
from temporal_config.models.enums import ChangeOperation, VersionKind
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.results import RollbackPreview, RollbackResult, RollbackValidation
from temporal_config.models.scope import Scope
from temporal_config.services.resolver import Resolver
from temporal_config.services.writer import VersionWriter
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import ChangeLogEntry
from temporal_config.utils.timeutils import ensure_utc, to_iso, utc_now

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@dataclass
class PlannedWrite:
    """One key a bulk operation will write, decided during validation."""

    entry: ConfigEntry
    value: Any


def commit_plan(
    writer: VersionWriter,
    plan: list[PlannedWrite],
    scope: Scope,
    actor: str,
    make_change: Callable[[PlannedWrite], ChangeLogEntry],
    cancel_event: threading.Event | None = None,
) -> list[tuple[str, int | None]]:
    """Commit planned writes in order, stopping at the first failure.

    Args:
        writer: Write path.
        plan: Validated writes.
        scope: Scope to write at.
        actor: Who is writing.
        make_change: Callable building the change-log row for a planned write.
        cancel_event: Checked between keys; when set, stops before the next key.

    Returns:
        (key, change-log id) for each committed key, in order.

    Raises:
        PartialBulkFailure: On the first failing key or on cancellation.
    """
    committed: list[tuple[str, int | None]] = []
    for item in plan:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"Bulk operation cancelled after {len(committed)} key(s)")
            raise PartialBulkFailure(None, [k for k, _ in committed], cancelled=True)
        try:
            _, change_log_id = writer.write(
                VersionKind.SETTING,
                item.entry.key,
                SETTING_VARIANT,
                scope,
                item.value,
                actor,
                change=make_change(item),
            )
        except TemporalConfigError as e:
            logger.error(f"Bulk operation failed at {item.entry.key}: {e}")
            raise PartialBulkFailure(item.entry.key, [k for k, _ in committed], cause=e) from e
        committed.append((item.entry.key, change_log_id))
    return committed


def record_failure(
    store: ConfigStore, change: ChangeLogEntry, error: TemporalConfigError, started: float
) -> RollbackResult:
    """Append a failed change-log row and build the matching result.

    The failure itself is reported, never raised.
    """
    details = error.to_details()
    change.success = False
    change.error_details = details
    change.execution_time_ms = _elapsed_ms(started)
    change_log_id = store.append_change(change)
    return {
        "success": False,
        "affected_count": change.affected_count,
        "change_log_id": change_log_id,
        "execution_time_ms": _elapsed_ms(started),
        "error_details": details,
    }


def check_no_future_version(store: ConfigStore, key: str, scope: Scope) -> None:
    """Raise if a write effective now would overlap a future-dated version."""
    latest = store.get_history(VersionKind.SETTING, key, SETTING_VARIANT, scope, limit=1)
    if latest and latest[0].effective_from > utc_now():
        raise WindowOverlap(key, scope.cache_token(), latest[0].version)


class RollbackEngine:
    """Version- and date-based rollback of settings."""

    def __init__(
        self,
        store: ConfigStore,
        resolver: Resolver,
        writer: VersionWriter,
        settings: RollbackSettings | None = None,
    ):
        self.store = store
        self.resolver = resolver
        self.writer = writer
        self.settings = settings or RollbackSettings()

    def _require_entry(self, key: str) -> ConfigEntry:
        entry = self.store.get_entry(key)
        if entry is None:
            raise UnknownKey(key)
        return entry

    # ==========================================================================
    # Validation and preview (side-effect free)
    # ==========================================================================

    def validate(
        self,
        key: str | None,
        scope: Scope,
        target_version: int | None = None,
        target_date: datetime | None = None,
    ) -> RollbackValidation:
        """Check a rollback target without writing anything."""
        errors: list[str] = []
        warnings: list[str] = []
        affected: list[str] = []

        if (target_version is None) == (target_date is None):
            errors.append("Exactly one of target_version or target_date must be specified")
        if target_version is not None and target_version < 1:
            errors.append("Target version must be positive")
        if target_date is not None:
            target_date = ensure_utc(target_date)
            if target_date > utc_now():
                errors.append("Target date cannot be in the future")

        if key is not None:
            entry = self.store.get_entry(key)
            if entry is None:
                errors.append(f"Unknown configuration key '{key}'")
            else:
                affected.append(key)
                if entry.deleted:
                    errors.append(f"Key '{key}' is retired")
                elif not entry.allows(scope):
                    errors.append(f"Key '{key}' cannot be overridden at {scope.level.value} level")
                if not errors and target_version is not None:
                    found = self.store.get_version(
                        VersionKind.SETTING, key, SETTING_VARIANT, scope, target_version
                    )
                    if found is None:
                        errors.append(
                            f"Target version {target_version} does not exist for key '{key}'"
                        )
                if not errors and target_date is not None:
                    found = self.store.value_as_of(
                        VersionKind.SETTING, key, SETTING_VARIANT, scope, target_date
                    )
                    if found is None:
                        errors.append(f"Key '{key}' has no value at {to_iso(target_date)}")
        else:
            if target_version is not None:
                errors.append("Bulk rollback requires a target date")
            affected.extend(entry.key for entry in self._bulk_candidates(scope))

        if len(affected) > self.settings.large_operation_threshold:
            warnings.append(f"Large rollback operation affecting {len(affected)} configurations")
        stale_cutoff = utc_now() - timedelta(days=self.settings.stale_target_days)
        if target_date is not None and target_date < stale_cutoff:
            warnings.append(
                f"Rolling back to a date older than {self.settings.stale_target_days} days"
            )

        return {
            "is_valid": not errors,
            "reason": errors[0] if errors else None,
            "errors": errors,
            "warnings": warnings,
            "affected_keys": affected,
        }

    def preview(
        self,
        key: str,
        scope: Scope,
        target_version: int | None = None,
        target_date: datetime | None = None,
    ) -> RollbackPreview:
        """Compare the current resolved value with what a rollback would write.

        Raises:
            InvalidRollbackTarget: If not exactly one target is given.
            UnknownKey: If the key is not registered.
            VersionNotFound: If the target has no stored value.
        """
        self._check_target(key, target_version, target_date)
        self._require_entry(key)
        current = self.resolver.resolve(key, scope)
        target = self._target_value(key, scope, target_version, target_date)
        return {
            "current_value": current,
            "target_value": target,
            "will_change": current != target,
        }

    @staticmethod
    def _check_target(
        key: str | None, target_version: int | None, target_date: datetime | None
    ) -> None:
        if (target_version is None) == (target_date is None):
            raise InvalidRollbackTarget(
                "Exactly one of target_version or target_date must be specified",
                {"key": key},
            )
        if target_version is not None and target_version < 1:
            raise InvalidRollbackTarget(
                "Target version must be positive", {"key": key, "version": target_version}
            )
        if target_date is not None and ensure_utc(target_date) > utc_now():
            raise InvalidRollbackTarget(
                "Target date cannot be in the future",
                {"key": key, "target_date": ensure_utc(target_date)},
            )

    def _target_value(
        self,
        key: str,
        scope: Scope,
        target_version: int | None,
        target_date: datetime | None,
    ) -> Any:
        if target_version is not None:
            version = self.store.get_version(
                VersionKind.SETTING, key, SETTING_VARIANT, scope, target_version
            )
            if version is None:
                raise VersionNotFound(key, scope.cache_token(), version=target_version)
            return version.value
        assert target_date is not None
        version = self.store.value_as_of(
            VersionKind.SETTING, key, SETTING_VARIANT, scope, ensure_utc(target_date)
        )
        if version is None:
            raise VersionNotFound(key, scope.cache_token(), as_of=ensure_utc(target_date))
        return version.value

    # ==========================================================================
    # Rollbacks
    # ==========================================================================

    def rollback_to_version(
        self,
        key: str,
        scope: Scope,
        target_version: int,
        actor: str,
        reason: str | None = None,
    ) -> RollbackResult:
        """Re-record a historical version's value at ``scope``, effective now.

        Always appends a new version, even when the value is unchanged.
        Failures are reported in the result and logged to the change log.
        """
        started = time.perf_counter()
        try:
            self._check_target(key, target_version, None)
            entry = self._require_entry(key)
            entry.check_writable(scope)
            value = entry.coerce(self._target_value(key, scope, target_version, None))
            change = ChangeLogEntry(
                operation=ChangeOperation.ROLLBACK,
                target_key=key,
                actor=actor,
                scope=scope,
                new_value=value,
                reason=reason,
                target_version=target_version,
            )
            version, change_log_id = self.writer.write(
                VersionKind.SETTING, key, SETTING_VARIANT, scope, value, actor, change=change
            )
        except TemporalConfigError as e:
            return self._failed(
                key, scope, actor, reason, e, started, target_version=target_version
            )

        logger.info(
            f"Rolled back {key} @ {scope} to version {target_version} "
            f"(new version {version.version})"
        )
        return {
            "success": True,
            "affected_count": 1,
            "change_log_id": change_log_id,  # type: ignore[typeddict-item]
            "execution_time_ms": _elapsed_ms(started),
            "rollback_version": version.version,
        }

    def rollback_to_date(
        self,
        key: str | None,
        scope: Scope,
        target_date: datetime,
        actor: str,
        reason: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RollbackResult:
        """Re-record the values in effect at ``target_date``, effective now.

        With ``key`` set, rolls back that key at exactly ``scope``; an
        unchanged value is skipped. With ``key=None``, rolls back every
        registered key that may be overridden at ``scope``'s level and has
        versions at exactly ``scope``.
        """
        started = time.perf_counter()
        target_date = ensure_utc(target_date)
        try:
            self._check_target(key, None, target_date)
            if key is not None:
                single = self._plan_single(key, scope, target_date)
                plan = [single] if single is not None else []
            else:
                plan = self._plan_bulk(scope, target_date)

            def make_change(item: PlannedWrite) -> ChangeLogEntry:
                return ChangeLogEntry(
                    operation=ChangeOperation.ROLLBACK,
                    target_key=item.entry.key,
                    actor=actor,
                    scope=scope,
                    new_value=item.value,
                    reason=reason,
                    target_date=target_date,
                )

            committed = commit_plan(
                self.writer, plan, scope, actor, make_change, cancel_event=cancel_event
            )
        except PartialBulkFailure as e:
            cause = e.cause if key is not None and isinstance(e.cause, TemporalConfigError) else e
            return self._failed(
                key,
                scope,
                actor,
                reason,
                cause,
                started,
                target_date=target_date,
                affected_count=e.affected_count,
            )
        except TemporalConfigError as e:
            return self._failed(key, scope, actor, reason, e, started, target_date=target_date)

        # A committed single key reports its own row; otherwise write a summary row
        if key is not None and committed:
            change_log_id = committed[0][1]
        else:
            change_log_id = self.store.append_change(
                ChangeLogEntry(
                    operation=ChangeOperation.ROLLBACK,
                    target_key=key or BULK_TARGET_KEY,
                    actor=actor,
                    scope=scope,
                    reason=reason,
                    target_date=target_date,
                    affected_count=len(committed),
                    execution_time_ms=_elapsed_ms(started),
                )
            )

        logger.info(
            f"Rolled back {len(committed)} key(s) @ {scope} to {to_iso(target_date)}"
        )
        return {
            "success": True,
            "affected_count": len(committed),
            "change_log_id": change_log_id,  # type: ignore[typeddict-item]
            "execution_time_ms": _elapsed_ms(started),
            "rollback_date": to_iso(target_date),  # type: ignore[typeddict-item]
        }

    def _plan_single(self, key: str, scope: Scope, target_date: datetime) -> PlannedWrite | None:
        entry = self._require_entry(key)
        entry.check_writable(scope)
        value = entry.coerce(self._target_value(key, scope, None, target_date))
        current = self.resolver.resolve(key, scope)
        if current == value:
            logger.info(f"Rollback of {key} @ {scope} skipped: value unchanged")
            return None
        check_no_future_version(self.store, key, scope)
        return PlannedWrite(entry=entry, value=value)

    def _bulk_candidates(self, scope: Scope) -> list[ConfigEntry]:
        with_versions = set(self.store.keys_with_versions(VersionKind.SETTING, scope))
        return [
            entry
            for entry in self.store.list_entries()
            if entry.allows(scope) and entry.key in with_versions
        ]

    def _plan_bulk(self, scope: Scope, target_date: datetime) -> list[PlannedWrite]:
        plan: list[PlannedWrite] = []
        for entry in self._bulk_candidates(scope):
            found = self.store.value_as_of(
                VersionKind.SETTING, entry.key, SETTING_VARIANT, scope, target_date
            )
            if found is None:
                logger.warning(f"Bulk rollback skips {entry.key}: no value at target date")
                continue
            try:
                value = entry.coerce(found.value)
                current = self.resolver.resolve(entry.key, scope)
                if current == value:
                    continue
                check_no_future_version(self.store, entry.key, scope)
            except TemporalConfigError as e:
                raise PartialBulkFailure(entry.key, [], cause=e) from e
            plan.append(PlannedWrite(entry=entry, value=value))
        return plan

    def _failed(
        self,
        key: str | None,
        scope: Scope,
        actor: str,
        reason: str | None,
        error: TemporalConfigError,
        started: float,
        target_version: int | None = None,
        target_date: datetime | None = None,
        affected_count: int = 0,
    ) -> RollbackResult:
        logger.error(f"Rollback of {key or 'all keys'} @ {scope} failed: {error}")
        change = ChangeLogEntry(
            operation=ChangeOperation.ROLLBACK,
            target_key=key or BULK_TARGET_KEY,
            actor=actor,
            scope=scope,
            reason=reason,
            target_version=target_version,
            target_date=target_date,
            affected_count=affected_count,
        )
        result = record_failure(self.store, change, error, started)
        if target_version is not None:
            result["rollback_version"] = target_version
        if target_date is not None:
            result["rollback_date"] = to_iso(target_date)  # type: ignore[typeddict-item]
        return result
