"""Data models for the config store.

Dataclasses representing stored versions, change-log rows, snapshots and
audit activity, with conversion to and from SQLite rows.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from temporal_config.constants import MAX_ERROR_MESSAGE_LENGTH, SETTING_VARIANT
from temporal_config.models.enums import ChangeOperation, VersionKind
from temporal_config.models.scope import Scope
from temporal_config.utils.timeutils import from_iso, to_epoch_us, to_iso, utc_now


def _dumps(value: Any) -> str | None:
    return json.dumps(value, sort_keys=True) if value is not None else None


def _loads(value: str | None) -> Any:
    return json.loads(value) if value is not None else None


def _scope_from_row(row: sqlite3.Row) -> Scope:
    return Scope(
        persona=row["persona"],
        agent_id=row["agent_id"],
        workflow_id=row["workflow_id"],
    )


@dataclass
class ConfigVersion:
    """One immutable value ever assigned to a (kind, key, variant, scope).

    The window is half-open: ``[effective_from, effective_to)``. An unset
    ``effective_to`` means open-ended.
    """

    key: str
    value: Any
    version: int
    effective_from: datetime
    effective_to: datetime | None = None
    scope: Scope = field(default_factory=Scope)
    kind: VersionKind = VersionKind.SETTING
    variant: str = SETTING_VARIANT
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    id: int | None = None

    @property
    def is_open(self) -> bool:
        """True while the window has no end."""
        return self.effective_to is None

    def contains(self, as_of: datetime) -> bool:
        """True when ``as_of`` falls inside this version's window."""
        point = to_epoch_us(as_of)
        if point < to_epoch_us(self.effective_from):
            return False
        return self.effective_to is None or point < to_epoch_us(self.effective_to)

    def overlaps(self, start: datetime, end: datetime | None) -> bool:
        """True when ``[start, end)`` intersects this version's window."""
        own_start = to_epoch_us(self.effective_from)
        own_end = to_epoch_us(self.effective_to) if self.effective_to else None
        other_start = to_epoch_us(start)
        other_end = to_epoch_us(end) if end else None
        if own_end is not None and own_end <= own_start:
            return False  # empty window
        starts_before_other_ends = other_end is None or own_start < other_end
        other_starts_before_own_ends = own_end is None or other_start < own_end
        return starts_before_other_ends and other_starts_before_own_ends

    def to_row(self) -> dict[str, Any]:
        """Convert to database row."""
        return {
            "kind": self.kind.value,
            "config_key": self.key,
            "variant": self.variant,
            "scope_token": self.scope.cache_token(),
            "persona": self.scope.persona,
            "agent_id": self.scope.agent_id,
            "workflow_id": self.scope.workflow_id,
            "value": json.dumps(self.value),
            "version": self.version,
            "effective_from": to_iso(self.effective_from),
            "effective_from_us": to_epoch_us(self.effective_from),
            "effective_to": to_iso(self.effective_to),
            "effective_to_us": to_epoch_us(self.effective_to) if self.effective_to else None,
            "created_by": self.created_by,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ConfigVersion":
        """Create from database row."""
        return cls(
            id=row["id"],
            kind=VersionKind(row["kind"]),
            key=row["config_key"],
            variant=row["variant"],
            scope=_scope_from_row(row),
            value=json.loads(row["value"]),
            version=row["version"],
            effective_from=from_iso(row["effective_from"]),  # type: ignore[arg-type]
            effective_to=from_iso(row["effective_to"]),
            created_by=row["created_by"],
            created_at=from_iso(row["created_at"]),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for the API and CLI."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "key": self.key,
            "variant": self.variant,
            "scope": self.scope.to_dict(),
            "value": self.value,
            "version": self.version,
            "effective_from": to_iso(self.effective_from),
            "effective_to": to_iso(self.effective_to),
            "is_active": self.is_open,
            "created_by": self.created_by,
            "created_at": to_iso(self.created_at),
        }


@dataclass
class ChangeLogEntry:
    """Immutable audit row for a write, rollback or restore."""

    operation: ChangeOperation
    target_key: str
    actor: str
    scope: Scope = field(default_factory=Scope)
    kind: VersionKind = VersionKind.SETTING
    previous_value: Any = None
    new_value: Any = None
    version: int | None = None
    reason: str | None = None
    target_version: int | None = None
    target_date: datetime | None = None
    snapshot_id: int | None = None
    affected_count: int = 1
    success: bool = True
    error_details: dict[str, Any] | None = None
    execution_time_ms: int = 0
    timestamp: datetime = field(default_factory=utc_now)
    id: int | None = None

    def to_row(self) -> dict[str, Any]:
        """Convert to database row."""
        error_details = self.error_details
        if error_details and isinstance(error_details.get("message"), str):
            error_details = {
                **error_details,
                "message": error_details["message"][:MAX_ERROR_MESSAGE_LENGTH],
            }
        return {
            "operation": self.operation.value,
            "target_key": self.target_key,
            "kind": self.kind.value,
            "scope_token": self.scope.cache_token(),
            "persona": self.scope.persona,
            "agent_id": self.scope.agent_id,
            "workflow_id": self.scope.workflow_id,
            "previous_value": _dumps(self.previous_value),
            "new_value": _dumps(self.new_value),
            "version": self.version,
            "actor": self.actor,
            "reason": self.reason,
            "target_version": self.target_version,
            "target_date": to_iso(self.target_date),
            "snapshot_id": self.snapshot_id,
            "affected_count": self.affected_count,
            "success": self.success,
            "error_details": _dumps(error_details),
            "execution_time_ms": self.execution_time_ms,
            "timestamp": to_iso(self.timestamp),
            "timestamp_us": to_epoch_us(self.timestamp),
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ChangeLogEntry":
        """Create from database row."""
        return cls(
            id=row["id"],
            operation=ChangeOperation(row["operation"]),
            target_key=row["target_key"],
            kind=VersionKind(row["kind"]),
            scope=_scope_from_row(row),
            previous_value=_loads(row["previous_value"]),
            new_value=_loads(row["new_value"]),
            version=row["version"],
            actor=row["actor"],
            reason=row["reason"],
            target_version=row["target_version"],
            target_date=from_iso(row["target_date"]),
            snapshot_id=row["snapshot_id"],
            affected_count=row["affected_count"],
            success=bool(row["success"]),
            error_details=_loads(row["error_details"]),
            execution_time_ms=row["execution_time_ms"],
            timestamp=from_iso(row["timestamp"]),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for the API and CLI."""
        return {
            "change_log_id": self.id,
            "operation": self.operation.value,
            "target_key": self.target_key,
            "kind": self.kind.value,
            "scope": self.scope.to_dict(),
            "previous_value": self.previous_value,
            "new_value": self.new_value,
            "version": self.version,
            "actor": self.actor,
            "reason": self.reason,
            "target_version": self.target_version,
            "target_date": to_iso(self.target_date),
            "snapshot_id": self.snapshot_id,
            "affected_count": self.affected_count,
            "success": self.success,
            "error_details": self.error_details,
            "execution_time_ms": self.execution_time_ms,
            "timestamp": to_iso(self.timestamp),
        }


@dataclass
class Snapshot:
    """Named capture of resolved values at one instant."""

    name: str
    created_by: str
    captured_entries: dict[str, Any] = field(default_factory=dict)
    scope_filter: Scope = field(default_factory=Scope)
    description: str | None = None
    captured_at: datetime = field(default_factory=utc_now)
    id: int | None = None

    @property
    def metrics(self) -> dict[str, int]:
        """Entry count and serialized size."""
        return {
            "entries": len(self.captured_entries),
            "total_size": len(json.dumps(self.captured_entries, sort_keys=True)),
        }

    def to_row(self) -> dict[str, Any]:
        """Convert to database row."""
        return {
            "name": self.name,
            "description": self.description,
            "persona": self.scope_filter.persona,
            "agent_id": self.scope_filter.agent_id,
            "workflow_id": self.scope_filter.workflow_id,
            "captured_entries": json.dumps(self.captured_entries, sort_keys=True),
            "metrics": json.dumps(self.metrics),
            "created_by": self.created_by,
            "captured_at": to_iso(self.captured_at),
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Snapshot":
        """Create from database row."""
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            scope_filter=_scope_from_row(row),
            captured_entries=json.loads(row["captured_entries"]),
            created_by=row["created_by"],
            captured_at=from_iso(row["captured_at"]),  # type: ignore[arg-type]
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for the API and CLI."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scope_filter": self.scope_filter.to_dict(),
            "captured_entries": self.captured_entries,
            "metrics": self.metrics,
            "created_by": self.created_by,
            "captured_at": to_iso(self.captured_at),
        }


@dataclass
class AuditActivity:
    """Application-level audit trail entry written around write-class calls."""

    actor: str
    operation: str
    target: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=utc_now)
    id: int | None = None

    def to_row(self) -> dict[str, Any]:
        """Convert to database row."""
        return {
            "actor": self.actor,
            "operation": self.operation,
            "target": self.target,
            "details": _dumps(self.details),
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AuditActivity":
        """Create from database row."""
        return cls(
            id=row["id"],
            actor=row["actor"],
            operation=row["operation"],
            target=row["target"],
            details=_loads(row["details"]),
            timestamp=from_iso(row["timestamp"]),  # type: ignore[arg-type]
        )
