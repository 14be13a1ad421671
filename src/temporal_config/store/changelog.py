"""Change log operations for the config store.

The change log is append-only: rows are inserted, never updated or deleted.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING, Any

from temporal_config.models.enums import ChangeOperation, VersionKind
from temporal_config.models.scope import Scope
from temporal_config.store.models import ChangeLogEntry
from temporal_config.utils.timeutils import to_epoch_us

if TYPE_CHECKING:
    from temporal_config.store.core import ConfigStore

logger = logging.getLogger(__name__)


def insert_change(conn: sqlite3.Connection, entry: ChangeLogEntry) -> int:
    """Insert a change-log row on a connection that is already in a transaction.

    Args:
        conn: Connection inside an open transaction.
        entry: Row to insert. Its ``id`` is set on return.

    Returns:
        The new change-log id.
    """
    cursor = conn.execute(
        """
        INSERT INTO config_change_logs (operation, target_key, kind, scope_token,
                                        persona, agent_id, workflow_id,
                                        previous_value, new_value, version, actor, reason,
                                        target_version, target_date, snapshot_id,
                                        affected_count, success, error_details,
                                        execution_time_ms, timestamp, timestamp_us)
        VALUES (:operation, :target_key, :kind, :scope_token,
                :persona, :agent_id, :workflow_id,
                :previous_value, :new_value, :version, :actor, :reason,
                :target_version, :target_date, :snapshot_id,
                :affected_count, :success, :error_details,
                :execution_time_ms, :timestamp, :timestamp_us)
        """,
        entry.to_row(),
    )
    entry.id = cursor.lastrowid
    return entry.id  # type: ignore[return-value]


def append_change(store: ConfigStore, entry: ChangeLogEntry) -> int:
    """Append a change-log row in its own transaction.

    Used for rows not tied to a version write: bulk summaries and failed
    rollbacks/restores.
    """
    with store._transaction() as conn:
        change_log_id = insert_change(conn, entry)
    logger.debug(
        f"Change log {change_log_id}: {entry.operation.value} {entry.target_key} "
        f"success={entry.success}"
    )
    return change_log_id


def get_change(store: ConfigStore, change_log_id: int) -> ChangeLogEntry | None:
    """Get a change-log row by id."""
    conn = store._get_connection()
    row = conn.execute(
        "SELECT * FROM config_change_logs WHERE id = ?", (change_log_id,)
    ).fetchone()
    return ChangeLogEntry.from_row(row) if row else None


def get_change_history(
    store: ConfigStore,
    key: str,
    scope: Scope | None,
    from_date: datetime | None,
    to_date: datetime | None,
    limit: int,
    operation: ChangeOperation | None = None,
    kind: VersionKind | None = None,
) -> list[ChangeLogEntry]:
    """Get change-log rows for a key, newest first.

    Args:
        store: The ConfigStore instance.
        key: Target key.
        scope: Exact scope to filter on, or None for every scope.
        from_date: Inclusive lower bound on the row timestamp.
        to_date: Inclusive upper bound on the row timestamp.
        limit: Maximum rows to return.
        operation: Optional operation filter.
        kind: Optional setting/rule/template filter.

    Returns:
        Matching rows ordered by timestamp descending.
    """
    conditions = ["target_key = ?"]
    params: list[Any] = [key]
    if scope is not None:
        conditions.append("scope_token = ?")
        params.append(scope.cache_token())
    if from_date is not None:
        conditions.append("timestamp_us >= ?")
        params.append(to_epoch_us(from_date))
    if to_date is not None:
        conditions.append("timestamp_us <= ?")
        params.append(to_epoch_us(to_date))
    if operation is not None:
        conditions.append("operation = ?")
        params.append(operation.value)
    if kind is not None:
        conditions.append("kind = ?")
        params.append(kind.value)
    params.append(limit)

    conn = store._get_connection()
    cursor = conn.execute(
        f"""
        SELECT * FROM config_change_logs
        WHERE {" AND ".join(conditions)}
        ORDER BY timestamp_us DESC, id DESC
        LIMIT ?
        """,
        params,
    )
    return [ChangeLogEntry.from_row(row) for row in cursor.fetchall()]
