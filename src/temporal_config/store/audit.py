"""Application-level audit trail operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from temporal_config.store.models import AuditActivity

if TYPE_CHECKING:
    from temporal_config.store.core import ConfigStore


def record_activity(store: ConfigStore, activity: AuditActivity) -> int:
    """Append an audit activity.

    Returns:
        The new activity id.
    """
    with store._transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO audit_activity (actor, operation, target, details, timestamp)
            VALUES (:actor, :operation, :target, :details, :timestamp)
            """,
            activity.to_row(),
        )
        activity.id = cursor.lastrowid
    return activity.id  # type: ignore[return-value]


def list_activity(store: ConfigStore, limit: int, actor: str | None = None) -> list[AuditActivity]:
    """List audit activities, newest first, optionally for one actor."""
    params: list[Any] = []
    where = ""
    if actor:
        where = "WHERE actor = ?"
        params.append(actor)
    params.append(limit)

    conn = store._get_connection()
    cursor = conn.execute(
        f"SELECT * FROM audit_activity {where} ORDER BY timestamp DESC, id DESC LIMIT ?",
        params,
    )
    return [AuditActivity.from_row(row) for row in cursor.fetchall()]
