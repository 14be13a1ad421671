"""Snapshot operations for the config store."""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from temporal_config.exceptions import DuplicateSnapshotName
from temporal_config.store.models import Snapshot

if TYPE_CHECKING:
    from temporal_config.store.core import ConfigStore

logger = logging.getLogger(__name__)


def insert_snapshot(store: ConfigStore, snapshot: Snapshot) -> Snapshot:
    """Store a snapshot.

    Raises:
        DuplicateSnapshotName: If the name is already taken.
    """
    with store._transaction() as conn:
        try:
            cursor = conn.execute(
                """
                INSERT INTO config_snapshots (name, description, persona, agent_id,
                                              workflow_id, captured_entries, metrics,
                                              created_by, captured_at)
                VALUES (:name, :description, :persona, :agent_id,
                        :workflow_id, :captured_entries, :metrics,
                        :created_by, :captured_at)
                """,
                snapshot.to_row(),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateSnapshotName(snapshot.name) from e
        snapshot.id = cursor.lastrowid
    logger.info(
        f"Created snapshot {snapshot.id} '{snapshot.name}' "
        f"({snapshot.metrics['entries']} entries)"
    )
    return snapshot


def get_snapshot(store: ConfigStore, snapshot_id: int) -> Snapshot | None:
    """Get a snapshot by id."""
    conn = store._get_connection()
    row = conn.execute("SELECT * FROM config_snapshots WHERE id = ?", (snapshot_id,)).fetchone()
    return Snapshot.from_row(row) if row else None


def snapshot_name_exists(store: ConfigStore, name: str) -> bool:
    """Check whether a snapshot name is taken."""
    conn = store._get_connection()
    row = conn.execute("SELECT 1 FROM config_snapshots WHERE name = ?", (name,)).fetchone()
    return row is not None


def list_snapshots(store: ConfigStore, limit: int) -> list[Snapshot]:
    """List snapshots, newest first."""
    conn = store._get_connection()
    cursor = conn.execute(
        "SELECT * FROM config_snapshots ORDER BY captured_at DESC, id DESC LIMIT ?",
        (limit,),
    )
    return [Snapshot.from_row(row) for row in cursor.fetchall()]
