"""Database migration functions for the config store.

Contains all migration logic for upgrading database schema versions.
"""

import logging
import sqlite3

from temporal_config.models.scope import Scope

logger = logging.getLogger(__name__)


def apply_migrations(conn: sqlite3.Connection, from_version: int) -> None:
    """Apply schema migrations from current version to latest.

    Args:
        conn: Database connection (within transaction).
        from_version: Current schema version.
    """
    if from_version < 2:
        _migrate_v1_to_v2(conn)
    if from_version < 3:
        _migrate_v2_to_v3(conn)


def _migrate_v1_to_v2(conn: sqlite3.Connection) -> None:
    """Migrate schema from v1 to v2: add the audit_activity table."""
    logger.info("Migrating config store schema v1 -> v2 (audit activity)")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS audit_activity (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            actor TEXT NOT NULL,
            operation TEXT NOT NULL,
            target TEXT NOT NULL,
            details TEXT,
            timestamp TEXT NOT NULL
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_activity_timestamp "
        "ON audit_activity(timestamp DESC)"
    )


def _migrate_v2_to_v3(conn: sqlite3.Connection) -> None:
    """Migrate schema from v2 to v3: add scope_token to config_change_logs.

    Idempotent: skips the column if it already exists. Existing rows are
    backfilled from their scope columns.
    """
    logger.info("Migrating config store schema v2 -> v3 (change log scope token)")

    existing_columns = {
        row[1] for row in conn.execute("PRAGMA table_info(config_change_logs)").fetchall()
    }
    if "scope_token" not in existing_columns:
        conn.execute(
            "ALTER TABLE config_change_logs ADD COLUMN scope_token TEXT NOT NULL DEFAULT 'global'"
        )

    rows = conn.execute(
        """
        SELECT id, persona, agent_id, workflow_id FROM config_change_logs
        WHERE persona IS NOT NULL OR agent_id IS NOT NULL OR workflow_id IS NOT NULL
        """
    ).fetchall()
    for row in rows:
        token = Scope(persona=row[1], agent_id=row[2], workflow_id=row[3]).cache_token()
        conn.execute(
            "UPDATE config_change_logs SET scope_token = ? WHERE id = ?",
            (token, row[0]),
        )
