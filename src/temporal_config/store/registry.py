"""Registry operations for the config store."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import TYPE_CHECKING

from temporal_config.models.enums import ScopeLevel, ValueType
from temporal_config.models.registry import ConfigEntry
from temporal_config.utils.timeutils import from_iso, to_iso, utc_now

if TYPE_CHECKING:
    from temporal_config.store.core import ConfigStore

logger = logging.getLogger(__name__)


def _entry_from_row(row: sqlite3.Row) -> ConfigEntry:
    default = row["default_value"]
    return ConfigEntry(
        key=row["key"],
        value_type=ValueType(row["value_type"]),
        default_value=json.loads(default) if default is not None else None,
        allowed_levels=[ScopeLevel(level) for level in json.loads(row["allowed_levels"])],
        description=row["description"],
        category=row["category"],
        deleted=bool(row["deleted"]),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def upsert_entry(store: ConfigStore, entry: ConfigEntry) -> ConfigEntry:
    """Create a registry entry or replace an existing declaration.

    Re-registering a retired key revives it. ``created_at`` of an existing
    entry is preserved.

    Returns:
        The stored entry.
    """
    now = to_iso(utc_now())
    with store._transaction() as conn:
        conn.execute(
            """
            INSERT INTO config_registry (key, value_type, default_value, allowed_levels,
                                         description, category, deleted,
                                         created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value_type = excluded.value_type,
                default_value = excluded.default_value,
                allowed_levels = excluded.allowed_levels,
                description = excluded.description,
                category = excluded.category,
                deleted = excluded.deleted,
                updated_at = excluded.updated_at
            """,
            (
                entry.key,
                entry.value_type.value,
                json.dumps(entry.default_value) if entry.default_value is not None else None,
                json.dumps([level.value for level in entry.allowed_levels]),
                entry.description,
                entry.category,
                entry.deleted,
                now,
                now,
            ),
        )
    logger.info(f"Registered config key {entry.key} ({entry.value_type.value})")
    stored = get_entry(store, entry.key)
    assert stored is not None
    return stored


def get_entry(store: ConfigStore, key: str) -> ConfigEntry | None:
    """Get a registry entry by key, including retired entries."""
    conn = store._get_connection()
    row = conn.execute("SELECT * FROM config_registry WHERE key = ?", (key,)).fetchone()
    return _entry_from_row(row) if row else None


def list_entries(
    store: ConfigStore, include_deleted: bool = False, category: str | None = None
) -> list[ConfigEntry]:
    """List registry entries ordered by key."""
    conditions = []
    params: list[str] = []
    if not include_deleted:
        conditions.append("deleted = FALSE")
    if category:
        conditions.append("category = ?")
        params.append(category)
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    conn = store._get_connection()
    cursor = conn.execute(f"SELECT * FROM config_registry {where} ORDER BY key", params)
    return [_entry_from_row(row) for row in cursor.fetchall()]


def retire_entry(store: ConfigStore, key: str) -> bool:
    """Soft-delete a registry entry.

    Returns:
        True if an active entry was retired.
    """
    with store._transaction() as conn:
        cursor = conn.execute(
            "UPDATE config_registry SET deleted = TRUE, updated_at = ? "
            "WHERE key = ? AND deleted = FALSE",
            (to_iso(utc_now()), key),
        )
        retired = cursor.rowcount > 0
    if retired:
        logger.info(f"Retired config key {key}")
    return retired
