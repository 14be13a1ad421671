"""Core ConfigStore class for the config store.

Contains the main ConfigStore class with connection management and delegation
to operation modules.
"""

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from temporal_config.exceptions import StorageError
from temporal_config.models.enums import ChangeOperation, VersionKind
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.scope import Scope
from temporal_config.store import audit, changelog, registry, snapshots, versions
from temporal_config.store.migrations import apply_migrations
from temporal_config.store.models import (
    AuditActivity,
    ChangeLogEntry,
    ConfigVersion,
    Snapshot,
)
from temporal_config.store.schema import SCHEMA_SQL, SCHEMA_VERSION

logger = logging.getLogger(__name__)


class ConfigStore:
    """SQLite-based durable store for registry, versions, change log and snapshots.

    Thread-safe: each thread gets its own connection. Writes run in
    ``BEGIN IMMEDIATE`` transactions so a read-then-write sequence cannot be
    interleaved with another writer.
    """

    def __init__(self, db_path: Path, busy_timeout_seconds: float = 60.0):
        """Initialize the config store.

        Args:
            db_path: Path to SQLite database file.
            busy_timeout_seconds: How long a connection waits on a locked database.
        """
        self.db_path = db_path
        self.busy_timeout_seconds = busy_timeout_seconds
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=self.busy_timeout_seconds,
            )
            conn.row_factory = sqlite3.Row
            # WAL lets readers proceed while a writer holds the lock
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA temp_store = MEMORY")
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        conn_: sqlite3.Connection = self._local.conn
        return conn_

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions.

        Args:
            immediate: Take the write lock up front (``BEGIN IMMEDIATE``).
        """
        conn = self._get_connection()
        if immediate and not conn.in_transaction:
            conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database transaction error: {e}", exc_info=True)
            raise StorageError(f"Database transaction failed: {e}") from e
        except BaseException:
            conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        """Create database schema if needed, applying migrations for existing databases."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._transaction() as conn:
            try:
                cursor = conn.execute("SELECT MAX(version) FROM schema_version")
                row = cursor.fetchone()
                current_version = row[0] if row and row[0] is not None else 0
            except sqlite3.OperationalError:
                current_version = 0

            if current_version < SCHEMA_VERSION:
                if current_version == 0:
                    # Fresh database - apply full schema
                    conn.executescript(SCHEMA_SQL)
                else:
                    apply_migrations(conn, current_version)

                conn.execute("DELETE FROM schema_version")
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
                logger.info(f"Config store schema initialized (v{SCHEMA_VERSION})")

    def get_schema_version(self) -> int:
        """Get current database schema version.

        Returns:
            Schema version number, or 0 if schema_version table doesn't exist.
        """
        try:
            cursor = self._get_connection().execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            return row[0] if row else 0
        except sqlite3.OperationalError:
            return 0

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    # ==========================================================================
    # Registry operations - delegate to registry module
    # ==========================================================================

    def upsert_entry(self, entry: ConfigEntry) -> ConfigEntry:
        """Create or update a registry declaration."""
        return registry.upsert_entry(self, entry)

    def get_entry(self, key: str) -> ConfigEntry | None:
        """Get a registry declaration by key (retired entries included)."""
        return registry.get_entry(self, key)

    def list_entries(
        self, include_deleted: bool = False, category: str | None = None
    ) -> list[ConfigEntry]:
        """List registry declarations ordered by key."""
        return registry.list_entries(self, include_deleted=include_deleted, category=category)

    def retire_entry(self, key: str) -> bool:
        """Soft-delete a registry declaration."""
        return registry.retire_entry(self, key)

    # ==========================================================================
    # Version operations - delegate to versions module
    # ==========================================================================

    def record_version(
        self,
        kind: VersionKind,
        key: str,
        variant: str,
        scope: Scope,
        value: Any,
        effective_from: datetime,
        effective_to: datetime | None,
        actor: str | None,
        change: ChangeLogEntry | None = None,
        started: float | None = None,
    ) -> tuple[ConfigVersion, int | None]:
        """Append a version (and its change-log row) atomically."""
        return versions.record_version(
            self,
            kind,
            key,
            variant,
            scope,
            value,
            effective_from,
            effective_to,
            actor,
            change,
            started=started,
        )

    def value_as_of(
        self, kind: VersionKind, key: str, variant: str, scope: Scope, as_of: datetime
    ) -> ConfigVersion | None:
        """Version whose window contains ``as_of`` at exactly ``scope``."""
        return versions.value_as_of(self, kind, key, variant, scope, as_of)

    def get_version(
        self, kind: VersionKind, key: str, variant: str, scope: Scope, version: int
    ) -> ConfigVersion | None:
        """Specific version number at exactly ``scope``."""
        return versions.get_version(self, kind, key, variant, scope, version)

    def get_history(
        self, kind: VersionKind, key: str, variant: str, scope: Scope, limit: int
    ) -> list[ConfigVersion]:
        """Versions newest first."""
        return versions.get_history(self, kind, key, variant, scope, limit)

    def next_start_after(
        self, kind: VersionKind, key: str, variant: str, scopes: list[Scope], after: datetime
    ) -> datetime | None:
        """Earliest version start after ``after`` at any of ``scopes``."""
        return versions.next_start_after(self, kind, key, variant, scopes, after)

    def keys_with_versions(self, kind: VersionKind, scope: Scope) -> list[str]:
        """Keys that have at least one version at exactly ``scope``."""
        return versions.keys_with_versions(self, kind, scope)

    # ==========================================================================
    # Change log operations - delegate to changelog module
    # ==========================================================================

    def append_change(self, entry: ChangeLogEntry) -> int:
        """Append a standalone change-log row."""
        return changelog.append_change(self, entry)

    def get_change(self, change_log_id: int) -> ChangeLogEntry | None:
        """Get one change-log row."""
        return changelog.get_change(self, change_log_id)

    def get_change_history(
        self,
        key: str,
        scope: Scope | None,
        from_date: datetime | None,
        to_date: datetime | None,
        limit: int,
        operation: ChangeOperation | None = None,
        kind: VersionKind | None = None,
    ) -> list[ChangeLogEntry]:
        """Change-log rows for a key, newest first."""
        return changelog.get_change_history(
            self, key, scope, from_date, to_date, limit, operation=operation, kind=kind
        )

    # ==========================================================================
    # Snapshot operations - delegate to snapshots module
    # ==========================================================================

    def insert_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Store a new snapshot."""
        return snapshots.insert_snapshot(self, snapshot)

    def get_snapshot(self, snapshot_id: int) -> Snapshot | None:
        """Get a snapshot by id."""
        return snapshots.get_snapshot(self, snapshot_id)

    def snapshot_name_exists(self, name: str) -> bool:
        """True when a snapshot already uses ``name``."""
        return snapshots.snapshot_name_exists(self, name)

    def list_snapshots(self, limit: int) -> list[Snapshot]:
        """Snapshots newest first."""
        return snapshots.list_snapshots(self, limit)

    # ==========================================================================
    # Audit activity - delegate to audit module
    # ==========================================================================

    def record_activity(self, activity: AuditActivity) -> int:
        """Append an application audit activity."""
        return audit.record_activity(self, activity)

    def list_activity(self, limit: int, actor: str | None = None) -> list[AuditActivity]:
        """Audit activities newest first."""
        return audit.list_activity(self, limit, actor=actor)
