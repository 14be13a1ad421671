"""Version operations for the config store.

Functions for appending effective-dated versions and reading them back by
point in time, version number or recency.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from temporal_config.exceptions import InvalidWindow, WindowOverlap, WriteConflict
from temporal_config.models.enums import VersionKind
from temporal_config.models.scope import Scope
from temporal_config.store.changelog import insert_change
from temporal_config.store.models import ChangeLogEntry, ConfigVersion
from temporal_config.utils.timeutils import ensure_utc, from_iso, to_epoch_us, to_iso

if TYPE_CHECKING:
    from temporal_config.store.core import ConfigStore

logger = logging.getLogger(__name__)

_IDENTITY_WHERE = "kind = ? AND config_key = ? AND variant = ? AND scope_token = ?"


def _identity(kind: VersionKind, key: str, variant: str, scope: Scope) -> tuple[str, str, str, str]:
    return (kind.value, key, variant, scope.cache_token())


def record_version(
    store: ConfigStore,
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
    """Append a new version, closing the currently open one if it started earlier.

    Runs in a single write transaction: the close, the insert and the optional
    change-log row either all land or none do.

    Args:
        store: The ConfigStore instance.
        kind: Setting, rule or template.
        key: Configuration key.
        variant: Rule engine / template channel:locale ('' for settings).
        scope: Exact scope the version is written at.
        value: Plain JSON-serialisable value (already type-checked).
        effective_from: Start of the window (inclusive).
        effective_to: End of the window (exclusive), or None for open-ended.
        actor: Who wrote it.
        change: Change-log row to append in the same transaction. Its
            ``previous_value`` and ``version`` are filled in here.
        started: ``time.perf_counter()`` reading taken when the write began;
            the change row's ``execution_time_ms`` is measured from it.

    Returns:
        Tuple of (stored version, change-log id or None).

    Raises:
        InvalidWindow: If ``effective_to`` is not after ``effective_from``.
        WindowOverlap: If the window intersects a version that is not the
            currently open one.
        WriteConflict: If another writer committed the same version number.
    """
    effective_from = ensure_utc(effective_from)
    effective_to = ensure_utc(effective_to) if effective_to is not None else None
    from_us = to_epoch_us(effective_from)
    to_us = to_epoch_us(effective_to) if effective_to is not None else None
    if to_us is not None and to_us <= from_us:
        raise InvalidWindow(key, effective_from, effective_to)  # type: ignore[arg-type]

    identity = _identity(kind, key, variant, scope)

    with store._transaction(immediate=True) as conn:
        row = conn.execute(
            f"SELECT MAX(version) FROM config_versions WHERE {_IDENTITY_WHERE}",
            identity,
        ).fetchone()
        next_version = (row[0] or 0) + 1

        previous = _find_containing(conn, identity, from_us)

        open_row = conn.execute(
            f"""
            SELECT id, version, effective_from_us FROM config_versions
            WHERE {_IDENTITY_WHERE} AND effective_to_us IS NULL
            ORDER BY version DESC LIMIT 1
            """,
            identity,
        ).fetchone()
        if open_row is not None and open_row["effective_from_us"] <= from_us:
            cursor = conn.execute(
                """
                UPDATE config_versions SET effective_to = ?, effective_to_us = ?
                WHERE id = ? AND effective_to_us IS NULL
                """,
                (to_iso(effective_from), from_us, open_row["id"]),
            )
            if cursor.rowcount != 1:
                raise WriteConflict(key, scope.cache_token(), attempts=1)

        # Anything still intersecting the new window is a genuine overlap.
        # Empty windows (to == from) left by same-instant closes never overlap.
        overlap = conn.execute(
            f"""
            SELECT version FROM config_versions
            WHERE {_IDENTITY_WHERE}
              AND (effective_to_us IS NULL OR effective_to_us > effective_from_us)
              AND (effective_to_us IS NULL OR effective_to_us > ?)
              AND (? IS NULL OR effective_from_us < ?)
            ORDER BY version DESC LIMIT 1
            """,
            (*identity, from_us, to_us, to_us),
        ).fetchone()
        if overlap is not None:
            raise WindowOverlap(key, scope.cache_token(), overlap["version"])

        version = ConfigVersion(
            key=key,
            value=value,
            version=next_version,
            effective_from=effective_from,
            effective_to=effective_to,
            scope=scope,
            kind=kind,
            variant=variant,
            created_by=actor,
        )
        try:
            cursor = conn.execute(
                """
                INSERT INTO config_versions (kind, config_key, variant, scope_token,
                                             persona, agent_id, workflow_id, value, version,
                                             effective_from, effective_from_us,
                                             effective_to, effective_to_us,
                                             created_by, created_at)
                VALUES (:kind, :config_key, :variant, :scope_token,
                        :persona, :agent_id, :workflow_id, :value, :version,
                        :effective_from, :effective_from_us,
                        :effective_to, :effective_to_us,
                        :created_by, :created_at)
                """,
                version.to_row(),
            )
        except sqlite3.IntegrityError as e:
            logger.debug(f"Version insert collided for {key} @ {scope}: {e}")
            raise WriteConflict(key, scope.cache_token(), attempts=1) from e
        version.id = cursor.lastrowid

        change_log_id = None
        if change is not None:
            change.version = next_version
            change.previous_value = previous.value if previous is not None else None
            if started is not None:
                change.execution_time_ms = int((time.perf_counter() - started) * 1000)
            change_log_id = insert_change(conn, change)

    logger.debug(
        f"Recorded {kind.value} {key} v{next_version} @ {scope} from {to_iso(effective_from)}"
    )
    return version, change_log_id


def _find_containing(
    conn: sqlite3.Connection, identity: tuple[str, str, str, str], point_us: int
) -> ConfigVersion | None:
    row = conn.execute(
        f"""
        SELECT * FROM config_versions
        WHERE {_IDENTITY_WHERE}
          AND effective_from_us <= ?
          AND (effective_to_us IS NULL OR effective_to_us > ?)
        ORDER BY version DESC LIMIT 1
        """,
        (*identity, point_us, point_us),
    ).fetchone()
    return ConfigVersion.from_row(row) if row else None


def value_as_of(
    store: ConfigStore,
    kind: VersionKind,
    key: str,
    variant: str,
    scope: Scope,
    as_of: datetime,
) -> ConfigVersion | None:
    """Get the version in effect at ``as_of`` for exactly ``scope``.

    Returns:
        The version whose window contains ``as_of``, or None.
    """
    conn = store._get_connection()
    return _find_containing(conn, _identity(kind, key, variant, scope), to_epoch_us(as_of))


def get_version(
    store: ConfigStore,
    kind: VersionKind,
    key: str,
    variant: str,
    scope: Scope,
    version: int,
) -> ConfigVersion | None:
    """Get a specific version number for exactly ``scope``."""
    conn = store._get_connection()
    row = conn.execute(
        f"SELECT * FROM config_versions WHERE {_IDENTITY_WHERE} AND version = ?",
        (*_identity(kind, key, variant, scope), version),
    ).fetchone()
    return ConfigVersion.from_row(row) if row else None


def get_history(
    store: ConfigStore,
    kind: VersionKind,
    key: str,
    variant: str,
    scope: Scope,
    limit: int,
) -> list[ConfigVersion]:
    """Get versions for exactly ``scope``, newest version first."""
    conn = store._get_connection()
    cursor = conn.execute(
        f"""
        SELECT * FROM config_versions
        WHERE {_IDENTITY_WHERE}
        ORDER BY version DESC
        LIMIT ?
        """,
        (*_identity(kind, key, variant, scope), limit),
    )
    return [ConfigVersion.from_row(row) for row in cursor.fetchall()]


def keys_with_versions(store: ConfigStore, kind: VersionKind, scope: Scope) -> list[str]:
    """Distinct keys with at least one version at exactly ``scope``."""
    conn = store._get_connection()
    cursor = conn.execute(
        """
        SELECT DISTINCT config_key FROM config_versions
        WHERE kind = ? AND scope_token = ?
        ORDER BY config_key
        """,
        (kind.value, scope.cache_token()),
    )
    return [row[0] for row in cursor.fetchall()]


def next_start_after(
    store: ConfigStore,
    kind: VersionKind,
    key: str,
    variant: str,
    scopes: list[Scope],
    after: datetime,
) -> datetime | None:
    """Earliest version start later than ``after`` across ``scopes``.

    Used to bound how long a resolution of "now" stays valid.
    """
    tokens = sorted({scope.cache_token() for scope in scopes})
    placeholders = ", ".join("?" for _ in tokens)
    conn = store._get_connection()
    row = conn.execute(
        f"""
        SELECT effective_from FROM config_versions
        WHERE kind = ? AND config_key = ? AND variant = ?
          AND scope_token IN ({placeholders})
          AND effective_from_us > ?
        ORDER BY effective_from_us LIMIT 1
        """,
        (kind.value, key, variant, *tokens, to_epoch_us(after)),
    ).fetchone()
    return from_iso(row[0]) if row else None
