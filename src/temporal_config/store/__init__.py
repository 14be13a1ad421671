"""Config store package.

Splits the SQLite store into focused modules:
- schema.py: Database schema version and SQL
- migrations.py: Schema migration logic
- models.py: Data models (ConfigVersion, ChangeLogEntry, Snapshot, AuditActivity)
- core.py: Main ConfigStore class with connection management
- registry.py: Registry declarations
- versions.py: Effective-dated version writes and as-of reads
- changelog.py: Append-only change log
- snapshots.py: Snapshot storage
- audit.py: Application-level audit trail
"""

from temporal_config.store.core import ConfigStore
from temporal_config.store.models import (
    AuditActivity,
    ChangeLogEntry,
    ConfigVersion,
    Snapshot,
)
from temporal_config.store.schema import SCHEMA_SQL, SCHEMA_VERSION

__all__ = [
    # Main class
    "ConfigStore",
    # Data models
    "AuditActivity",
    "ChangeLogEntry",
    "ConfigVersion",
    "Snapshot",
    # Schema
    "SCHEMA_SQL",
    "SCHEMA_VERSION",
]
