"""Database schema for the config store.

Contains schema version and SQL for creating the database schema.
"""

# Schema version for migrations
# v1: Registry, versions, change logs, snapshots
# v2: Added audit_activity table for the application-level audit trail
# v3: Added scope_token to config_change_logs for scope-filtered history
SCHEMA_VERSION = 3

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Registry: one declaration per key (soft-deleted, never removed)
CREATE TABLE IF NOT EXISTS config_registry (
    key TEXT PRIMARY KEY,
    value_type TEXT NOT NULL,  -- string, number, boolean, json, array
    default_value TEXT,  -- JSON
    allowed_levels TEXT NOT NULL,  -- JSON list of scope levels
    description TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT 'general',
    deleted BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_config_registry_category ON config_registry(category);

-- Effective-dated versions for settings, rules and templates
-- Rows are append-only; the only update ever applied closes effective_to
CREATE TABLE IF NOT EXISTS config_versions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,  -- setting, rule, template
    config_key TEXT NOT NULL,
    variant TEXT NOT NULL DEFAULT '',  -- channel:locale for templates, '' otherwise
    scope_token TEXT NOT NULL,  -- canonical scope ('global', 'persona=rachel', ...)
    persona TEXT,
    agent_id INTEGER,
    workflow_id INTEGER,
    value TEXT NOT NULL,  -- JSON
    version INTEGER NOT NULL,
    effective_from TEXT NOT NULL,
    effective_from_us INTEGER NOT NULL,  -- microseconds since epoch, used for comparisons
    effective_to TEXT,  -- NULL = open-ended
    effective_to_us INTEGER,
    created_by TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (kind, config_key, variant, scope_token, version)
);

-- Covering index for as-of lookups
CREATE INDEX IF NOT EXISTS idx_config_versions_as_of
    ON config_versions(kind, config_key, variant, scope_token, effective_from_us);
CREATE INDEX IF NOT EXISTS idx_config_versions_scope
    ON config_versions(kind, scope_token);

-- Change log (immutable audit ledger)
CREATE TABLE IF NOT EXISTS config_change_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    operation TEXT NOT NULL,  -- set, rollback, restore
    target_key TEXT NOT NULL,  -- '*' for bulk summary rows
    kind TEXT NOT NULL DEFAULT 'setting',
    scope_token TEXT NOT NULL,
    persona TEXT,
    agent_id INTEGER,
    workflow_id INTEGER,
    previous_value TEXT,  -- JSON
    new_value TEXT,  -- JSON
    version INTEGER,  -- version written, if any
    actor TEXT NOT NULL,
    reason TEXT,
    target_version INTEGER,
    target_date TEXT,
    snapshot_id INTEGER,
    affected_count INTEGER NOT NULL DEFAULT 1,
    success BOOLEAN NOT NULL DEFAULT TRUE,
    error_details TEXT,  -- JSON
    execution_time_ms INTEGER NOT NULL DEFAULT 0,
    timestamp TEXT NOT NULL,
    timestamp_us INTEGER NOT NULL,
    FOREIGN KEY (snapshot_id) REFERENCES config_snapshots(id)
);

CREATE INDEX IF NOT EXISTS idx_config_change_logs_key
    ON config_change_logs(target_key, timestamp_us DESC);
CREATE INDEX IF NOT EXISTS idx_config_change_logs_operation ON config_change_logs(operation);
CREATE INDEX IF NOT EXISTS idx_config_change_logs_actor ON config_change_logs(actor);

-- Snapshots of resolved state
CREATE TABLE IF NOT EXISTS config_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    description TEXT,
    persona TEXT,
    agent_id INTEGER,
    workflow_id INTEGER,
    captured_entries TEXT NOT NULL,  -- JSON object key -> value
    metrics TEXT,  -- JSON
    created_by TEXT NOT NULL,
    captured_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_config_snapshots_captured ON config_snapshots(captured_at DESC);

-- Application-level audit trail (v2)
CREATE TABLE IF NOT EXISTS audit_activity (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor TEXT NOT NULL,
    operation TEXT NOT NULL,
    target TEXT NOT NULL,
    details TEXT,  -- JSON
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_audit_activity_timestamp ON audit_activity(timestamp DESC);
"""
