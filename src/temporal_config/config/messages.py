"""User-facing messages for the tcfg CLI and HTTP API."""

# =============================================================================
# Success Messages
# =============================================================================

SUCCESS_MESSAGES = {
    "registered": "Registered {key} ({value_type})",
    "loaded": "Loaded {count} registry entr(y/ies) from {path}",
    "retired": "Retired {key}",
    "set": "Set {key} = {value} (version {version}) at {scope}",
    "rolled_back": "Rolled back {count} key(s) in {elapsed} ms (change log #{change_log_id})",
    "snapshot_created": "Created snapshot #{snapshot_id} '{name}' with {count} entr(y/ies)",
    "snapshot_restored": "Restored {count} key(s) from snapshot #{snapshot_id}",
    "cache_cleared": "Resolution cache cleared",
}

# =============================================================================
# Error Messages
# =============================================================================

ERROR_MESSAGES = {
    "generic_error": "An error occurred: {error}",
    "rollback_failed": "Rollback failed: {error}",
    "restore_failed": "Restore failed: {error}",
    "invalid_value": "Value must be valid JSON or a plain string: {value}",
    "invalid_date": "Invalid date format. Use ISO 8601 (e.g. 2026-01-31T12:00:00Z)",
    "target_required": "Provide exactly one of --version or --date",
    "registry_file_invalid": "Registry file must contain a list under 'entries': {path}",
    "admin_required": "Write operations require the {header} header to be '{role}'",
}

# =============================================================================
# Info Messages
# =============================================================================

INFO_MESSAGES = {
    "no_versions": "No versions recorded for {key} at {scope}",
    "no_changes": "No change log entries for {key}",
    "no_entries": "No registry entries",
    "no_snapshots": "No snapshots",
    "no_activity": "No audit activity",
    "nothing_to_change": "Nothing to change: values already match the target",
    "serving": "Serving temporal-config API on http://{host}:{port}",
}

# =============================================================================
# Warning Messages
# =============================================================================

WARNING_MESSAGES = {
    "large_operation": "Rollback affects {count} keys",
    "stale_target": "Rollback target is {days} days old",
    "no_change": "Target value equals the current value; nothing will change",
}
