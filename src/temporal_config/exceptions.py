"""Custom exceptions for temporal-config.

All exceptions inherit from TemporalConfigError, allowing callers to catch
every engine error with a single except clause if desired.

Exception hierarchy:
    TemporalConfigError (base)
    ├── NotFoundError
    │   ├── UnknownKey
    │   ├── VersionNotFound
    │   ├── SnapshotNotFound
    │   ├── RuleNotFound
    │   └── TemplateNotFound
    ├── ValidationError
    │   ├── TypeMismatch
    │   ├── InvalidWindow
    │   ├── WindowOverlap
    │   ├── ScopeNotAllowed
    │   ├── RetiredKey
    │   └── InvalidRollbackTarget
    ├── ConflictError
    │   ├── WriteConflict
    │   └── DuplicateSnapshotName
    ├── PartialBulkFailure
    └── StorageError
"""

from datetime import datetime
from typing import Any


class TemporalConfigError(Exception):
    """Base exception for all temporal-config errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with identifying context (key, scope, version...).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize error.

        Args:
            message: Error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message

    def to_details(self) -> dict[str, Any]:
        """Structured form used for ``error_details`` in results and logs."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            **{k: _jsonable(v) for k, v in self.details.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool, list, dict)) or value is None:
        return value
    return str(value)


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(TemporalConfigError):
    """Base class for lookups that found nothing."""


class UnknownKey(NotFoundError):
    """Raised when an operation references a key with no registry entry."""

    def __init__(self, key: str):
        super().__init__(f"Unknown configuration key '{key}'", {"key": key})
        self.key = key


class VersionNotFound(NotFoundError):
    """Raised when a rollback target version or date has no stored value.

    Examples:
        - Version 7 requested for a key that only has versions 1-3
        - Target date predates every version at the requested scope
    """

    def __init__(
        self,
        key: str,
        scope: str,
        version: int | None = None,
        as_of: datetime | None = None,
    ):
        """Initialize version lookup error.

        Args:
            key: Configuration key.
            scope: Canonical scope token.
            version: Requested version number, if any.
            as_of: Requested point in time, if any.
        """
        details: dict[str, Any] = {"key": key, "scope": scope}
        if version is not None:
            details["version"] = version
            message = f"Version {version} not found for key '{key}'"
        else:
            details["as_of"] = as_of
            message = f"No value for key '{key}' at {as_of.isoformat() if as_of else 'that date'}"
        super().__init__(message, details)
        self.key = key
        self.scope = scope
        self.version = version
        self.as_of = as_of


class SnapshotNotFound(NotFoundError):
    """Raised when a snapshot id does not exist."""

    def __init__(self, snapshot_id: int):
        super().__init__(f"Snapshot {snapshot_id} not found", {"snapshot_id": snapshot_id})
        self.snapshot_id = snapshot_id


class RuleNotFound(NotFoundError):
    """Raised when no business rule resolves for a key and scope."""

    def __init__(self, rule_key: str, scope: str):
        super().__init__(
            f"No business rule '{rule_key}' in effect", {"rule_key": rule_key, "scope": scope}
        )
        self.rule_key = rule_key


class TemplateNotFound(NotFoundError):
    """Raised when no template resolves for a key, channel, locale and scope."""

    def __init__(self, template_key: str, variant: str, scope: str):
        super().__init__(
            f"No template '{template_key}' in effect",
            {"template_key": template_key, "variant": variant, "scope": scope},
        )
        self.template_key = template_key


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(TemporalConfigError):
    """Raised when input is rejected before any store mutation."""


class TypeMismatch(ValidationError):
    """Raised when a value does not conform to the declared registry type."""

    def __init__(self, key: str, expected: str, value: Any):
        value_str = repr(value)
        if len(value_str) > 100:
            value_str = value_str[:100] + "..."
        super().__init__(
            f"Value for '{key}' is not a valid {expected}",
            {"key": key, "expected": expected, "value": value_str},
        )
        self.key = key
        self.expected = expected
        self.value = value


class InvalidWindow(ValidationError):
    """Raised when effective_to does not come after effective_from."""

    def __init__(self, key: str, effective_from: datetime, effective_to: datetime):
        super().__init__(
            f"Effective window for '{key}' is empty or inverted",
            {"key": key, "effective_from": effective_from, "effective_to": effective_to},
        )


class WindowOverlap(ValidationError):
    """Raised when a new version's window would overlap an existing one."""

    def __init__(self, key: str, scope: str, conflicting_version: int):
        super().__init__(
            f"Effective window for '{key}' overlaps version {conflicting_version}",
            {"key": key, "scope": scope, "conflicting_version": conflicting_version},
        )
        self.conflicting_version = conflicting_version


class ScopeNotAllowed(ValidationError):
    """Raised when a key may not be overridden at the requested scope level."""

    def __init__(self, key: str, level: str, allowed: list[str]):
        super().__init__(
            f"Key '{key}' cannot be overridden at {level} level",
            {"key": key, "level": level, "allowed": allowed},
        )


class RetiredKey(ValidationError):
    """Raised when writing to a soft-deleted registry entry."""

    def __init__(self, key: str):
        super().__init__(f"Key '{key}' is retired", {"key": key})


class InvalidRollbackTarget(ValidationError):
    """Raised when a rollback target is malformed (both/neither target given...)."""


# =============================================================================
# Conflict Errors
# =============================================================================


class ConflictError(TemporalConfigError):
    """Base class for errors caused by concurrent or duplicate state."""


class WriteConflict(ConflictError):
    """Raised when a concurrent write to the same key and scope won the race."""

    def __init__(self, key: str, scope: str, attempts: int):
        super().__init__(
            f"Concurrent write conflict on '{key}'",
            {"key": key, "scope": scope, "attempts": attempts},
        )


class DuplicateSnapshotName(ConflictError):
    """Raised when a snapshot name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"Snapshot '{name}' already exists", {"name": name})
        self.name = name


# =============================================================================
# Bulk and Storage Errors
# =============================================================================


class PartialBulkFailure(TemporalConfigError):
    """Raised when a bulk rollback/restore stops at a failing key.

    Keys committed before the failure stay committed.
    """

    def __init__(
        self,
        failed_key: str | None,
        committed_keys: list[str],
        cause: Exception | None = None,
        cancelled: bool = False,
    ):
        if cancelled:
            message = f"Bulk operation cancelled after {len(committed_keys)} key(s)"
        else:
            message = f"Bulk operation failed at key '{failed_key}'"
        details: dict[str, Any] = {
            "failed_key": failed_key,
            "committed_keys": list(committed_keys),
            "cancelled": cancelled,
        }
        if cause is not None:
            details["cause"] = (
                cause.to_details() if isinstance(cause, TemporalConfigError) else str(cause)
            )
        super().__init__(message, details)
        self.failed_key = failed_key
        self.committed_keys = list(committed_keys)
        self.cause = cause
        self.cancelled = cancelled

    @property
    def affected_count(self) -> int:
        """Number of keys committed before the failure."""
        return len(self.committed_keys)


class StorageError(TemporalConfigError):
    """Raised when the underlying store fails unexpectedly."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, {"operation": operation} if operation else None)
