"""Result types for engine operations.

TypedDict definitions for rollback/restore results, validation, previews and
cache statistics, giving callers type-safe dictionary structures.
"""

from typing import Any, NotRequired, TypedDict


class RollbackResult(TypedDict):
    """Outcome of a rollback or snapshot restore.

    ``affected_count`` only counts keys actually committed. On failure
    ``error_details`` identifies the failing key and cause.
    """

    success: bool
    affected_count: int
    change_log_id: int
    execution_time_ms: int
    rollback_version: NotRequired[int]
    rollback_date: NotRequired[str]
    error_details: NotRequired[dict[str, Any]]


class RollbackValidation(TypedDict):
    """Side-effect-free validation of a rollback target."""

    is_valid: bool
    reason: str | None
    errors: list[str]
    warnings: list[str]
    affected_keys: list[str]


class RollbackPreview(TypedDict):
    """What a rollback would change, computed without writing."""

    current_value: Any
    target_value: Any
    will_change: bool


class CacheStats(TypedDict):
    """Resolution cache statistics."""

    size: int
    max_entries: int
    hits: int
    misses: int
