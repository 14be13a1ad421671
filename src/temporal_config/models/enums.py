"""Enum types for temporal-config.

Type-safe enumerations for value types, scope levels, version kinds and
change-log operations. Values are the strings persisted in the store.
"""

from enum import Enum


class ValueType(str, Enum):
    """Declared type of a registry entry."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    ARRAY = "array"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all value types."""
        return [t.value for t in cls]


class ScopeLevel(str, Enum):
    """Precedence level of a scope, most specific first."""

    WORKFLOW = "workflow"
    AGENT = "agent"
    PERSONA = "persona"
    GLOBAL = "global"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all levels."""
        return [level.value for level in cls]

    @property
    def rank(self) -> int:
        """Specificity rank (higher is more specific)."""
        ranks = {
            "workflow": 3,
            "agent": 2,
            "persona": 1,
            "global": 0,
        }
        return ranks[self.value]


class VersionKind(str, Enum):
    """What a stored version holds."""

    SETTING = "setting"
    RULE = "rule"
    TEMPLATE = "template"


class ChangeOperation(str, Enum):
    """Change log operation types."""

    SET = "set"
    ROLLBACK = "rollback"
    RESTORE = "restore"

    @classmethod
    def values(cls) -> list[str]:
        """Return list of all operations."""
        return [op.value for op in cls]
