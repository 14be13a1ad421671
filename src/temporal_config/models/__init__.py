"""Domain models for temporal-config."""

from temporal_config.models.enums import ChangeOperation, ScopeLevel, ValueType, VersionKind
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.scope import Scope, precedence_chain
from temporal_config.models.values import TypedValue, coerce_value, unwrap

__all__ = [
    "ChangeOperation",
    "ConfigEntry",
    "Scope",
    "ScopeLevel",
    "TypedValue",
    "ValueType",
    "VersionKind",
    "coerce_value",
    "precedence_chain",
    "unwrap",
]
