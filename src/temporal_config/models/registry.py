"""Registry declarations for configuration keys."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from temporal_config.exceptions import RetiredKey, ScopeNotAllowed
from temporal_config.models.enums import ScopeLevel, ValueType
from temporal_config.models.scope import Scope
from temporal_config.models.values import coerce_value, unwrap


class ConfigEntry(BaseModel):
    """Declaration of a configuration key.

    The default value must type-check against ``value_type``. Entries are
    never hard-deleted; ``deleted`` marks a retired key whose history stays
    readable but which accepts no new writes.
    """

    key: str = Field(..., min_length=1, max_length=255, description="Unique key")
    value_type: ValueType = Field(..., description="Declared value type")
    default_value: Any = Field(default=None, description="Value when no override resolves")
    allowed_levels: list[ScopeLevel] = Field(
        default_factory=lambda: list(ScopeLevel),
        description="Scope levels at which overrides may be written",
    )
    description: str = Field(default="", description="Human-readable description")
    category: str = Field(default="general", description="Grouping (ui, business, security...)")
    deleted: bool = Field(default=False, description="Soft-delete flag")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _check_default(self) -> "ConfigEntry":
        if self.default_value is not None:
            self.default_value = unwrap(
                coerce_value(self.key, self.value_type, self.default_value)
            )
        if not self.allowed_levels:
            self.allowed_levels = [ScopeLevel.GLOBAL]
        return self

    def allows(self, scope: Scope) -> bool:
        """True when overrides may be written at ``scope``'s level."""
        return scope.level in self.allowed_levels

    def check_writable(self, scope: Scope) -> None:
        """Raise if a write at ``scope`` is not permitted for this key.

        Raises:
            RetiredKey: If the entry is soft-deleted.
            ScopeNotAllowed: If the scope level is not among ``allowed_levels``.
        """
        if self.deleted:
            raise RetiredKey(self.key)
        if not self.allows(scope):
            raise ScopeNotAllowed(
                self.key, scope.level.value, [level.value for level in self.allowed_levels]
            )

    def coerce(self, raw: Any) -> Any:
        """Validate a raw value against this entry's type and return it."""
        return unwrap(coerce_value(self.key, self.value_type, raw))
