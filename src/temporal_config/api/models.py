"""Request bodies for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from temporal_config.constants import DEFAULT_RULE_ENGINE, DEFAULT_TEMPLATE_LOCALE
from temporal_config.models.enums import ScopeLevel, ValueType
from temporal_config.models.scope import Scope


class RegisterRequest(BaseModel):
    """Declare or update a registry entry."""

    key: str = Field(..., min_length=1, max_length=255)
    value_type: ValueType
    default_value: Any = None
    allowed_levels: list[ScopeLevel] | None = None
    description: str = ""
    category: str = "general"


class SetSettingRequest(BaseModel):
    """Write a new setting version."""

    value: Any
    scope: Scope = Field(default_factory=Scope)
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    reason: str | None = None


class SetRuleRequest(BaseModel):
    """Write a new business rule version."""

    expression: Any
    params: dict[str, Any] | None = None
    engine: str = DEFAULT_RULE_ENGINE
    description: str = ""
    scope: Scope = Field(default_factory=Scope)
    effective_from: datetime | None = None
    effective_to: datetime | None = None


class SetTemplateRequest(BaseModel):
    """Write a new template version."""

    channel: str
    content: Any
    locale: str = DEFAULT_TEMPLATE_LOCALE
    scope: Scope = Field(default_factory=Scope)
    effective_from: datetime | None = None
    effective_to: datetime | None = None


class RollbackTargetRequest(BaseModel):
    """Target of a rollback validation or preview."""

    key: str | None = None
    scope: Scope = Field(default_factory=Scope)
    target_version: int | None = None
    target_date: datetime | None = None


class RollbackVersionRequest(BaseModel):
    """Roll one key back to a version."""

    key: str
    target_version: int
    scope: Scope = Field(default_factory=Scope)
    reason: str | None = None


class RollbackDateRequest(BaseModel):
    """Roll one key, or every key at a scope, back to a date."""

    key: str | None = None
    target_date: datetime
    scope: Scope = Field(default_factory=Scope)
    reason: str | None = None


class CreateSnapshotRequest(BaseModel):
    """Capture a snapshot."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    scope_filter: Scope = Field(default_factory=Scope)


class RestoreSnapshotRequest(BaseModel):
    """Restore a snapshot, optionally at a different scope."""

    scope: Scope | None = None
    reason: str | None = None
