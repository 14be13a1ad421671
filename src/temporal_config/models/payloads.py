"""Business rule and template payloads.

Rules and templates are stored as versions like settings; these models are
the shape of the stored value plus the resolution metadata callers see.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from temporal_config.constants import (
    DEFAULT_RULE_ENGINE,
    DEFAULT_TEMPLATE_LOCALE,
    SUPPORTED_RULE_ENGINES,
    SUPPORTED_TEMPLATE_CHANNELS,
)
from temporal_config.models.scope import Scope


def template_variant(channel: str, locale: str) -> str:
    """Version variant for a template channel and locale."""
    return f"{channel}:{locale}"


class BusinessRule(BaseModel):
    """A business rule expression in a named engine format."""

    rule_key: str = Field(..., min_length=1, max_length=255)
    expression: Any = Field(..., description="Rule logic in the engine's format")
    params: dict[str, Any] | None = None
    engine: str = Field(default=DEFAULT_RULE_ENGINE, description="jsonlogic, cel or simple")
    description: str = ""
    # Resolution metadata (filled on read)
    scope: Scope = Field(default_factory=Scope)
    version: int | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None

    @field_validator("engine")
    @classmethod
    def _check_engine(cls, value: str) -> str:
        if value not in SUPPORTED_RULE_ENGINES:
            raise ValueError(f"engine must be one of {', '.join(SUPPORTED_RULE_ENGINES)}")
        return value

    def to_value(self) -> dict[str, Any]:
        """Stored value for this rule."""
        return {
            "expression": self.expression,
            "params": self.params,
            "engine": self.engine,
            "description": self.description,
        }


class Template(BaseModel):
    """Channel- and locale-specific content with placeholders."""

    template_key: str = Field(..., min_length=1, max_length=255)
    channel: str
    content: Any = Field(..., description="Template content with placeholders")
    locale: str = DEFAULT_TEMPLATE_LOCALE
    scope: Scope = Field(default_factory=Scope)
    version: int | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None

    @field_validator("channel")
    @classmethod
    def _check_channel(cls, value: str) -> str:
        if value not in SUPPORTED_TEMPLATE_CHANNELS:
            raise ValueError(f"channel must be one of {', '.join(SUPPORTED_TEMPLATE_CHANNELS)}")
        return value

    @property
    def variant(self) -> str:
        return template_variant(self.channel, self.locale)

    def to_value(self) -> dict[str, Any]:
        """Stored value for this template."""
        return {"content": self.content}
