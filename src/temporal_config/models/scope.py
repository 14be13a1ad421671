"""Scope model and precedence chain.

A scope is the combination of persona / agent / workflow dimensions that
selects which override of a key applies. Specificity is fixed:
workflow > agent > persona > global (no dimension set).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from temporal_config.constants import GLOBAL_SCOPE_TOKEN, PRECEDENCE_CHAIN_LENGTH
from temporal_config.models.enums import ScopeLevel

# Dimension field names, least specific first
_DIMENSIONS: tuple[str, ...] = ("persona", "agent_id", "workflow_id")


def _first_set(data: dict[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


class Scope(BaseModel):
    """Override dimensions for a configuration lookup or write."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    persona: str | None = Field(default=None, description="Persona name (e.g. 'rachel')")
    agent_id: int | None = Field(default=None, description="Agent identifier")
    workflow_id: int | None = Field(default=None, description="Workflow identifier")

    @classmethod
    def global_scope(cls) -> "Scope":
        """The empty scope."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Scope":
        """Build a scope from a dict that may use camelCase keys."""
        if not data:
            return cls()
        return cls(
            persona=data.get("persona") or None,
            agent_id=_first_set(data, "agent_id", "agentId"),
            workflow_id=_first_set(data, "workflow_id", "workflowId"),
        )

    @property
    def level(self) -> ScopeLevel:
        """Most specific populated dimension."""
        if self.workflow_id is not None:
            return ScopeLevel.WORKFLOW
        if self.agent_id is not None:
            return ScopeLevel.AGENT
        if self.persona is not None:
            return ScopeLevel.PERSONA
        return ScopeLevel.GLOBAL

    @property
    def is_global(self) -> bool:
        """True when no dimension is set."""
        return self.level is ScopeLevel.GLOBAL

    def populated(self) -> list[str]:
        """Names of populated dimensions, least specific first."""
        return [name for name in _DIMENSIONS if getattr(self, name) is not None]

    def without(self, dimension: str) -> "Scope":
        """Copy of this scope with one dimension cleared."""
        return self.model_copy(update={dimension: None})

    def contains(self, other: "Scope") -> bool:
        """True when every dimension set here has the same value in ``other``.

        Used for scope filters (snapshots, restores), never for precedence.
        """
        return all(getattr(other, name) == getattr(self, name) for name in self.populated())

    def cache_token(self) -> str:
        """Canonical string form, stable across processes."""
        if self.is_global:
            return GLOBAL_SCOPE_TOKEN
        parts = []
        if self.persona is not None:
            parts.append(f"persona={self.persona}")
        if self.agent_id is not None:
            parts.append(f"agent={self.agent_id}")
        if self.workflow_id is not None:
            parts.append(f"workflow={self.workflow_id}")
        return ",".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Populated dimensions only."""
        return self.model_dump(exclude_none=True)

    def __str__(self) -> str:
        return self.cache_token()


def precedence_chain(requested: Scope) -> list[Scope]:
    """Scopes to consult for ``requested``, most specific first.

    Starts with the full requested scope, then repeatedly drops the least
    specific populated dimension until the global scope is reached. The
    result always has exactly four entries; once global is reached the
    remaining positions are global.

    Args:
        requested: Scope of the lookup (any combination, including empty).

    Returns:
        Four scopes ending in the global scope.
    """
    chain = [requested]
    current = requested
    for dimension in _DIMENSIONS:
        if getattr(current, dimension) is not None:
            current = current.without(dimension)
            chain.append(current)

    global_scope = Scope.global_scope()
    while len(chain) < PRECEDENCE_CHAIN_LENGTH:
        chain.append(global_scope)
    return chain
