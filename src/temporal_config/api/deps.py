"""Request dependencies: service access, actor identity and scope parsing."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import Depends, Header, HTTPException, Query

from temporal_config.api.state import get_state
from temporal_config.config.messages import ERROR_MESSAGES
from temporal_config.constants import HEADER_ACTOR, HEADER_ACTOR_ROLE
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService

logger = logging.getLogger(__name__)


def get_service() -> ConfigService:
    """The shared ConfigService (503 before the app is initialized)."""
    service = get_state().service
    if service is None:
        raise HTTPException(status_code=503, detail="Configuration service not initialized")
    return service


def require_actor(x_actor: str | None = Header(default=None, alias=HEADER_ACTOR)) -> str:
    """Any authenticated actor."""
    if not x_actor or not x_actor.strip():
        raise HTTPException(status_code=401, detail=f"Missing {HEADER_ACTOR} header")
    return x_actor.strip()


def require_admin(
    actor: str = Depends(require_actor),
    x_actor_role: str | None = Header(default=None, alias=HEADER_ACTOR_ROLE),
) -> str:
    """An actor holding the admin role."""
    admin_role = get_state().admin_role
    if (x_actor_role or "").strip().lower() != admin_role.lower():
        logger.warning(f"Rejected write by {actor}: role {x_actor_role!r}")
        raise HTTPException(
            status_code=403,
            detail=ERROR_MESSAGES["admin_required"].format(
                header=HEADER_ACTOR_ROLE, role=admin_role
            ),
        )
    return actor


def scope_query(
    persona: str | None = Query(default=None, description="Persona dimension"),
    agent_id: int | None = Query(default=None, description="Agent dimension"),
    workflow_id: int | None = Query(default=None, description="Workflow dimension"),
) -> Scope:
    """Scope from query parameters."""
    return Scope(persona=persona, agent_id=agent_id, workflow_id=workflow_id)


@contextmanager
def audited(
    service: ConfigService, actor: str, operation: str, target: str
) -> Iterator[dict[str, Any]]:
    """Record an audit activity around a write-class call.

    Yields a details dict the handler may enrich; the outcome is added on exit.
    """
    details: dict[str, Any] = {}
    try:
        yield details
    except Exception as e:
        details["outcome"] = "error"
        details["error"] = type(e).__name__
        service.record_activity(actor, operation, target, details)
        raise
    details.setdefault("outcome", "success")
    service.record_activity(actor, operation, target, details)
