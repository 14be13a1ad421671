"""Registry and setting routes."""

import asyncio
import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from temporal_config.api.deps import (
    audited,
    get_service,
    require_actor,
    require_admin,
    scope_query,
)
from temporal_config.api.models import RegisterRequest, SetSettingRequest
from temporal_config.api.routes._utils import handle_route_errors
from temporal_config.constants import API_PREFIX
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService
from temporal_config.store.models import ConfigVersion
from temporal_config.utils.timeutils import to_iso

logger = logging.getLogger(__name__)
router = APIRouter(prefix=API_PREFIX, tags=["settings"])


# =============================================================================
# Registry
# =============================================================================


@router.get("/registry")
@handle_route_errors("list registry")
async def list_registry(
    include_deleted: bool = Query(default=False),
    category: str | None = Query(default=None),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """List registry entries."""
    entries = await asyncio.to_thread(
        service.list_entries, include_deleted=include_deleted, category=category
    )
    return {"entries": [entry.model_dump(mode="json") for entry in entries]}


@router.get("/registry/{key}")
@handle_route_errors("get registry entry")
async def get_registry_entry(
    key: str,
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Get one registry entry (retired entries included)."""
    entry = await asyncio.to_thread(service.get_entry, key)
    return entry.model_dump(mode="json")


@router.post("/registry")
@handle_route_errors("register key")
async def register_key(
    request: RegisterRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Declare a key or update its declaration."""

    def _register() -> ConfigEntry:
        with audited(service, actor, "register", request.key):
            return service.register(
                request.key,
                request.value_type,
                default_value=request.default_value,
                allowed_levels=request.allowed_levels,
                description=request.description,
                category=request.category,
            )

    entry = await asyncio.to_thread(_register)
    return entry.model_dump(mode="json")


@router.delete("/registry/{key}")
@handle_route_errors("retire key")
async def retire_key(
    key: str,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Retire (soft-delete) a key."""

    def _retire() -> bool:
        with audited(service, actor, "retire", key) as details:
            retired = service.retire(key)
            details["retired"] = retired
            return retired

    retired = await asyncio.to_thread(_retire)
    return {"key": key, "retired": retired}


# =============================================================================
# Settings
# =============================================================================


@router.get("/settings/{key}")
@handle_route_errors("get setting")
async def get_setting(
    key: str,
    as_of: datetime | None = Query(default=None, description="Point in time (ISO 8601)"),
    scope: Scope = Depends(scope_query),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Resolve a setting for a scope, now or at ``as_of``."""
    value = await asyncio.to_thread(service.get_setting, key, scope, as_of)
    return {"key": key, "scope": scope.to_dict(), "as_of": to_iso(as_of), "value": value}


@router.put("/settings/{key}")
@handle_route_errors("set setting")
async def set_setting(
    key: str,
    request: SetSettingRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Append a new version of a setting."""

    def _set() -> ConfigVersion:
        with audited(service, actor, "set_setting", key) as details:
            details["scope"] = request.scope.cache_token()
            version = service.set_setting(
                key,
                request.value,
                scope=request.scope,
                effective_from=request.effective_from,
                effective_to=request.effective_to,
                actor=actor,
                reason=request.reason,
            )
            details["version"] = version.version
            return version

    version = await asyncio.to_thread(_set)
    return version.to_dict()
