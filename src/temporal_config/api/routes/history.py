"""Version and change history routes."""

import asyncio
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from temporal_config.api.deps import get_service, require_actor, scope_query
from temporal_config.api.routes._utils import handle_route_errors
from temporal_config.constants import (
    API_PREFIX,
    DEFAULT_CHANGE_HISTORY_LIMIT,
    DEFAULT_VERSION_HISTORY_LIMIT,
)
from temporal_config.models.enums import ChangeOperation, VersionKind
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService

router = APIRouter(prefix=API_PREFIX, tags=["history"])


@router.get("/history/{key}/versions")
@handle_route_errors("get version history")
async def get_version_history(
    key: str,
    limit: int = Query(default=DEFAULT_VERSION_HISTORY_LIMIT, ge=1, le=1000),
    scope: Scope = Depends(scope_query),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Versions of a setting at exactly the given scope, newest first."""
    versions = await asyncio.to_thread(service.get_version_history, key, scope, limit=limit)
    return {"key": key, "versions": [version.to_dict() for version in versions]}


@router.get("/history/{key}/changes")
@handle_route_errors("get change history")
async def get_change_history(
    key: str,
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
    operation: ChangeOperation | None = Query(default=None),
    kind: VersionKind = Query(default=VersionKind.SETTING),
    all_scopes: bool = Query(default=False, description="Ignore the scope filter"),
    limit: int = Query(default=DEFAULT_CHANGE_HISTORY_LIMIT, ge=1, le=1000),
    scope: Scope = Depends(scope_query),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Change-log rows for a key, newest first."""
    changes = await asyncio.to_thread(
        service.get_change_history,
        key,
        None if all_scopes else scope,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        operation=operation,
        kind=kind,
    )
    return {"key": key, "changes": [change.to_dict() for change in changes]}
