"""Cache, audit trail and health routes."""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query

from temporal_config.api.deps import audited, get_service, require_actor, require_admin
from temporal_config.constants import API_PREFIX, DEFAULT_AUDIT_LIST_LIMIT, VERSION
from temporal_config.services.config_service import ConfigService
from temporal_config.utils.timeutils import to_iso

router = APIRouter(prefix=API_PREFIX, tags=["admin"])


@router.get("/health")
async def health() -> dict[str, Any]:
    """Liveness check (no authentication)."""
    return {"status": "ok", "version": VERSION}


@router.get("/cache/stats")
async def cache_stats(
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Resolution cache statistics."""
    stats = await asyncio.to_thread(service.cache_stats)
    return dict(stats)


@router.delete("/cache")
async def clear_cache(
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Drop every cached resolution."""

    def _clear() -> None:
        with audited(service, actor, "clear_cache", "cache"):
            service.clear_cache()

    await asyncio.to_thread(_clear)
    return {"cleared": True}


@router.get("/audit")
async def list_audit(
    limit: int = Query(default=DEFAULT_AUDIT_LIST_LIMIT, ge=1, le=1000),
    filter_actor: str | None = Query(default=None, alias="actor"),
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Application audit trail, newest first."""
    activities = await asyncio.to_thread(service.list_activity, limit, actor=filter_actor)
    return {
        "activities": [
            {
                "id": activity.id,
                "actor": activity.actor,
                "operation": activity.operation,
                "target": activity.target,
                "details": activity.details,
                "timestamp": to_iso(activity.timestamp),
            }
            for activity in activities
        ]
    }
