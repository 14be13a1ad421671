"""Snapshot routes."""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from temporal_config.api.deps import audited, get_service, require_actor, require_admin
from temporal_config.api.models import CreateSnapshotRequest, RestoreSnapshotRequest
from temporal_config.api.routes._utils import handle_route_errors, rollback_response
from temporal_config.constants import API_PREFIX, DEFAULT_SNAPSHOT_LIST_LIMIT
from temporal_config.models.results import RollbackResult
from temporal_config.services.config_service import ConfigService
from temporal_config.store.models import Snapshot

router = APIRouter(prefix=f"{API_PREFIX}/snapshots", tags=["snapshots"])


@router.get("")
@handle_route_errors("list snapshots")
async def list_snapshots(
    limit: int = Query(default=DEFAULT_SNAPSHOT_LIST_LIMIT, ge=1, le=1000),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """List snapshots, newest first."""
    snapshots = await asyncio.to_thread(service.list_snapshots, limit)
    return {"snapshots": [snapshot.to_dict() for snapshot in snapshots]}


@router.get("/{snapshot_id}")
@handle_route_errors("get snapshot")
async def get_snapshot(
    snapshot_id: int,
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Get one snapshot with its captured entries."""
    snapshot = await asyncio.to_thread(service.get_snapshot, snapshot_id)
    return snapshot.to_dict()


@router.post("")
@handle_route_errors("create snapshot")
async def create_snapshot(
    request: CreateSnapshotRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Capture the current resolved configuration."""

    def _create() -> Snapshot:
        with audited(service, actor, "create_snapshot", request.name) as details:
            snapshot = service.create_snapshot(
                request.name,
                actor=actor,
                description=request.description,
                scope_filter=request.scope_filter,
            )
            details["snapshot_id"] = snapshot.id
            return snapshot

    snapshot = await asyncio.to_thread(_create)
    return snapshot.to_dict()


@router.post("/{snapshot_id}/restore")
@handle_route_errors("restore snapshot")
async def restore_snapshot(
    snapshot_id: int,
    request: RestoreSnapshotRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> JSONResponse:
    """Write a snapshot's captured values back, effective now."""

    def _restore() -> RollbackResult:
        with audited(service, actor, "restore_snapshot", str(snapshot_id)) as details:
            result = service.restore_from_snapshot(
                snapshot_id, actor=actor, scope=request.scope, reason=request.reason
            )
            details.update(
                affected_count=result["affected_count"],
                outcome="success" if result["success"] else "failed",
            )
            return result

    result = await asyncio.to_thread(_restore)
    return rollback_response(result)
