"""Rollback routes."""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from temporal_config.api.deps import audited, get_service, require_actor, require_admin
from temporal_config.api.models import (
    RollbackDateRequest,
    RollbackTargetRequest,
    RollbackVersionRequest,
)
from temporal_config.api.routes._utils import handle_route_errors, rollback_response
from temporal_config.constants import API_PREFIX, BULK_TARGET_KEY
from temporal_config.exceptions import InvalidRollbackTarget
from temporal_config.models.results import RollbackResult
from temporal_config.services.config_service import ConfigService
from temporal_config.utils.timeutils import to_iso

router = APIRouter(prefix=f"{API_PREFIX}/rollback", tags=["rollback"])


@router.post("/validate")
@handle_route_errors("validate rollback")
async def validate_rollback(
    request: RollbackTargetRequest,
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Validate a rollback target without writing."""
    validation = await asyncio.to_thread(
        service.validate_rollback,
        request.key,
        request.scope,
        target_version=request.target_version,
        target_date=request.target_date,
    )
    return dict(validation)


@router.post("/preview")
@handle_route_errors("preview rollback")
async def preview_rollback(
    request: RollbackTargetRequest,
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Show the current and target value of a single-key rollback."""
    if request.key is None:
        raise InvalidRollbackTarget("Preview requires a key", {})
    preview = await asyncio.to_thread(
        service.preview_rollback_changes,
        request.key,
        request.scope,
        target_version=request.target_version,
        target_date=request.target_date,
    )
    return dict(preview)


@router.post("/version")
@handle_route_errors("rollback to version")
async def rollback_to_version(
    request: RollbackVersionRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> JSONResponse:
    """Roll a key back to a version at exactly the given scope."""

    def _rollback() -> RollbackResult:
        with audited(service, actor, "rollback_version", request.key) as details:
            result = service.rollback_setting(
                request.key,
                request.target_version,
                scope=request.scope,
                actor=actor,
                reason=request.reason,
            )
            details.update(
                scope=request.scope.cache_token(),
                target_version=request.target_version,
                outcome="success" if result["success"] else "failed",
            )
            return result

    result = await asyncio.to_thread(_rollback)
    return rollback_response(result)


@router.post("/date")
@handle_route_errors("rollback to date")
async def rollback_to_date(
    request: RollbackDateRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> JSONResponse:
    """Roll a key (or every key at the scope when ``key`` is omitted) back to a date."""

    def _rollback() -> RollbackResult:
        target = request.key or BULK_TARGET_KEY
        with audited(service, actor, "rollback_date", target) as details:
            result = service.rollback_to_date(
                request.key,
                request.target_date,
                scope=request.scope,
                actor=actor,
                reason=request.reason,
            )
            details.update(
                scope=request.scope.cache_token(),
                target_date=to_iso(request.target_date),
                affected_count=result["affected_count"],
                outcome="success" if result["success"] else "failed",
            )
            return result

    result = await asyncio.to_thread(_rollback)
    return rollback_response(result)
