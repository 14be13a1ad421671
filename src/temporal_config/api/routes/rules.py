"""Business rule and template routes."""

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
from temporal_config.api.models import SetRuleRequest, SetTemplateRequest
from temporal_config.api.routes._utils import handle_route_errors
from temporal_config.constants import API_PREFIX, DEFAULT_TEMPLATE_LOCALE
from temporal_config.models.payloads import BusinessRule, Template
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService

logger = logging.getLogger(__name__)
router = APIRouter(prefix=API_PREFIX, tags=["rules"])


@router.get("/rules/{rule_key}")
@handle_route_errors("get rule")
async def get_rule(
    rule_key: str,
    as_of: datetime | None = Query(default=None),
    scope: Scope = Depends(scope_query),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Resolve a business rule for a scope."""
    rule = await asyncio.to_thread(service.get_rule, rule_key, scope, as_of)
    return rule.model_dump(mode="json")


@router.put("/rules/{rule_key}")
@handle_route_errors("set rule")
async def set_rule(
    rule_key: str,
    request: SetRuleRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Append a new version of a business rule."""

    def _set() -> BusinessRule:
        with audited(service, actor, "set_rule", rule_key) as details:
            details["scope"] = request.scope.cache_token()
            return service.set_rule(
                rule_key,
                request.expression,
                scope=request.scope,
                params=request.params,
                engine=request.engine,
                description=request.description,
                effective_from=request.effective_from,
                effective_to=request.effective_to,
                actor=actor,
            )

    rule = await asyncio.to_thread(_set)
    return rule.model_dump(mode="json")


@router.get("/templates/{template_key}")
@handle_route_errors("get template")
async def get_template(
    template_key: str,
    channel: str = Query(..., description="email, voice, ui or sms"),
    locale: str = Query(default=DEFAULT_TEMPLATE_LOCALE),
    as_of: datetime | None = Query(default=None),
    scope: Scope = Depends(scope_query),
    actor: str = Depends(require_actor),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Resolve a template for a scope, channel and locale."""
    template = await asyncio.to_thread(
        service.get_template, template_key, channel, scope, locale=locale, as_of=as_of
    )
    return template.model_dump(mode="json")


@router.put("/templates/{template_key}")
@handle_route_errors("set template")
async def set_template(
    template_key: str,
    request: SetTemplateRequest,
    actor: str = Depends(require_admin),
    service: ConfigService = Depends(get_service),
) -> dict[str, Any]:
    """Append a new version of a template."""

    def _set() -> Template:
        with audited(service, actor, "set_template", template_key) as details:
            details["scope"] = request.scope.cache_token()
            details["channel"] = request.channel
            return service.set_template(
                template_key,
                request.channel,
                request.content,
                scope=request.scope,
                locale=request.locale,
                effective_from=request.effective_from,
                effective_to=request.effective_to,
                actor=actor,
            )

    template = await asyncio.to_thread(_set)
    return template.model_dump(mode="json")
