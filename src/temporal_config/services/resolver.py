"""Scope-precedence resolution of settings, rules and templates.

Walks the precedence chain of the requested scope, most specific first, and
returns the first version in effect at the lookup time. Precedence always
outranks recency: a newer global version never beats an older workflow one.
"""

import logging
from datetime import datetime
from typing import Any

from temporal_config.constants import SETTING_VARIANT
from temporal_config.exceptions import RuleNotFound, TemplateNotFound, UnknownKey
from temporal_config.models.enums import VersionKind
from temporal_config.models.payloads import BusinessRule, Template, template_variant
from temporal_config.models.scope import Scope, precedence_chain
from temporal_config.services.cache import ResolutionCache
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import ConfigVersion
from temporal_config.utils.timeutils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class Resolver:
    """Resolves values through the precedence chain with caching."""

    def __init__(self, store: ConfigStore, cache: ResolutionCache):
        self.store = store
        self.cache = cache

    def resolve_version(
        self,
        kind: VersionKind,
        key: str,
        variant: str,
        scope: Scope,
        as_of: datetime | None = None,
    ) -> ConfigVersion | None:
        """Most specific version in effect at ``as_of`` (now when omitted).

        Returns:
            The winning version, or None when no scope in the chain has one.
        """
        cache_key = self.cache.make_key(kind, key, variant, scope, as_of)
        found, cached = self.cache.get(cache_key)
        if found:
            logger.debug(f"Cache hit: {kind.value} {key} @ {scope}")
            return cached  # type: ignore[no-any-return]

        generation = self.cache.generation(kind, key)
        point = ensure_utc(as_of) if as_of is not None else utc_now()
        winner: ConfigVersion | None = None
        consulted: list[Scope] = []
        for candidate in precedence_chain(scope):
            if candidate in consulted:
                continue
            consulted.append(candidate)
            winner = self.store.value_as_of(kind, key, variant, candidate, point)
            if winner is not None:
                break

        logger.debug(
            f"Resolved {kind.value} {key} @ {scope}: "
            f"{f'v{winner.version} from {winner.scope}' if winner else 'no override'}"
        )
        expires_at = None
        if self.cache.is_current(cache_key):
            expires_at = self._next_boundary(kind, key, variant, consulted, point, winner)
        self.cache.set(cache_key, winner, generation=generation, expires_at=expires_at)
        return winner

    def _next_boundary(
        self,
        kind: VersionKind,
        key: str,
        variant: str,
        consulted: list[Scope],
        point: datetime,
        winner: ConfigVersion | None,
    ) -> datetime | None:
        # The result changes when the winner's window ends or when a version
        # at an equal or more specific scope starts.
        boundaries = [self.store.next_start_after(kind, key, variant, consulted, point)]
        if winner is not None:
            boundaries.append(winner.effective_to)
        pending = [b for b in boundaries if b is not None]
        return min(pending) if pending else None

    def resolve(self, key: str, scope: Scope, as_of: datetime | None = None) -> Any:
        """Resolved setting value, falling back to the registry default.

        Raises:
            UnknownKey: If the key has no registry entry.
        """
        entry = self.store.get_entry(key)
        if entry is None:
            raise UnknownKey(key)
        version = self.resolve_version(VersionKind.SETTING, key, SETTING_VARIANT, scope, as_of)
        if version is None:
            return entry.default_value
        return version.value

    def resolve_rule(
        self, rule_key: str, scope: Scope, as_of: datetime | None = None
    ) -> BusinessRule:
        """Business rule in effect for ``scope``.

        Raises:
            RuleNotFound: If no scope in the chain has a rule in effect.
        """
        version = self.resolve_version(VersionKind.RULE, rule_key, SETTING_VARIANT, scope, as_of)
        if version is None:
            raise RuleNotFound(rule_key, scope.cache_token())
        return BusinessRule(
            rule_key=rule_key,
            scope=version.scope,
            version=version.version,
            effective_from=version.effective_from,
            effective_to=version.effective_to,
            **version.value,
        )

    def resolve_template(
        self,
        template_key: str,
        channel: str,
        locale: str,
        scope: Scope,
        as_of: datetime | None = None,
    ) -> Template:
        """Template in effect for ``scope``, channel and locale.

        Raises:
            TemplateNotFound: If no scope in the chain has a template in effect.
        """
        variant = template_variant(channel, locale)
        version = self.resolve_version(VersionKind.TEMPLATE, template_key, variant, scope, as_of)
        if version is None:
            raise TemplateNotFound(template_key, variant, scope.cache_token())
        return Template(
            template_key=template_key,
            channel=channel,
            locale=locale,
            content=version.value["content"],
            scope=version.scope,
            version=version.version,
            effective_from=version.effective_from,
            effective_to=version.effective_to,
        )
