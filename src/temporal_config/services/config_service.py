"""Configuration service facade.

One ConfigService owns a store, a resolution cache and the services built on
them. The HTTP API and the CLI both talk to this class only.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from temporal_config.config.settings import (
    CacheSettings,
    RollbackSettings,
    StoreSettings,
    cache_settings,
    rollback_settings,
    store_settings,
)
from temporal_config.constants import (
    DEFAULT_AUDIT_LIST_LIMIT,
    DEFAULT_CHANGE_HISTORY_LIMIT,
    DEFAULT_PATTERN_PERSONA,
    DEFAULT_RULE_ENGINE,
    DEFAULT_SNAPSHOT_LIST_LIMIT,
    DEFAULT_TEMPLATE_LOCALE,
    DEFAULT_VERSION_HISTORY_LIMIT,
    SETTING_VARIANT,
    SYSTEM_ACTOR,
    WORKFLOW_PATTERN_PREFIX,
)
from temporal_config.exceptions import NotFoundError, TypeMismatch, UnknownKey, ValidationError
from temporal_config.models.enums import ChangeOperation, ScopeLevel, ValueType, VersionKind
from temporal_config.models.payloads import BusinessRule, Template, template_variant
from temporal_config.models.registry import ConfigEntry
from temporal_config.models.results import (
    CacheStats,
    RollbackPreview,
    RollbackResult,
    RollbackValidation,
)
from temporal_config.models.scope import Scope
from temporal_config.services.cache import ResolutionCache
from temporal_config.services.resolver import Resolver
from temporal_config.services.rollback import RollbackEngine
from temporal_config.services.snapshots import SnapshotManager
from temporal_config.services.writer import VersionWriter
from temporal_config.store.core import ConfigStore
from temporal_config.store.models import AuditActivity, ChangeLogEntry, ConfigVersion, Snapshot

logger = logging.getLogger(__name__)


def _scope(scope: Scope | None) -> Scope:
    return scope if scope is not None else Scope.global_scope()


class ConfigService:
    """Public surface of the configuration engine.

    Reads resolve through the precedence chain with caching; writes append
    versions through a single serialized write path; rollbacks and restores
    report failures in their result instead of raising.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        store: ConfigStore | None = None,
        store_config: StoreSettings | None = None,
        cache_config: CacheSettings | None = None,
        rollback_config: RollbackSettings | None = None,
    ):
        """Initialize the service.

        Args:
            db_path: Database file; defaults to ``TCFG_STORE_DB_PATH``.
            store: Existing store to use instead of opening ``db_path``.
            store_config: Store settings (defaults to the env-driven singleton).
            cache_config: Cache settings (defaults to the env-driven singleton).
            rollback_config: Rollback settings (defaults to the env-driven singleton).
        """
        store_config = store_config or store_settings
        cache_config = cache_config or cache_settings
        rollback_config = rollback_config or rollback_settings

        self.store = store or ConfigStore(
            db_path or store_config.db_path,
            busy_timeout_seconds=store_config.busy_timeout_seconds,
        )
        self.cache = ResolutionCache(
            ttl_seconds=cache_config.ttl_seconds,
            historical_ttl_seconds=cache_config.historical_ttl_seconds,
            max_entries=cache_config.max_entries,
            current_window_seconds=cache_config.current_window_seconds,
        )
        self.resolver = Resolver(self.store, self.cache)
        self.writer = VersionWriter(self.store, self.cache, retries=rollback_config.write_retries)
        self.rollbacks = RollbackEngine(self.store, self.resolver, self.writer, rollback_config)
        self.snapshots = SnapshotManager(self.store, self.resolver, self.writer)

    def __enter__(self) -> "ConfigService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ==========================================================================
    # Registry
    # ==========================================================================

    def register(
        self,
        key: str,
        value_type: ValueType | str,
        default_value: Any = None,
        allowed_levels: list[ScopeLevel] | list[str] | None = None,
        description: str = "",
        category: str = "general",
    ) -> ConfigEntry:
        """Declare a key, or update the declaration of an existing one.

        Raises:
            TypeMismatch: If the default does not match ``value_type``.
        """
        fields: dict[str, Any] = {
            "key": key,
            "value_type": value_type,
            "default_value": default_value,
            "description": description,
            "category": category,
        }
        if allowed_levels is not None:
            fields["allowed_levels"] = allowed_levels
        try:
            entry = ConfigEntry(**fields)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid registry entry '{key}': {e.errors()[0]['msg']}", {"key": key}
            ) from e
        stored = self.store.upsert_entry(entry)
        self.cache.invalidate_key(VersionKind.SETTING, key)
        return stored

    def get_entry(self, key: str) -> ConfigEntry:
        """Registry entry for ``key``, retired or not.

        Raises:
            UnknownKey: If the key was never registered.
        """
        entry = self.store.get_entry(key)
        if entry is None:
            raise UnknownKey(key)
        return entry

    def list_entries(
        self, include_deleted: bool = False, category: str | None = None
    ) -> list[ConfigEntry]:
        return self.store.list_entries(include_deleted=include_deleted, category=category)

    def retire(self, key: str) -> bool:
        """Soft-delete a key. History stays readable; new writes are rejected.

        Returns:
            False if the key was already retired.
        """
        self.get_entry(key)
        retired = self.store.retire_entry(key)
        self.cache.invalidate_key(VersionKind.SETTING, key)
        return retired

    # ==========================================================================
    # Settings
    # ==========================================================================

    def get_setting(
        self, key: str, scope: Scope | None = None, as_of: datetime | None = None
    ) -> Any:
        """Resolved value of ``key`` for ``scope`` at ``as_of`` (now when omitted).

        Raises:
            UnknownKey: If the key is not registered.
        """
        return self.resolver.resolve(key, _scope(scope), as_of)

    def set_setting(
        self,
        key: str,
        value: Any,
        scope: Scope | None = None,
        effective_from: datetime | None = None,
        effective_to: datetime | None = None,
        actor: str = SYSTEM_ACTOR,
        reason: str | None = None,
    ) -> ConfigVersion:
        """Append a new version of ``key`` at exactly ``scope``.

        Raises:
            UnknownKey: If the key is not registered.
            RetiredKey: If the key is retired.
            ScopeNotAllowed: If the key may not be overridden at ``scope``'s level.
            TypeMismatch: If ``value`` does not match the declared type.
            InvalidWindow: If ``effective_to`` is not after ``effective_from``.
            WindowOverlap: If the window collides with a non-open version.
            WriteConflict: If a concurrent write keeps winning the race.
        """
        scope = _scope(scope)
        entry = self.get_entry(key)
        entry.check_writable(scope)
        typed = entry.coerce(value)
        change = ChangeLogEntry(
            operation=ChangeOperation.SET,
            target_key=key,
            actor=actor,
            scope=scope,
            new_value=typed,
            reason=reason,
        )
        version, _ = self.writer.write(
            VersionKind.SETTING,
            key,
            SETTING_VARIANT,
            scope,
            typed,
            actor,
            effective_from=effective_from,
            effective_to=effective_to,
            change=change,
        )
        return version

    # ==========================================================================
    # Rules and templates
    # ==========================================================================

    def get_rule(
        self, rule_key: str, scope: Scope | None = None, as_of: datetime | None = None
    ) -> BusinessRule:
        """Business rule in effect for ``scope``.

        Raises:
            RuleNotFound: If no rule resolves.
        """
        return self.resolver.resolve_rule(rule_key, _scope(scope), as_of)

    def set_rule(
        self,
        rule_key: str,
        expression: Any,
        scope: Scope | None = None,
        params: dict[str, Any] | None = None,
        engine: str = DEFAULT_RULE_ENGINE,
        description: str = "",
        effective_from: datetime | None = None,
        effective_to: datetime | None = None,
        actor: str = SYSTEM_ACTOR,
    ) -> BusinessRule:
        """Append a new version of a business rule at exactly ``scope``."""
        scope = _scope(scope)
        try:
            rule = BusinessRule(
                rule_key=rule_key,
                expression=expression,
                params=params,
                engine=engine,
                description=description,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid rule '{rule_key}': {e.errors()[0]['msg']}", {"rule_key": rule_key}
            ) from e
        value = self._json_payload(rule_key, rule.to_value())
        version, _ = self.writer.write(
            VersionKind.RULE,
            rule_key,
            SETTING_VARIANT,
            scope,
            value,
            actor,
            effective_from=effective_from,
            effective_to=effective_to,
            change=ChangeLogEntry(
                operation=ChangeOperation.SET,
                target_key=rule_key,
                actor=actor,
                scope=scope,
                kind=VersionKind.RULE,
                new_value=value,
            ),
        )
        return rule.model_copy(
            update={
                "scope": scope,
                "version": version.version,
                "effective_from": version.effective_from,
                "effective_to": version.effective_to,
            }
        )

    def get_template(
        self,
        template_key: str,
        channel: str,
        scope: Scope | None = None,
        locale: str = DEFAULT_TEMPLATE_LOCALE,
        as_of: datetime | None = None,
    ) -> Template:
        """Template in effect for ``scope``, channel and locale.

        Raises:
            TemplateNotFound: If no template resolves.
        """
        return self.resolver.resolve_template(template_key, channel, locale, _scope(scope), as_of)

    def set_template(
        self,
        template_key: str,
        channel: str,
        content: Any,
        scope: Scope | None = None,
        locale: str = DEFAULT_TEMPLATE_LOCALE,
        effective_from: datetime | None = None,
        effective_to: datetime | None = None,
        actor: str = SYSTEM_ACTOR,
    ) -> Template:
        """Append a new version of a template at exactly ``scope``."""
        scope = _scope(scope)
        try:
            template = Template(
                template_key=template_key, channel=channel, content=content, locale=locale
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid template '{template_key}': {e.errors()[0]['msg']}",
                {"template_key": template_key},
            ) from e
        value = self._json_payload(template_key, template.to_value())
        version, _ = self.writer.write(
            VersionKind.TEMPLATE,
            template_key,
            template.variant,
            scope,
            value,
            actor,
            effective_from=effective_from,
            effective_to=effective_to,
            change=ChangeLogEntry(
                operation=ChangeOperation.SET,
                target_key=template_key,
                actor=actor,
                scope=scope,
                kind=VersionKind.TEMPLATE,
                new_value=value,
            ),
        )
        return template.model_copy(
            update={
                "scope": scope,
                "version": version.version,
                "effective_from": version.effective_from,
                "effective_to": version.effective_to,
            }
        )

    @staticmethod
    def _json_payload(key: str, value: dict[str, Any]) -> dict[str, Any]:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise TypeMismatch(key, ValueType.JSON.value, value) from e
        return value

    # ==========================================================================
    # History
    # ==========================================================================

    def get_version_history(
        self,
        key: str,
        scope: Scope | None = None,
        limit: int = DEFAULT_VERSION_HISTORY_LIMIT,
        kind: VersionKind = VersionKind.SETTING,
        channel: str | None = None,
        locale: str = DEFAULT_TEMPLATE_LOCALE,
    ) -> list[ConfigVersion]:
        """Versions of ``key`` at exactly ``scope``, newest first.

        Raises:
            UnknownKey: For settings that were never registered.
        """
        if kind is VersionKind.SETTING:
            self.get_entry(key)
        variant = SETTING_VARIANT
        if kind is VersionKind.TEMPLATE and channel is not None:
            variant = template_variant(channel, locale)
        return self.store.get_history(kind, key, variant, _scope(scope), limit)

    def get_change_history(
        self,
        key: str,
        scope: Scope | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        limit: int = DEFAULT_CHANGE_HISTORY_LIMIT,
        operation: ChangeOperation | None = None,
        kind: VersionKind = VersionKind.SETTING,
    ) -> list[ChangeLogEntry]:
        """Change-log rows for ``key`` of one kind, newest first.

        ``scope=None`` spans all scopes. Bulk summary rows (key ``*``) are
        recorded as settings.
        """
        return self.store.get_change_history(
            key, scope, from_date, to_date, limit, operation=operation, kind=kind
        )

    # ==========================================================================
    # Rollback
    # ==========================================================================

    def validate_rollback(
        self,
        key: str | None,
        scope: Scope | None = None,
        target_version: int | None = None,
        target_date: datetime | None = None,
    ) -> RollbackValidation:
        return self.rollbacks.validate(key, _scope(scope), target_version, target_date)

    def preview_rollback_changes(
        self,
        key: str,
        scope: Scope | None = None,
        target_version: int | None = None,
        target_date: datetime | None = None,
    ) -> RollbackPreview:
        return self.rollbacks.preview(key, _scope(scope), target_version, target_date)

    def rollback_setting(
        self,
        key: str,
        target_version: int,
        scope: Scope | None = None,
        actor: str = SYSTEM_ACTOR,
        reason: str | None = None,
    ) -> RollbackResult:
        """Roll ``key`` back to a version at exactly ``scope``."""
        return self.rollbacks.rollback_to_version(
            key, _scope(scope), target_version, actor, reason
        )

    def rollback_to_date(
        self,
        key: str | None,
        target_date: datetime,
        scope: Scope | None = None,
        actor: str = SYSTEM_ACTOR,
        reason: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RollbackResult:
        """Roll one key (or, with ``key=None``, every key at ``scope``) back to a date."""
        return self.rollbacks.rollback_to_date(
            key, _scope(scope), target_date, actor, reason, cancel_event=cancel_event
        )

    # ==========================================================================
    # Snapshots
    # ==========================================================================

    def create_snapshot(
        self,
        name: str,
        actor: str = SYSTEM_ACTOR,
        description: str | None = None,
        scope_filter: Scope | None = None,
    ) -> Snapshot:
        return self.snapshots.create_snapshot(
            name, actor, description=description, scope_filter=scope_filter
        )

    def get_snapshot(self, snapshot_id: int) -> Snapshot:
        return self.snapshots.get_snapshot(snapshot_id)

    def restore_from_snapshot(
        self,
        snapshot_id: int,
        actor: str = SYSTEM_ACTOR,
        scope: Scope | None = None,
        reason: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RollbackResult:
        return self.snapshots.restore_from_snapshot(
            snapshot_id, actor, scope=scope, reason=reason, cancel_event=cancel_event
        )

    def list_snapshots(self, limit: int = DEFAULT_SNAPSHOT_LIST_LIMIT) -> list[Snapshot]:
        return self.snapshots.list_snapshots(limit)

    # ==========================================================================
    # Allowlists
    # ==========================================================================

    def get_allowlist(
        self,
        key: str,
        scope: Scope | None = None,
        fallback: list[str] | None = None,
    ) -> list[str]:
        """Resolved string list, or ``fallback`` when it is unset, empty or unknown.

        A non-empty fallback guarantees a non-empty result.
        """
        fallback = list(fallback or [])
        try:
            value = self.get_setting(key, scope)
        except NotFoundError:
            logger.warning(f"Allowlist {key} is not registered, using fallback values")
            return fallback
        if isinstance(value, list) and value:
            return [str(item) for item in value]
        logger.warning(f"Allowlist {key} is empty, using fallback values")
        return fallback

    def get_workflow_patterns(
        self,
        pattern_key: str,
        persona: str = DEFAULT_PATTERN_PERSONA,
        fallback: list[str] | None = None,
        as_of: datetime | None = None,
    ) -> list[str]:
        """Detection patterns stored under ``workflow-patterns.<pattern_key>``.

        The persona's list wins when non-empty, then the global list, then ``fallback``.
        """
        key = f"{WORKFLOW_PATTERN_PREFIX}{pattern_key}"
        try:
            for scope in (Scope(persona=persona), Scope()):
                value = self.get_setting(key, scope, as_of)
                if isinstance(value, list) and value:
                    return [str(item) for item in value]
        except NotFoundError:
            logger.warning(f"Workflow patterns {key} are not registered, using fallback")
            return list(fallback or [])
        logger.warning(f"No workflow patterns for {key} (persona: {persona}), using fallback")
        return list(fallback or [])

    def is_email_authorized(
        self,
        email: str,
        key: str = "security-allowlists.admin-emails",
        scope: Scope | None = None,
        fallback: list[str] | None = None,
    ) -> bool:
        """Case-insensitive membership of ``email`` in an allowlist."""
        return self._in_allowlist(email, key, scope, fallback)

    def is_domain_allowed(
        self,
        domain: str,
        key: str = "security-allowlists.broker-domains",
        scope: Scope | None = None,
        fallback: list[str] | None = None,
    ) -> bool:
        """Case-insensitive membership of ``domain`` in an allowlist."""
        return self._in_allowlist(domain, key, scope, fallback)

    def _in_allowlist(
        self, candidate: str, key: str, scope: Scope | None, fallback: list[str] | None
    ) -> bool:
        if not candidate:
            return False
        normalized = candidate.strip().lower()
        return any(
            item.strip().lower() == normalized
            for item in self.get_allowlist(key, scope, fallback)
        )

    # ==========================================================================
    # Audit trail
    # ==========================================================================

    def record_activity(
        self, actor: str, operation: str, target: str, details: dict[str, Any] | None = None
    ) -> int:
        """Append an application audit activity (separate from the change log)."""
        return self.store.record_activity(
            AuditActivity(actor=actor, operation=operation, target=target, details=details)
        )

    def list_activity(
        self, limit: int = DEFAULT_AUDIT_LIST_LIMIT, actor: str | None = None
    ) -> list[AuditActivity]:
        return self.store.list_activity(limit, actor=actor)

    # ==========================================================================
    # Cache and lifecycle
    # ==========================================================================

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def close(self) -> None:
        """Shut down the cache and close store connections."""
        self.cache.shutdown()
        self.store.close()
