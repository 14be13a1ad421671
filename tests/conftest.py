"""Pytest configuration and fixtures for temporal-config tests."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from temporal_config.config.settings import CacheSettings, RollbackSettings
from temporal_config.services.config_service import ConfigService
from temporal_config.store.core import ConfigStore

ALL_LEVELS = ["global", "persona", "agent", "workflow"]


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Database path inside a not-yet-existing directory."""
    return tmp_path / "tcfg" / "config.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[ConfigStore]:
    """A ConfigStore with a real temp SQLite database."""
    store = ConfigStore(db_path)
    yield store
    store.close()


@pytest.fixture
def service(db_path: Path) -> Iterator[ConfigService]:
    """A ConfigService with default cache and rollback settings."""
    service = ConfigService(
        db_path=db_path,
        cache_config=CacheSettings(),
        rollback_config=RollbackSettings(),
    )
    yield service
    service.close()


@pytest.fixture
def seeded_service(service: ConfigService) -> ConfigService:
    """Service with a small registry.

    - max_workflows: number, default 10, overridable everywhere
    - ui.theme: string, default "light", overridable everywhere
    - feature.beta: boolean, global only
    - security-allowlists.admin-emails: array, global only, empty default
    """
    service.register(
        "max_workflows",
        "number",
        default_value=10,
        allowed_levels=ALL_LEVELS,
        category="business",
    )
    service.register("ui.theme", "string", default_value="light", category="ui")
    service.register("feature.beta", "boolean", default_value=False, allowed_levels=["global"])
    service.register(
        "security-allowlists.admin-emails",
        "array",
        default_value=[],
        allowed_levels=["global"],
        category="security",
    )
    return service
