"""Tests for allowlist and workflow pattern helpers."""

from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService

ADMIN_KEY = "security-allowlists.admin-emails"
FALLBACK = ["root@example.com"]


def test_empty_allowlist_uses_fallback(seeded_service: ConfigService):
    assert seeded_service.get_allowlist(ADMIN_KEY, fallback=FALLBACK) == FALLBACK
    assert seeded_service.is_email_authorized("ROOT@example.com ", fallback=FALLBACK)


def test_unknown_allowlist_uses_fallback(service: ConfigService):
    assert service.get_allowlist("security-allowlists.none", fallback=FALLBACK) == FALLBACK
    assert service.get_allowlist("security-allowlists.none") == []


def test_configured_allowlist_is_case_insensitive(seeded_service: ConfigService):
    seeded_service.set_setting(ADMIN_KEY, ["Ana@Example.com", "bo@example.com"])

    assert seeded_service.is_email_authorized("ana@example.com")
    assert not seeded_service.is_email_authorized("root@example.com", fallback=FALLBACK)
    assert not seeded_service.is_email_authorized("")


def test_domain_allowlist(service: ConfigService):
    service.register(
        "security-allowlists.broker-domains",
        "array",
        default_value=["broker.example.com"],
        allowed_levels=["global"],
    )

    assert service.is_domain_allowed("Broker.Example.com")
    assert not service.is_domain_allowed("evil.example.com")
    assert service.get_allowlist("security-allowlists.broker-domains", Scope()) == [
        "broker.example.com"
    ]


PATTERN_KEY = "workflow-patterns.rachel-indicators"


def _register_patterns(service: ConfigService, default=None):
    service.register(
        PATTERN_KEY,
        "array",
        default_value=default or [],
        allowed_levels=["global", "persona"],
        category="workflow",
    )


def test_persona_patterns_win(service: ConfigService):
    _register_patterns(service, default=["loan"])
    service.set_setting(PATTERN_KEY, ["mortgage", "refinance"], scope=Scope(persona="rachel"))

    assert service.get_workflow_patterns("rachel-indicators", "rachel") == [
        "mortgage",
        "refinance",
    ]
    assert service.get_workflow_patterns("rachel-indicators", "john") == ["loan"]


def test_empty_persona_patterns_fall_back_to_global(service: ConfigService):
    _register_patterns(service)
    service.set_setting(PATTERN_KEY, ["loan"])
    service.set_setting(PATTERN_KEY, [], scope=Scope(persona="rachel"))

    assert service.get_workflow_patterns("rachel-indicators", "rachel") == ["loan"]


def test_missing_patterns_use_fallback(service: ConfigService):
    assert service.get_workflow_patterns("rachel-indicators", fallback=["cp"]) == ["cp"]

    _register_patterns(service)
    assert service.get_workflow_patterns("rachel-indicators", fallback=["cp"]) == ["cp"]
    assert service.get_workflow_patterns("rachel-indicators") == []
