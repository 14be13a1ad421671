"""Tests for the HTTP API.

Tests cover:
- actor header required (401) and admin role required for writes (403)
- engine errors mapped to 404 / 422 / 409
- rollback and restore responses carry the result body
- write-class requests recorded in the audit trail
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from temporal_config.api.server import create_app
from temporal_config.api.state import get_state, reset_state
from temporal_config.services.config_service import ConfigService

KEY = "max_workflows"
READER = {"X-Actor": "ana"}
ADMIN = {"X-Actor": "ana", "X-Actor-Role": "admin"}
PREFIX = "/api/config"


@pytest.fixture(autouse=True)
def reset_api_state():
    """Reset API state before and after each test."""
    reset_state()
    yield
    reset_state()


@pytest.fixture
def client(seeded_service: ConfigService) -> TestClient:
    """Test client serving the seeded service."""
    return TestClient(create_app(service=seeded_service))


def _set(client: TestClient, value, **body):
    return client.put(f"{PREFIX}/settings/{KEY}", json={"value": value, **body}, headers=ADMIN)


class TestAuth:
    """Actor and role checks."""

    def test_health_needs_no_actor(self, client: TestClient):
        response = client.get(f"{PREFIX}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_reads_need_actor(self, client: TestClient):
        assert client.get(f"{PREFIX}/settings/{KEY}").status_code == 401
        assert client.get(f"{PREFIX}/settings/{KEY}", headers=READER).status_code == 200

    def test_writes_need_admin_role(self, client: TestClient):
        response = client.put(f"{PREFIX}/settings/{KEY}", json={"value": 20}, headers=READER)
        assert response.status_code == 403

        wrong_role = {**READER, "X-Actor-Role": "viewer"}
        response = client.put(f"{PREFIX}/settings/{KEY}", json={"value": 20}, headers=wrong_role)
        assert response.status_code == 403

    def test_admin_role_is_configurable(self, seeded_service: ConfigService):
        client = TestClient(create_app(service=seeded_service, admin_role="config-admin"))
        assert _set(client, 20).status_code == 403
        headers = {**READER, "X-Actor-Role": "Config-Admin"}
        response = client.put(f"{PREFIX}/settings/{KEY}", json={"value": 20}, headers=headers)
        assert response.status_code == 200
        assert get_state().admin_role == "config-admin"


class TestSettings:
    """Setting reads and writes."""

    def test_set_and_resolve_with_scope(self, client: TestClient):
        response = _set(client, 25, scope={"agent_id": 7}, reason="capacity")
        assert response.status_code == 200
        assert response.json()["version"] == 1

        scoped = client.get(f"{PREFIX}/settings/{KEY}", params={"agent_id": 7}, headers=READER)
        assert scoped.json()["value"] == 25
        assert scoped.json()["scope"] == {"agent_id": 7}
        unscoped = client.get(f"{PREFIX}/settings/{KEY}", headers=READER)
        assert unscoped.json()["value"] == 10

    def test_camel_case_body_scope_with_zero_id(self, client: TestClient):
        response = _set(client, 25, scope={"agentId": 0})
        assert response.status_code == 200

        scoped = client.get(f"{PREFIX}/settings/{KEY}", params={"agent_id": 0}, headers=READER)
        assert scoped.json()["value"] == 25
        assert scoped.json()["scope"] == {"agent_id": 0}
        assert client.get(f"{PREFIX}/settings/{KEY}", headers=READER).json()["value"] == 10

    def test_point_in_time_read(self, client: TestClient):
        _set(client, 20, effective_from="2025-01-01T00:00:00Z")
        _set(client, 30, effective_from="2025-02-01T00:00:00Z")

        response = client.get(
            f"{PREFIX}/settings/{KEY}", params={"as_of": "2025-01-15T00:00:00Z"}, headers=READER
        )
        assert response.json()["value"] == 20

    def test_unknown_key_is_404(self, client: TestClient):
        response = client.get(f"{PREFIX}/settings/nope", headers=READER)
        assert response.status_code == 404
        assert response.json()["detail"]["type"] == "UnknownKey"

    def test_type_mismatch_is_422(self, client: TestClient):
        response = _set(client, "lots")
        assert response.status_code == 422
        assert response.json()["detail"]["type"] == "TypeMismatch"

    def test_window_overlap_is_422(self, client: TestClient):
        _set(client, 20, effective_from="2025-01-01T00:00:00Z", effective_to="2025-03-01T00:00:00Z")
        response = _set(client, 30, effective_from="2025-02-01T00:00:00Z")
        assert response.status_code == 422
        assert response.json()["detail"]["type"] == "WindowOverlap"

    def test_registry_crud(self, client: TestClient):
        body = {"key": "ui.font", "value_type": "string", "default_value": "inter"}
        assert client.post(f"{PREFIX}/registry", json=body, headers=ADMIN).status_code == 200

        entry = client.get(f"{PREFIX}/registry/ui.font", headers=READER).json()
        assert entry["default_value"] == "inter"

        retired = client.delete(f"{PREFIX}/registry/ui.font", headers=ADMIN).json()
        assert retired == {"key": "ui.font", "retired": True}
        listed = client.get(f"{PREFIX}/registry", headers=READER).json()["entries"]
        keys = [e["key"] for e in listed]
        assert "ui.font" not in keys

    def test_history(self, client: TestClient):
        _set(client, 20, effective_from="2025-01-01T00:00:00Z")
        _set(client, 30, effective_from="2025-02-01T00:00:00Z")

        versions = client.get(f"{PREFIX}/history/{KEY}/versions", headers=READER).json()
        assert [v["value"] for v in versions["versions"]] == [30, 20]
        changes = client.get(f"{PREFIX}/history/{KEY}/changes", headers=READER).json()
        assert changes["changes"][0]["previous_value"] == 20

    def test_change_history_by_kind(self, client: TestClient):
        _set(client, 20)
        client.put(
            f"{PREFIX}/rules/{KEY}", json={"expression": {"var": "x"}}, headers=ADMIN
        )

        url = f"{PREFIX}/history/{KEY}/changes"
        settings = client.get(url, headers=READER).json()["changes"]
        rules = client.get(url, params={"kind": "rule"}, headers=READER).json()["changes"]
        assert [c["new_value"] for c in settings] == [20]
        assert [c["kind"] for c in rules] == ["rule"]


class TestRulesAndTemplates:
    """Rule and template routes."""

    def test_rule_round_trip(self, client: TestClient):
        body = {"expression": {">": [{"var": "score"}, 600]}, "params": {"floor": 600}}
        assert client.put(f"{PREFIX}/rules/loan", json=body, headers=ADMIN).status_code == 200

        rule = client.get(f"{PREFIX}/rules/loan", headers=READER).json()
        assert rule["params"] == {"floor": 600}
        assert client.get(f"{PREFIX}/rules/other", headers=READER).status_code == 404

    def test_template_round_trip(self, client: TestClient):
        body = {"channel": "sms", "content": "Hi {{name}}"}
        response = client.put(f"{PREFIX}/templates/welcome", json=body, headers=ADMIN)
        assert response.status_code == 200

        template = client.get(
            f"{PREFIX}/templates/welcome", params={"channel": "sms"}, headers=READER
        ).json()
        assert template["content"] == "Hi {{name}}"


class TestRollback:
    """Rollback routes."""

    def test_rollback_to_version(self, client: TestClient):
        _set(client, 20, effective_from="2025-01-01T00:00:00Z")
        _set(client, 30, effective_from="2025-02-01T00:00:00Z")

        response = client.post(
            f"{PREFIX}/rollback/version",
            json={"key": KEY, "target_version": 1, "reason": "revert"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(f"{PREFIX}/settings/{KEY}", headers=READER).json()["value"] == 20

    def test_failed_rollback_carries_result(self, client: TestClient):
        response = client.post(
            f"{PREFIX}/rollback/version", json={"key": KEY, "target_version": 5}, headers=ADMIN
        )
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error_details"]["type"] == "VersionNotFound"

    def test_bulk_rollback_to_date(self, client: TestClient):
        _set(client, 20, scope={"agent_id": 7}, effective_from="2025-01-01T00:00:00Z")
        _set(client, 30, scope={"agent_id": 7}, effective_from="2025-02-01T00:00:00Z")

        response = client.post(
            f"{PREFIX}/rollback/date",
            json={"target_date": "2025-01-15T00:00:00Z", "scope": {"agent_id": 7}},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["affected_count"] == 1

    def test_validate_and_preview(self, client: TestClient):
        _set(client, 20, effective_from="2025-01-01T00:00:00Z")
        _set(client, 30, effective_from="2025-02-01T00:00:00Z")

        validation = client.post(
            f"{PREFIX}/rollback/validate", json={"key": KEY, "target_version": 1}, headers=READER
        ).json()
        assert validation["is_valid"] is True

        preview = client.post(
            f"{PREFIX}/rollback/preview", json={"key": KEY, "target_version": 1}, headers=READER
        ).json()
        assert preview == {"current_value": 30, "target_value": 20, "will_change": True}

        missing_target = client.post(
            f"{PREFIX}/rollback/preview", json={"key": KEY}, headers=READER
        )
        assert missing_target.status_code == 422


class TestSnapshots:
    """Snapshot routes."""

    def test_create_list_and_restore(self, client: TestClient):
        created = client.post(f"{PREFIX}/snapshots", json={"name": "baseline"}, headers=ADMIN)
        assert created.status_code == 200
        snapshot_id = created.json()["id"]
        _set(client, 80)

        listed = client.get(f"{PREFIX}/snapshots", headers=READER).json()["snapshots"]
        assert [s["name"] for s in listed] == ["baseline"]

        restored = client.post(
            f"{PREFIX}/snapshots/{snapshot_id}/restore", json={}, headers=ADMIN
        )
        assert restored.status_code == 200
        assert restored.json()["affected_count"] == 1
        assert client.get(f"{PREFIX}/settings/{KEY}", headers=READER).json()["value"] == 10

    def test_duplicate_name_is_409(self, client: TestClient):
        client.post(f"{PREFIX}/snapshots", json={"name": "baseline"}, headers=ADMIN)
        response = client.post(f"{PREFIX}/snapshots", json={"name": "baseline"}, headers=ADMIN)
        assert response.status_code == 409

    def test_missing_snapshot(self, client: TestClient):
        assert client.get(f"{PREFIX}/snapshots/99", headers=READER).status_code == 404
        restored = client.post(f"{PREFIX}/snapshots/99/restore", json={}, headers=ADMIN)
        assert restored.status_code == 404
        assert restored.json()["error_details"]["type"] == "SnapshotNotFound"


class TestAuditAndCache:
    """Audit trail and cache routes."""

    def test_writes_are_audited_with_outcome(self, client: TestClient):
        _set(client, 20)
        _set(client, "lots")

        response = client.get(f"{PREFIX}/audit", headers=ADMIN)
        activities = response.json()["activities"]
        assert [a["details"]["outcome"] for a in activities] == ["error", "success"]
        assert {a["operation"] for a in activities} == {"set_setting"}
        assert activities[1]["actor"] == "ana"

    def test_audit_requires_admin(self, client: TestClient):
        assert client.get(f"{PREFIX}/audit", headers=READER).status_code == 403

    def test_cache_stats_and_clear(self, client: TestClient):
        client.get(f"{PREFIX}/settings/{KEY}", headers=READER)
        stats = client.get(f"{PREFIX}/cache/stats", headers=READER).json()
        assert stats["size"] == 1

        assert client.delete(f"{PREFIX}/cache", headers=ADMIN).json() == {"cleared": True}
        assert client.get(f"{PREFIX}/cache/stats", headers=READER).json()["size"] == 0


def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TestBlockingWork:
    """Service calls run in worker threads, off the event loop."""

    @pytest.mark.parametrize("method", ["get_setting", "set_setting", "record_activity"])
    def test_service_calls_leave_the_event_loop(
        self,
        client: TestClient,
        seeded_service: ConfigService,
        monkeypatch: pytest.MonkeyPatch,
        method: str,
    ):
        original = getattr(seeded_service, method)
        seen: list[bool] = []

        def spy(*args, **kwargs):
            seen.append(_on_event_loop())
            return original(*args, **kwargs)

        monkeypatch.setattr(seeded_service, method, spy)
        assert _set(client, 20).status_code == 200
        assert client.get(f"{PREFIX}/settings/{KEY}", headers=READER).status_code == 200

        assert seen
        assert not any(seen)

    def test_rollback_and_snapshot_work_leaves_the_event_loop(
        self,
        client: TestClient,
        seeded_service: ConfigService,
        monkeypatch: pytest.MonkeyPatch,
    ):
        seen: list[bool] = []
        for method in ("rollback_setting", "create_snapshot", "list_snapshots"):
            original = getattr(seeded_service, method)

            def spy(*args, _original=original, **kwargs):
                seen.append(_on_event_loop())
                return _original(*args, **kwargs)

            monkeypatch.setattr(seeded_service, method, spy)

        _set(client, 20)
        _set(client, 30)
        client.post(
            f"{PREFIX}/rollback/version",
            json={"key": KEY, "target_version": 1},
            headers=ADMIN,
        )
        client.post(f"{PREFIX}/snapshots", json={"name": "s1"}, headers=ADMIN)
        client.get(f"{PREFIX}/snapshots", headers=READER)

        assert len(seen) == 3
        assert not any(seen)
