"""Tests for version and date rollback.

Covers:
- rollback appends new versions, never rewriting history
- failures are reported in the result and the change log
- bulk rollback (all keys at a scope), including partial failure and cancellation
- validation and preview are side-effect free
"""

import threading
from datetime import UTC, datetime, timedelta

import pytest

from temporal_config.config.settings import RollbackSettings
from temporal_config.exceptions import InvalidRollbackTarget, VersionNotFound, WriteConflict
from temporal_config.models.enums import ChangeOperation
from temporal_config.models.scope import Scope
from temporal_config.services.config_service import ConfigService

KEY = "max_workflows"
AGENT = Scope(agent_id=7)
T0 = datetime(2025, 1, 1, tzinfo=UTC)
T1 = datetime(2025, 2, 1, tzinfo=UTC)
T2 = datetime(2025, 3, 1, tzinfo=UTC)
DAY = timedelta(days=1)


@pytest.fixture
def history(seeded_service: ConfigService) -> ConfigService:
    """Global max_workflows: 20 from T0, 30 from T1, 40 from T2."""
    for value, start in [(20, T0), (30, T1), (40, T2)]:
        seeded_service.set_setting(KEY, value, effective_from=start, actor="seed")
    return seeded_service


@pytest.fixture
def agent_history(seeded_service: ConfigService) -> ConfigService:
    """Two keys changed at agent 7 on T0 and again on T1."""
    seeded_service.set_setting(KEY, 20, scope=AGENT, effective_from=T0)
    seeded_service.set_setting(KEY, 50, scope=AGENT, effective_from=T1)
    seeded_service.set_setting("ui.theme", "dark", scope=AGENT, effective_from=T0)
    seeded_service.set_setting("ui.theme", "blue", scope=AGENT, effective_from=T1)
    return seeded_service


class TestRollbackToVersion:
    """Scope-exact version rollback."""

    def test_appends_new_version_with_old_value(self, history: ConfigService):
        result = history.rollback_setting(KEY, 1, actor="ops", reason="bad change")

        assert result["success"] is True
        assert result["affected_count"] == 1
        assert result["rollback_version"] == 4
        assert history.get_setting(KEY) == 20
        assert [v.value for v in history.get_version_history(KEY)] == [20, 40, 30, 20]

        change = history.store.get_change(result["change_log_id"])
        assert change.operation is ChangeOperation.ROLLBACK
        assert change.target_version == 1
        assert (change.previous_value, change.new_value) == (40, 20)
        assert change.reason == "bad change"

    def test_rollback_is_reversible(self, history: ConfigService):
        history.rollback_setting(KEY, 1)
        history.rollback_setting(KEY, 3)
        assert history.get_setting(KEY) == 40

    def test_history_is_preserved_for_point_in_time_reads(self, history: ConfigService):
        history.rollback_setting(KEY, 1)
        assert history.get_setting(KEY, as_of=T1 + DAY) == 30

    def test_missing_version_is_reported(self, history: ConfigService):
        result = history.rollback_setting(KEY, 9, actor="ops")

        assert result["success"] is False
        assert result["affected_count"] == 0
        assert result["error_details"]["type"] == "VersionNotFound"
        assert history.get_setting(KEY) == 40

        change = history.store.get_change(result["change_log_id"])
        assert change.success is False
        assert change.error_details["type"] == "VersionNotFound"

    def test_version_is_scope_exact(self, history: ConfigService):
        result = history.rollback_setting(KEY, 1, scope=AGENT)
        assert result["error_details"]["type"] == "VersionNotFound"

    def test_disallowed_scope_is_reported(self, seeded_service: ConfigService):
        result = seeded_service.rollback_setting("feature.beta", 1, scope=AGENT)
        assert result["error_details"]["type"] == "ScopeNotAllowed"

    def test_unknown_key_is_reported(self, seeded_service: ConfigService):
        result = seeded_service.rollback_setting("nope", 1)
        assert result["error_details"]["type"] == "UnknownKey"

    def test_future_dated_version_blocks_rollback(self, history: ConfigService):
        future = datetime.now(UTC) + 10 * DAY
        history.set_setting(KEY, 60, effective_from=future)

        result = history.rollback_setting(KEY, 1)

        assert result["error_details"]["type"] == "WindowOverlap"


class TestRollbackToDate:
    """Single-key and bulk date rollback."""

    def test_single_key(self, history: ConfigService):
        result = history.rollback_to_date(KEY, T0 + DAY, actor="ops")

        assert result["success"] is True
        assert result["affected_count"] == 1
        assert result["rollback_date"] == (T0 + DAY).isoformat()
        assert history.get_setting(KEY) == 20
        assert history.store.get_change(result["change_log_id"]).target_key == KEY

    def test_unchanged_value_is_skipped(self, history: ConfigService):
        result = history.rollback_to_date(KEY, T2 + DAY)

        assert result["success"] is True
        assert result["affected_count"] == 0
        assert len(history.get_version_history(KEY)) == 3
        assert history.store.get_change(result["change_log_id"]).affected_count == 0

    def test_date_before_first_version(self, history: ConfigService):
        result = history.rollback_to_date(KEY, T0 - DAY)
        assert result["success"] is False
        assert result["error_details"]["type"] == "VersionNotFound"

    def test_future_date_is_rejected(self, history: ConfigService):
        result = history.rollback_to_date(KEY, datetime.now(UTC) + DAY)
        assert result["error_details"]["type"] == "InvalidRollbackTarget"

    def test_bulk_rolls_back_every_key_at_scope(self, agent_history: ConfigService):
        agent_history.set_setting(KEY, 99, effective_from=T0)

        result = agent_history.rollback_to_date(None, T0 + DAY, scope=AGENT, actor="ops")

        assert result["success"] is True
        assert result["affected_count"] == 2
        assert agent_history.get_setting(KEY, AGENT) == 20
        assert agent_history.get_setting("ui.theme", AGENT) == "dark"
        # Global scope untouched
        assert agent_history.get_setting(KEY) == 99

        summary = agent_history.store.get_change(result["change_log_id"])
        assert summary.target_key == "*"
        assert summary.affected_count == 2

    def test_bulk_partial_failure_keeps_committed_keys(
        self, agent_history: ConfigService, monkeypatch: pytest.MonkeyPatch
    ):
        original_write = agent_history.writer.write

        def flaky_write(kind, key, *args, **kwargs):
            if key == "ui.theme":
                raise WriteConflict(key, AGENT.cache_token(), attempts=2)
            return original_write(kind, key, *args, **kwargs)

        monkeypatch.setattr(agent_history.writer, "write", flaky_write)

        result = agent_history.rollback_to_date(None, T0 + DAY, scope=AGENT)

        assert result["success"] is False
        assert result["affected_count"] == 1
        details = result["error_details"]
        assert details["type"] == "PartialBulkFailure"
        assert details["failed_key"] == "ui.theme"
        assert details["committed_keys"] == [KEY]
        assert details["cause"]["type"] == "WriteConflict"
        assert agent_history.get_setting(KEY, AGENT) == 20
        assert agent_history.get_setting("ui.theme", AGENT) == "blue"

    def test_bulk_cancellation(self, agent_history: ConfigService):
        cancel = threading.Event()
        cancel.set()

        result = agent_history.rollback_to_date(None, T0 + DAY, scope=AGENT, cancel_event=cancel)

        assert result["success"] is False
        assert result["error_details"]["cancelled"] is True
        assert agent_history.get_setting(KEY, AGENT) == 50

    def test_bulk_validation_failure_writes_nothing(self, agent_history: ConfigService):
        agent_history.set_setting(KEY, 70, scope=AGENT, effective_from=datetime.now(UTC) + DAY)

        result = agent_history.rollback_to_date(None, T0 + DAY, scope=AGENT)

        assert result["success"] is False
        assert result["affected_count"] == 0
        assert agent_history.get_setting("ui.theme", AGENT) == "blue"


class TestValidateAndPreview:
    """Side-effect-free checks."""

    def test_validate_valid_target_with_stale_warning(self, history: ConfigService):
        validation = history.validate_rollback(KEY, target_version=1)
        assert validation["is_valid"] is True
        assert validation["affected_keys"] == [KEY]

        dated = history.validate_rollback(KEY, target_date=T0 + DAY)
        assert any("older than" in warning for warning in dated["warnings"])

    def test_validate_reports_errors(self, history: ConfigService):
        both = history.validate_rollback(KEY, target_version=1, target_date=T0)
        assert both["is_valid"] is False
        assert both["reason"] is not None

        missing = history.validate_rollback(KEY, target_version=9)
        assert missing["is_valid"] is False

        unknown = history.validate_rollback("nope", target_version=1)
        assert unknown["errors"] == ["Unknown configuration key 'nope'"]

    def test_validate_bulk_lists_candidates_and_warns_when_large(
        self, agent_history: ConfigService
    ):
        agent_history.rollbacks.settings = RollbackSettings(large_operation_threshold=1)

        validation = agent_history.validate_rollback(None, AGENT, target_date=T0 + DAY)

        assert validation["affected_keys"] == [KEY, "ui.theme"]
        assert any("Large rollback" in warning for warning in validation["warnings"])

    def test_preview(self, history: ConfigService):
        preview = history.preview_rollback_changes(KEY, target_version=1)
        assert preview == {"current_value": 40, "target_value": 20, "will_change": True}

        same = history.preview_rollback_changes(KEY, target_date=T2 + DAY)
        assert same["will_change"] is False
        assert len(history.get_version_history(KEY)) == 3

    def test_preview_errors_raise(self, history: ConfigService):
        with pytest.raises(VersionNotFound):
            history.preview_rollback_changes(KEY, target_version=9)
        with pytest.raises(InvalidRollbackTarget):
            history.preview_rollback_changes(KEY)
