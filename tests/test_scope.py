"""Tests for scopes and the precedence chain."""

import pytest

from temporal_config.models.enums import ScopeLevel
from temporal_config.models.scope import Scope, precedence_chain

GLOBAL = Scope()


class TestScope:
    """Scope level, token and filter behavior."""

    @pytest.mark.parametrize(
        ("scope", "level"),
        [
            (Scope(), ScopeLevel.GLOBAL),
            (Scope(persona="rachel"), ScopeLevel.PERSONA),
            (Scope(persona="rachel", agent_id=7), ScopeLevel.AGENT),
            (Scope(agent_id=7, workflow_id=3), ScopeLevel.WORKFLOW),
        ],
    )
    def test_level_is_most_specific_dimension(self, scope: Scope, level: ScopeLevel):
        assert scope.level is level

    def test_cache_token_is_canonical(self):
        assert Scope().cache_token() == "global"
        assert Scope(workflow_id=3, persona="rachel").cache_token() == "persona=rachel,workflow=3"
        assert Scope(persona="rachel", workflow_id=3) == Scope(workflow_id=3, persona="rachel")

    def test_from_dict_accepts_camel_case(self):
        scope = Scope.from_dict({"persona": "rachel", "agentId": 7, "workflowId": 3})
        assert scope == Scope(persona="rachel", agent_id=7, workflow_id=3)
        assert Scope.from_dict(None) == GLOBAL
        assert Scope.from_dict({"persona": ""}) == GLOBAL

    def test_zero_ids_are_real_dimensions(self):
        scope = Scope.from_dict({"agentId": 0, "workflow_id": 0})
        assert scope == Scope(agent_id=0, workflow_id=0)
        assert scope.level is ScopeLevel.WORKFLOW
        assert scope.cache_token() == "agent=0,workflow=0"

    def test_model_validation_accepts_both_spellings(self):
        assert Scope.model_validate({"agentId": 7, "workflowId": 3}) == Scope(
            agent_id=7, workflow_id=3
        )
        assert Scope.model_validate({"agent_id": 7}) == Scope(agent_id=7)

    def test_contains_matches_populated_dimensions(self):
        rachel = Scope(persona="rachel")
        assert rachel.contains(Scope(persona="rachel", agent_id=7))
        assert not rachel.contains(Scope(persona="maya", agent_id=7))
        assert GLOBAL.contains(Scope(workflow_id=1))

    def test_to_dict_drops_unset_dimensions(self):
        assert Scope(agent_id=7).to_dict() == {"agent_id": 7}


class TestPrecedenceChain:
    """Precedence chain construction."""

    def test_full_scope_drops_least_specific_first(self):
        chain = precedence_chain(Scope(persona="rachel", agent_id=7, workflow_id=3))
        assert chain == [
            Scope(persona="rachel", agent_id=7, workflow_id=3),
            Scope(agent_id=7, workflow_id=3),
            Scope(workflow_id=3),
            GLOBAL,
        ]

    def test_partial_scope_is_padded_with_global(self):
        chain = precedence_chain(Scope(persona="rachel", agent_id=7))
        assert chain == [Scope(persona="rachel", agent_id=7), Scope(agent_id=7), GLOBAL, GLOBAL]

    def test_global_scope_chain(self):
        assert precedence_chain(GLOBAL) == [GLOBAL] * 4

    @pytest.mark.parametrize(
        "scope",
        [
            Scope(persona="rachel"),
            Scope(agent_id=1),
            Scope(persona="rachel", workflow_id=9),
            Scope(persona="rachel", agent_id=7, workflow_id=3),
        ],
    )
    def test_chain_always_has_four_entries_ending_in_global(self, scope: Scope):
        chain = precedence_chain(scope)
        assert len(chain) == 4
        assert chain[0] == scope
        assert chain[-1] == GLOBAL
