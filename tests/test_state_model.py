"""Tests for the symbolic state model."""

from sentinel_kernel.models.world import Action
from sentinel_kernel.world_model.state import (
    applicable_actions,
    apply_action,
    hash_state,
    heuristic,
    is_applicable,
    satisfies,
    state_equals,
)


def _make_action(name="open", preconditions=None, effects=None, cost=1.0) -> Action:
    return Action(
        name=name,
        preconditions=preconditions or {},
        effects=effects or {},
        cost=cost,
    )


class TestSatisfies:
    def test_partial_goal_ignores_extra_keys(self):
        state = {"door_open": True, "lights": "on", "count": 3}
        assert satisfies(state, {"door_open": True})

    def test_missing_key_is_not_satisfied(self):
        assert not satisfies({"lights": "on"}, {"door_open": True})

    def test_value_mismatch_is_not_satisfied(self):
        assert not satisfies({"door_open": False}, {"door_open": True})

    def test_empty_goal_always_satisfied(self):
        assert satisfies({}, {})
        assert satisfies({"a": 1}, {})

    def test_bool_and_int_do_not_match(self):
        assert not satisfies({"k": 1}, {"k": True})
        assert not satisfies({"k": 0}, {"k": False})
        assert not satisfies({"k": 1.0}, {"k": 1})


class TestStateEquals:
    def test_order_independent(self):
        assert state_equals({"a": 1, "b": True}, {"b": True, "a": 1})

    def test_different_key_sets(self):
        assert not state_equals({"a": 1}, {"a": 1, "b": 2})

    def test_different_values(self):
        assert not state_equals({"a": 1}, {"a": 2})

    def test_bool_and_int_differ(self):
        assert not state_equals({"k": 1}, {"k": True})


class TestApplicability:
    def test_action_without_preconditions_is_always_applicable(self):
        assert is_applicable({}, _make_action())

    def test_applicable_actions_keep_input_order(self):
        first = _make_action("first", {"ready": True})
        blocked = _make_action("blocked", {"ready": False})
        second = _make_action("second")
        result = applicable_actions({"ready": True}, [first, blocked, second])
        assert [a.name for a in result] == ["first", "second"]


class TestApplyAction:
    def test_overlays_effects_without_mutating_input(self):
        state = {"door_open": False, "lights": "off"}
        action = _make_action(effects={"door_open": True})

        new_state = apply_action(state, action)

        assert new_state == {"door_open": True, "lights": "off"}
        assert state == {"door_open": False, "lights": "off"}

    def test_effects_can_add_keys(self):
        new_state = apply_action({}, _make_action(effects={"has_key": True}))
        assert new_state == {"has_key": True}


class TestHeuristic:
    def test_counts_unmet_goal_keys(self):
        state = {"a": True, "b": False}
        goal = {"a": True, "b": True, "c": True}
        assert heuristic(state, goal) == 2

    def test_zero_when_goal_met(self):
        assert heuristic({"a": True}, {"a": True}) == 0

    def test_int_does_not_meet_bool_goal(self):
        assert heuristic({"k": 1}, {"k": True}) == 1


class TestHashState:
    def test_insertion_order_does_not_matter(self):
        assert hash_state({"a": 1, "b": True}) == hash_state({"b": True, "a": 1})

    def test_distinguishes_values(self):
        assert hash_state({"a": 1}) != hash_state({"a": 2})
