"""
State Model — pure functions over symbolic world states.

Used by: A* Planner + Task lifecycle catalog
No I/O, no mutation of inputs.
"""

import json
from typing import Iterable, List

from sentinel_kernel.models.world import Action, WorldState


def _same_value(a, b) -> bool:
    # Strict scalar match: True, 1 and 1.0 are distinct, as they hash distinctly
    return type(a) is type(b) and a == b


def satisfies(state: WorldState, goal: WorldState) -> bool:
    """True when every key present in the goal matches the state. Other keys are unconstrained."""
    return all(
        key in state and _same_value(state[key], value) for key, value in goal.items()
    )


def state_equals(state1: WorldState, state2: WorldState) -> bool:
    """Identical key sets and matching values, regardless of insertion order."""
    if set(state1) != set(state2):
        return False
    return all(_same_value(state1[key], state2[key]) for key in state1)


def is_applicable(state: WorldState, action: Action) -> bool:
    return satisfies(state, action.preconditions)


def applicable_actions(state: WorldState, actions: Iterable[Action]) -> List[Action]:
    """Filter actions down to those whose preconditions hold, keeping their order."""
    return [a for a in actions if is_applicable(state, a)]


def apply_action(state: WorldState, action: Action) -> WorldState:
    """Return a new state overlaid with the action's effects."""
    new_state = dict(state)
    new_state.update(action.effects)
    return new_state


def heuristic(state: WorldState, goal: WorldState) -> int:
    """
    Number of goal conditions the state does not meet.

    Admissible under unit-equivalent accounting: each applied action can
    resolve at most the goal keys it lists as effects, and the optimistic
    case counts one per action.
    """
    return sum(
        1 for key, value in goal.items()
        if key not in state or not _same_value(state[key], value)
    )


def hash_state(state: WorldState) -> str:
    """Normalized key for memoization: sorted keys, then serialized."""
    return json.dumps(state, sort_keys=True, separators=(",", ":"))
