"""
A* Planner — finds the cheapest action sequence from a state to a goal.

Behavioral Contract:
- Returns an empty plan (cost 0) when the current state already satisfies the goal
- Returns None when no plan exists within the depth and iteration bounds
- Never shares search state between calls: every call owns its arena,
  frontier, closed set and node cache, so calls may run concurrently
- Raises PlannerError only for unusable input, never for "no plan"
"""

import heapq
import logging
import math
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sentinel_kernel.errors import PlannerError
from sentinel_kernel.models.config import PlannerConfig
from sentinel_kernel.models.world import (
    Action,
    Plan,
    PlannerNode,
    PlanValidation,
    WorldState,
)
from sentinel_kernel.world_model.state import (
    apply_action,
    applicable_actions,
    hash_state,
    heuristic,
    is_applicable,
    satisfies,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50


class _SearchRun:
    """
    Search state for exactly one planning call.

    Nodes live in `arena` and refer to their parent by index. The frontier
    holds (f, seq, index) entries; seq preserves insertion order among equal
    f scores. A node replaced by a cheaper path leaves a stale entry behind,
    which is discarded when popped.
    """

    def __init__(self, goal: WorldState):
        self.goal = goal
        self.arena: List[PlannerNode] = []
        self.frontier: List[Tuple[float, int, int]] = []
        self.closed: Set[str] = set()
        self.best: Dict[str, int] = {}     # state hash -> arena index
        self._seq = 0
        self.iterations = 0
        self.expanded = 0

    def add_node(
        self,
        state: WorldState,
        action: Optional[Action],
        parent: Optional[int],
        g_score: float,
        depth: int,
    ) -> int:
        h_score = heuristic(state, self.goal)
        node = PlannerNode(
            state=state,
            action=action,
            parent=parent,
            g_score=g_score,
            h_score=h_score,
            f_score=g_score + h_score,
            depth=depth,
        )
        self.arena.append(node)
        index = len(self.arena) - 1
        self.best[hash_state(state)] = index
        heapq.heappush(self.frontier, (node.f_score, self._seq, index))
        self._seq += 1
        return index

    def pop(self) -> Optional[int]:
        """Pop the lowest-f live node, skipping stale entries."""
        while self.frontier:
            _, _, index = heapq.heappop(self.frontier)
            state_hash = hash_state(self.arena[index].state)
            if self.best.get(state_hash) != index or state_hash in self.closed:
                continue
            return index
        return None

    def reconstruct(self, index: int) -> List[Action]:
        path: List[Action] = []
        current: Optional[int] = index
        while current is not None:
            node = self.arena[current]
            if node.action is None:
                break
            path.append(node.action)
            current = node.parent
        path.reverse()
        return path


def generate_plan(
    current_state: WorldState,
    goal_state: WorldState,
    actions: Sequence[Action],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Optional[Plan]:
    """
    Run A* from current_state toward a (possibly partial) goal_state.

    The search is bounded structurally: at most max_depth * len(actions)
    node expansions, and no node deeper than max_depth is expanded.
    """
    if max_depth < 0:
        raise PlannerError(f"max_depth must be non-negative, got {max_depth}")

    if satisfies(current_state, goal_state):
        return Plan(actions=[], total_cost=0.0)

    run = _SearchRun(goal_state)
    run.add_node(dict(current_state), None, None, 0.0, 0)
    max_iterations = max_depth * len(actions)

    while run.iterations < max_iterations:
        index = run.pop()
        if index is None:
            break
        run.iterations += 1
        current = run.arena[index]

        if satisfies(current.state, goal_state):
            plan = Plan(actions=run.reconstruct(index), total_cost=current.g_score)
            logger.debug(
                "Plan found: %d actions, cost %s, %d iterations, %d nodes",
                len(plan.actions), plan.total_cost, run.iterations, len(run.arena),
            )
            return plan

        run.closed.add(hash_state(current.state))

        if current.depth >= max_depth:
            continue

        run.expanded += 1
        for action in applicable_actions(current.state, actions):
            new_state = apply_action(current.state, action)
            new_hash = hash_state(new_state)

            if new_hash in run.closed:
                continue

            g_score = current.g_score + action.cost
            existing = run.best.get(new_hash)

            if existing is not None:
                if g_score < run.arena[existing].g_score:
                    run.add_node(new_state, action, index, g_score, current.depth + 1)
            else:
                run.add_node(new_state, action, index, g_score, current.depth + 1)

    logger.debug(
        "No plan found after %d iterations (bound %d, %d nodes)",
        run.iterations, max_iterations, len(run.arena),
    )
    return None


def validate_plan(
    plan: Plan,
    initial_state: WorldState,
    goal_state: WorldState,
) -> PlanValidation:
    """
    Replay a plan from initial_state. Never raises: a broken plan is reported
    so the caller can decide to re-plan.
    """
    if not plan.actions:
        if satisfies(initial_state, goal_state):
            return PlanValidation(valid=True)
        return PlanValidation(valid=False, error="Empty plan does not achieve goal")

    state = dict(initial_state)
    total_cost = 0.0

    for step, action in enumerate(plan.actions):
        if not is_applicable(state, action):
            return PlanValidation(
                valid=False,
                error=f'Action "{action.name}" at step {step} has unmet preconditions',
            )
        state = apply_action(state, action)
        total_cost += action.cost

    if not satisfies(state, goal_state):
        return PlanValidation(valid=False, error="Plan does not achieve goal state")

    if not math.isclose(total_cost, plan.total_cost, rel_tol=1e-9, abs_tol=1e-9):
        return PlanValidation(
            valid=False,
            error=f"Plan cost mismatch: expected {plan.total_cost}, got {total_cost}",
        )

    return PlanValidation(valid=True)


def find_optimal_path(
    current_state: WorldState,
    goal_state: WorldState,
    actions: Sequence[Action],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Optional[Plan]:
    """generate_plan followed by validate_plan. An invalid result counts as not found."""
    plan = generate_plan(current_state, goal_state, actions, max_depth)
    if plan is None:
        return None

    validation = validate_plan(plan, current_state, goal_state)
    if not validation.valid:
        logger.error("Generated invalid plan: %s", validation.error)
        return None
    return plan


class AStarPlanner:
    """Planner bound to a configuration. Holds no search state between calls."""

    def __init__(self, config: Optional[PlannerConfig] = None):
        self.config = config or PlannerConfig()

    def plan(
        self,
        current_state: WorldState,
        goal_state: WorldState,
        actions: Sequence[Action],
        max_depth: Optional[int] = None,
    ) -> Optional[Plan]:
        """Find and validate the cheapest plan."""
        depth = self.config.max_depth if max_depth is None else max_depth
        return find_optimal_path(current_state, goal_state, actions, depth)

    def validate(
        self,
        plan: Plan,
        initial_state: WorldState,
        goal_state: WorldState,
    ) -> PlanValidation:
        return validate_plan(plan, initial_state, goal_state)
