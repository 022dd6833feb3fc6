"""World Model — symbolic state, planner actions and plans."""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Flat mapping of property name to scalar value. No nesting.
StateValue = Union[bool, int, float, str]
WorldState = Dict[str, StateValue]


class Action(BaseModel):
    """
    A planner action: what must hold before it runs, what it changes, and
    what it costs. Shared read-only across searches.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    preconditions: WorldState = {}
    effects: WorldState = {}
    cost: float = Field(gt=0)
    description: Optional[str] = None

    def __hash__(self) -> int:
        return hash((
            self.name,
            tuple(sorted(self.preconditions.items())),
            tuple(sorted(self.effects.items())),
            self.cost,
        ))


class Plan(BaseModel):
    """An ordered action sequence and its summed cost."""

    actions: List[Action] = []
    total_cost: float = 0.0

    @property
    def action_names(self) -> List[str]:
        return [a.name for a in self.actions]


class PlanValidation(BaseModel):
    """Outcome of replaying a plan against its initial and goal states."""

    valid: bool
    error: Optional[str] = None


class PlannerNode(BaseModel):
    """
    One node of a search arena. `parent` is an index into the same arena,
    never a reference, so the whole tree is dropped with the arena.
    """

    state: WorldState
    action: Optional[Action] = None
    parent: Optional[int] = None
    g_score: float = 0.0                    # Cost so far
    h_score: float = 0.0                    # Estimate to goal
    f_score: float = 0.0                    # g + h
    depth: int = 0                          # Parent links to the root
