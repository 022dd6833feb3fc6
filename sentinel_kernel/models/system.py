"""
System State — the orchestration layer's live snapshot.

Owned by the caller. The analyzer and generator only read it; the recovery
executor mutates resources, agents and locks in place.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sentinel_kernel.models.failure import Failure, TaskAction


class GoalConstraint(BaseModel):
    type: str                               # e.g., "time", "cost"
    value: Any = None
    flexible: bool = False


class SuccessCriterion(BaseModel):
    metric: str                             # e.g., "accuracy"
    threshold: float
    required: bool = True


class Goal(BaseModel):
    """What the current plan is trying to deliver."""

    id: str
    description: str
    constraints: List[GoalConstraint] = []
    success_criteria: List[SuccessCriterion] = []
    priority: int = 1
    deadline: Optional[int] = None          # Epoch milliseconds


class TaskPlan(BaseModel):
    """An executable plan of task actions with declared dependencies."""

    id: str
    goal: Goal
    actions: List[TaskAction] = []
    dependencies: Dict[str, List[str]] = {}  # action id -> prerequisite action ids
    estimated_cost: float = 0.0
    estimated_duration_ms: float = 0.0
    priority: int = 1


class Resource(BaseModel):
    id: str
    type: str
    available: bool = True
    capacity: int = Field(ge=0)
    allocated: int = Field(ge=0, default=0)

    @property
    def saturated(self) -> bool:
        return self.allocated >= self.capacity


class AgentStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    FAILED = "failed"
    RECOVERING = "recovering"


class AgentState(BaseModel):
    id: str
    status: AgentStatus = AgentStatus.IDLE
    current_action: Optional[str] = None
    success_rate: float = Field(ge=0.0, le=1.0, default=1.0)
    average_execution_time_ms: float = 0.0


class Lock(BaseModel):
    id: str
    resource_id: str
    holder_id: str
    acquired_at: int                        # Epoch milliseconds
    expires_at: int


class StateCheckpoint(BaseModel):
    """A saved prior snapshot usable for rollback."""

    id: str
    timestamp: int                          # Epoch milliseconds
    state: Dict[str, Any] = {}
    description: str = ""


class SystemState(BaseModel):
    current_plan: TaskPlan
    executed_actions: List[TaskAction] = []
    failed_actions: List[Failure] = []
    available_resources: List[Resource] = []
    agent_states: Dict[str, AgentState] = {}
    locks: Dict[str, Lock] = {}
    checkpoints: List[StateCheckpoint] = []

    def was_executed(self, action_id: str) -> bool:
        return any(a.id == action_id for a in self.executed_actions)

    def failure_for(self, action_id: str) -> Optional[Failure]:
        return next(
            (f for f in self.failed_actions if f.action.id == action_id), None
        )

    def find_resource(self, resource_id: Any) -> Optional[Resource]:
        return next(
            (r for r in self.available_resources if r.id == resource_id), None
        )
