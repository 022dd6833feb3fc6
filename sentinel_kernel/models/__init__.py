"""Sentinel Kernel data models."""

from sentinel_kernel.models.config import PlannerConfig, ReplannerConfig
from sentinel_kernel.models.failure import (
    ActionError,
    Failure,
    FailureType,
    Precondition,
    RootCause,
    Severity,
    TaskAction,
)
from sentinel_kernel.models.replanning import (
    ActionRisk,
    AlternativePlan,
    FailureCount,
    FailureInsights,
    FailurePattern,
    RecoveryAction,
    RecoveryResult,
    ReplanStrategy,
    StrategyEffectiveness,
)
from sentinel_kernel.models.system import (
    AgentState,
    AgentStatus,
    Goal,
    GoalConstraint,
    Lock,
    Resource,
    StateCheckpoint,
    SuccessCriterion,
    SystemState,
    TaskPlan,
)
from sentinel_kernel.models.world import (
    Action,
    Plan,
    PlannerNode,
    PlanValidation,
    StateValue,
    WorldState,
)

__all__ = [
    "Action",
    "ActionError",
    "ActionRisk",
    "AgentState",
    "AgentStatus",
    "AlternativePlan",
    "Failure",
    "FailureCount",
    "FailureInsights",
    "FailurePattern",
    "FailureType",
    "Goal",
    "GoalConstraint",
    "Lock",
    "Plan",
    "PlannerConfig",
    "PlannerNode",
    "PlanValidation",
    "Precondition",
    "RecoveryAction",
    "RecoveryResult",
    "ReplannerConfig",
    "ReplanStrategy",
    "Resource",
    "RootCause",
    "Severity",
    "StateCheckpoint",
    "StateValue",
    "SuccessCriterion",
    "SystemState",
    "TaskAction",
    "TaskPlan",
    "WorldState",
]
