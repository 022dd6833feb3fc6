"""Replanning Model — alternative plans, recovery outcomes and learned patterns."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sentinel_kernel.models.system import TaskPlan


class ReplanStrategy(str, Enum):
    RETRY_WITH_BACKOFF = "RETRY_WITH_BACKOFF"
    ALTERNATIVE_PATH = "ALTERNATIVE_PATH"
    SIMPLIFY_GOAL = "SIMPLIFY_GOAL"
    REQUEST_RESOURCES = "REQUEST_RESOURCES"
    ESCALATE = "ESCALATE"               # Human decision required. Never auto-selected.


class RecoveryAction(str, Enum):
    STATE_ROLLBACK = "STATE_ROLLBACK"
    RESOURCE_REALLOCATION = "RESOURCE_REALLOCATION"
    AGENT_RESPAWN = "AGENT_RESPAWN"
    LOCK_REFRESH = "LOCK_REFRESH"
    CONTEXT_RESTORATION = "CONTEXT_RESTORATION"


class AlternativePlan(BaseModel):
    """A candidate continuation. Produced fresh per failure; not persisted."""

    plan: TaskPlan
    strategy: ReplanStrategy
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    tradeoffs: List[str] = []
    backoff_ms: Optional[float] = None


class RecoveryResult(BaseModel):
    """What the recovery executor managed to do, even if it stopped early."""

    success: bool
    recovery_actions: List[RecoveryAction] = []
    restored_state: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class FailurePattern(BaseModel):
    """Learned statistics for one failure signature."""

    signature: str                          # "{failure_type}:{action_type}:{category}"
    occurrences: int = 0
    successful_strategies: Dict[ReplanStrategy, int] = {}
    average_recovery_time_ms: float = 0.0
    last_seen: int                          # Epoch milliseconds


class StrategyEffectiveness(BaseModel):
    strategy: ReplanStrategy
    success_rate: float


class FailureCount(BaseModel):
    signature: str
    occurrences: int


class ActionRisk(BaseModel):
    action_type: str
    failure_rate: float


class FailureInsights(BaseModel):
    """Read-only observability view over the learning store."""

    top_failures: List[FailureCount] = []
    most_effective_strategies: List[StrategyEffectiveness] = []
    riskiest_actions: List[ActionRisk] = []
