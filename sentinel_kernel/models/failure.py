"""Failure records — what went wrong during execution and why."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sentinel_kernel.errors import RootCauseAlreadyAttached


class FailureType(str, Enum):
    ACTION_PRECONDITIONS_FAILED = "ACTION_PRECONDITIONS_FAILED"
    ACTION_EXECUTION_FAILED = "ACTION_EXECUTION_FAILED"
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    TIMEOUT_EXCEEDED = "TIMEOUT_EXCEEDED"
    DEPENDENCY_BLOCKED = "DEPENDENCY_BLOCKED"
    QUALITY_GATE_FAILED = "QUALITY_GATE_FAILED"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Precondition(BaseModel):
    """A precondition declared by an executable task action."""

    type: str                               # "resource" | "state" | "dependency"
    condition: str
    value: Any = None


class TaskAction(BaseModel):
    """A concrete step handed to an executor, as seen by the replanner."""

    id: str
    type: str                               # e.g., "data-processing", "fetch"
    agent_id: str
    parameters: Dict[str, Any] = {}
    preconditions: List[Precondition] = []
    expected_duration_ms: float = 0.0
    cost: float = 0.0
    retries: int = Field(ge=0, default=0)


class ActionError(BaseModel):
    """Error reported by an executor: a kind (class name) and a message."""

    kind: str = "Error"
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ActionError":
        return cls(kind=type(exc).__name__, message=str(exc))


class RootCause(BaseModel):
    """Derived by the Root-Cause Analyzer. Never built by callers directly."""

    category: str                           # "precondition" | "resource" | "timing" | ...
    reason: str
    contributing_factors: List[str] = []
    severity: Severity = Severity.MEDIUM
    recoverable: bool = True


class Failure(BaseModel):
    """A classified execution failure."""

    id: str
    timestamp: int                          # Epoch milliseconds
    failure_type: FailureType
    action: TaskAction
    error: ActionError
    context: Dict[str, Any] = {}
    retry_count: int = 0
    root_cause: Optional[RootCause] = None

    @property
    def analyzed(self) -> bool:
        return self.root_cause is not None

    def attach_root_cause(self, root_cause: RootCause) -> None:
        """Attach the analysis result. Allowed exactly once."""
        if self.root_cause is not None:
            raise RootCauseAlreadyAttached(
                f"Failure {self.id} already has a root cause "
                f"({self.root_cause.category})"
            )
        self.root_cause = root_cause
