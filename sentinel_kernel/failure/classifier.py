"""
Failure Classifier — maps an execution error to a FailureType.

Rules are checked in a fixed priority order and the first match wins:
  precondition → resource-unavailable → timeout → dependency-blocked
  → quality-gate → (default) execution failure

The order is part of the contract: the same error always classifies the
same way, even when its message matches several rules.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from sentinel_kernel.models.failure import ActionError, FailureType, TaskAction

# (message, kind), both lower-cased
_Matcher = Callable[[str, str], bool]


def _is_precondition(message: str, kind: str) -> bool:
    return "precondition" in message or "prerequisite" in message


def _is_resource_unavailable(message: str, kind: str) -> bool:
    return "resource" in message and (
        "unavailable" in message or "not found" in message
    )


def _is_timeout(message: str, kind: str) -> bool:
    return "timeout" in kind or "timeout" in message or "timed out" in message


def _is_dependency_blocked(message: str, kind: str) -> bool:
    return "dependency" in message or "blocked" in message or "waiting" in message


def _is_quality_gate(message: str, kind: str) -> bool:
    return "quality" in message or "validation" in message or "threshold" in message


CLASSIFICATION_RULES: List[Tuple[_Matcher, FailureType]] = [
    (_is_precondition, FailureType.ACTION_PRECONDITIONS_FAILED),
    (_is_resource_unavailable, FailureType.RESOURCE_UNAVAILABLE),
    (_is_timeout, FailureType.TIMEOUT_EXCEEDED),
    (_is_dependency_blocked, FailureType.DEPENDENCY_BLOCKED),
    (_is_quality_gate, FailureType.QUALITY_GATE_FAILED),
]


def classify_failure(
    action: TaskAction,
    error: ActionError,
    context: Optional[Dict[str, Any]] = None,
) -> FailureType:
    """Classify a failed action by the textual signals in its error."""
    message = error.message.lower()
    kind = error.kind.lower()

    for matches, failure_type in CLASSIFICATION_RULES:
        if matches(message, kind):
            return failure_type

    return FailureType.ACTION_EXECUTION_FAILED
