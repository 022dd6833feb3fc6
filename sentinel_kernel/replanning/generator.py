"""
Alternative-Plan Generator — candidate continuations after an analyzed failure.

Strategies, each conditionally applicable:
  RETRY_WITH_BACKOFF  — same action again, exponentially delayed
  ALTERNATIVE_PATH    — swap in an untried action of the same or equivalent type
  SIMPLIFY_GOAL       — drop flexible constraints and optional criteria
  REQUEST_RESOURCES   — wait a fixed interval for capacity
  ESCALATE            — hand to a human (confidence 0.0, never auto-selected)

Confidence is derived from the Learning Store's historical rates. The
returned list is sorted by descending confidence.
"""

import logging
from typing import Callable, List, Optional
from uuid import uuid4

from sentinel_kernel.errors import FailureNotAnalyzed
from sentinel_kernel.learning.store import LearningStore
from sentinel_kernel.models.config import ReplannerConfig
from sentinel_kernel.models.failure import Failure, RootCause, TaskAction
from sentinel_kernel.models.replanning import AlternativePlan, ReplanStrategy
from sentinel_kernel.models.system import Goal, SystemState

logger = logging.getLogger(__name__)

RETRYABLE_CATEGORIES = ("timing", "resource", "execution")

EQUIVALENT_ACTION_TYPES = [
    {"http-get", "fetch", "request"},
    {"file-write", "save-file", "persist"},
    {"file-read", "load-file", "fetch-file"},
    {"compute", "calculate", "process"},
]


def action_types_equivalent(type1: str, type2: str) -> bool:
    return any(type1 in group and type2 in group for group in EQUIVALENT_ACTION_TYPES)


def similar_outcome(action1: TaskAction, action2: TaskAction) -> bool:
    return action1.type == action2.type or action_types_equivalent(
        action1.type, action2.type
    )


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class AlternativePlanGenerator:
    """Builds and ranks alternative plans. Reads the Learning Store, never writes it."""

    def __init__(
        self,
        learning_store: LearningStore,
        config: Optional[ReplannerConfig] = None,
        id_factory: Optional[Callable[[str], str]] = None,
    ):
        self.learning = learning_store
        self.config = config or ReplannerConfig()
        self._new_id = id_factory or _new_id

    def generate(
        self,
        state: SystemState,
        goal: Goal,
        failed_action: TaskAction,
        failure: Failure,
    ) -> List[AlternativePlan]:
        """Evaluate every strategy and return the applicable ones, best first."""
        root_cause = failure.root_cause
        if root_cause is None:
            raise FailureNotAnalyzed(
                f"Failure {failure.id} must be analyzed before generating alternatives"
            )

        alternatives: List[AlternativePlan] = []

        if self.should_retry(failure, root_cause):
            alternatives.append(self._retry_plan(state, failed_action, failure))

        candidates = self.alternative_candidates(state, failed_action)
        if candidates:
            alternatives.extend(
                self._alternative_path_plans(state, failed_action, candidates)
            )

        if self.can_simplify_goal(goal):
            alternatives.append(self._simplified_plan(state, goal))

        if root_cause.category == "resource":
            alternatives.append(self._resource_request_plan(state))

        if not root_cause.recoverable or not alternatives:
            alternatives.append(self._escalation_plan(state, failure))

        alternatives.sort(key=lambda alt: alt.confidence, reverse=True)

        logger.debug(
            "Generated %d alternatives for failure %s: %s",
            len(alternatives),
            failure.id,
            ", ".join(alt.strategy.value for alt in alternatives),
        )
        return alternatives

    # --- Applicability ---

    def should_retry(self, failure: Failure, root_cause: RootCause) -> bool:
        return (
            failure.retry_count < self.config.max_retry_attempts
            and root_cause.recoverable
            and root_cause.category in RETRYABLE_CATEGORIES
        )

    def alternative_candidates(
        self, state: SystemState, failed_action: TaskAction
    ) -> List[TaskAction]:
        """Untried, unfailed plan actions of the same or an equivalent type."""
        return [
            a for a in state.current_plan.actions
            if a.id != failed_action.id
            and not state.was_executed(a.id)
            and state.failure_for(a.id) is None
            and similar_outcome(a, failed_action)
        ]

    def can_simplify_goal(self, goal: Goal) -> bool:
        return any(c.flexible for c in goal.constraints) or any(
            not sc.required for sc in goal.success_criteria
        )

    def backoff_ms(self, retry_count: int) -> float:
        return self.config.backoff_base_ms * (
            self.config.backoff_multiplier ** retry_count
        )

    # --- Builders ---

    def _retry_plan(
        self, state: SystemState, failed_action: TaskAction, failure: Failure
    ) -> AlternativePlan:
        retry_action = failed_action.model_copy(update={
            "id": self._new_id("action"),
            "retries": failed_action.retries + 1,
        })
        backoff = self.backoff_ms(failure.retry_count)
        current = state.current_plan

        plan = current.model_copy(update={
            "id": self._new_id("plan"),
            "actions": [
                retry_action if a.id == failed_action.id else a
                for a in current.actions
            ],
            "estimated_duration_ms": current.estimated_duration_ms + backoff,
        })

        rate = self.learning.strategy_success_rate(ReplanStrategy.RETRY_WITH_BACKOFF)
        confidence = min(
            self.config.retry_confidence_cap,
            rate * (1 - failure.retry_count * self.config.retry_confidence_decay),
        )
        remaining = self.config.max_retry_attempts - failure.retry_count

        return AlternativePlan(
            plan=plan,
            strategy=ReplanStrategy.RETRY_WITH_BACKOFF,
            confidence=max(0.0, confidence),
            reasoning=(
                f"Retry with {backoff:g}ms backoff "
                f"(attempt {failure.retry_count + 1}/{self.config.max_retry_attempts})"
            ),
            tradeoffs=[
                f"Adds {backoff:g}ms delay",
                f"{remaining} retries remaining",
            ],
            backoff_ms=backoff,
        )

    def _alternative_path_plans(
        self,
        state: SystemState,
        failed_action: TaskAction,
        candidates: List[TaskAction],
    ) -> List[AlternativePlan]:
        current = state.current_plan
        strategy_rate = self.learning.strategy_success_rate(ReplanStrategy.ALTERNATIVE_PATH)

        alternatives = []
        for alt_action in candidates:
            plan = current.model_copy(update={
                "id": self._new_id("plan"),
                # The alternative moves into the failed action's slot
                "actions": [
                    alt_action if a.id == failed_action.id else a
                    for a in current.actions
                    if a.id != alt_action.id
                ],
            })
            action_rate = self.learning.action_success_rate(alt_action.type)

            alternatives.append(AlternativePlan(
                plan=plan,
                strategy=ReplanStrategy.ALTERNATIVE_PATH,
                confidence=action_rate * strategy_rate,
                reasoning=(
                    f"Use alternative action {alt_action.type} ({alt_action.id}) "
                    f"instead of {failed_action.type} ({failed_action.id})"
                ),
                tradeoffs=[
                    "Different approach may have different resource requirements",
                    f"Estimated duration: {alt_action.expected_duration_ms:g}ms "
                    f"vs {failed_action.expected_duration_ms:g}ms",
                ],
            ))
        return alternatives

    def _simplified_plan(self, state: SystemState, goal: Goal) -> AlternativePlan:
        simplified_goal = goal.model_copy(update={
            "constraints": [c for c in goal.constraints if not c.flexible],
            "success_criteria": [sc for sc in goal.success_criteria if sc.required],
        })
        current = state.current_plan

        # An action survives only if it serves a required criterion
        critical = [
            a for a in current.actions
            if any(sc.metric in a.type for sc in simplified_goal.success_criteria)
        ]
        cost = sum(a.cost for a in critical)

        plan = current.model_copy(update={
            "id": self._new_id("plan"),
            "goal": simplified_goal,
            "actions": critical,
            "estimated_cost": cost,
            "estimated_duration_ms": sum(a.expected_duration_ms for a in critical),
        })

        if current.estimated_cost > 0:
            reduction = (1 - cost / current.estimated_cost) * 100
            cost_note = f"Cost reduced by {reduction:.1f}%"
        else:
            cost_note = "Cost unchanged"

        rate = self.learning.strategy_success_rate(ReplanStrategy.SIMPLIFY_GOAL)
        return AlternativePlan(
            plan=plan,
            strategy=ReplanStrategy.SIMPLIFY_GOAL,
            confidence=rate * self.config.simplify_confidence_factor,
            reasoning="Simplified goal by removing optional constraints",
            tradeoffs=[
                f"Reduced from {len(current.actions)} to {len(critical)} actions",
                "Some optional features will not be delivered",
                cost_note,
            ],
        )

    def _resource_request_plan(self, state: SystemState) -> AlternativePlan:
        current = state.current_plan
        plan = current.model_copy(update={
            "id": self._new_id("plan"),
            "estimated_duration_ms": current.estimated_duration_ms + self.config.resource_wait_ms,
        })
        rate = self.learning.strategy_success_rate(ReplanStrategy.REQUEST_RESOURCES)
        return AlternativePlan(
            plan=plan,
            strategy=ReplanStrategy.REQUEST_RESOURCES,
            confidence=rate * self.config.resource_confidence_factor,
            reasoning="Wait for resources to become available",
            tradeoffs=[
                "Adds wait time for resource availability",
                "May require resource reallocation",
                "No guarantee resources will become available",
            ],
        )

    def _escalation_plan(self, state: SystemState, failure: Failure) -> AlternativePlan:
        plan = state.current_plan.model_copy(update={"id": self._new_id("plan")})
        root_cause = failure.root_cause
        return AlternativePlan(
            plan=plan,
            strategy=ReplanStrategy.ESCALATE,
            confidence=0.0,
            reasoning=(
                f"Unrecoverable failure: {root_cause.reason}"
                if not root_cause.recoverable
                else f"No automatic strategy applies: {root_cause.reason}"
            ),
            tradeoffs=[
                "Requires human intervention",
                "System execution paused",
                f"Severity: {root_cause.severity.value}",
            ],
        )
