"""
Adaptive Replanner — single entry point for the failure pipeline.

  detect → analyze → generate alternatives → recover → escalate?

Composes the classifier, analyzer, generator and recovery executor around one
Learning Store and one Event Bus. The caller drives the steps and decides
which alternative to execute; the replanner never executes plans itself.
"""

import logging
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sentinel_kernel.events.bus import (
    ESCALATION_REQUIRED,
    FAILURE_ANALYZED,
    FAILURE_DETECTED,
    PLANS_GENERATED,
    EventBus,
)
from sentinel_kernel.failure.analyzer import RootCauseAnalyzer
from sentinel_kernel.failure.classifier import classify_failure
from sentinel_kernel.learning.store import LearningStore
from sentinel_kernel.models.config import ReplannerConfig
from sentinel_kernel.models.failure import (
    ActionError,
    Failure,
    RootCause,
    Severity,
    TaskAction,
)
from sentinel_kernel.models.replanning import (
    AlternativePlan,
    FailureInsights,
    RecoveryResult,
    ReplanStrategy,
)
from sentinel_kernel.models.system import Goal, SystemState
from sentinel_kernel.replanning.generator import AlternativePlanGenerator
from sentinel_kernel.replanning.recovery import (
    DependencySignaler,
    LockRefresher,
    RecoveryExecutor,
)

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.3


class AdaptiveReplanner:
    """Facade over the failure-handling components."""

    def __init__(
        self,
        config: Optional[ReplannerConfig] = None,
        learning_store: Optional[LearningStore] = None,
        event_bus: Optional[EventBus] = None,
        lock_refresher: Optional[LockRefresher] = None,
        dependency_signaler: Optional[DependencySignaler] = None,
    ):
        self.config = config or ReplannerConfig()
        self.learning = learning_store or LearningStore(self.config)
        self.events = event_bus or EventBus()
        self.analyzer = RootCauseAnalyzer(self.learning, self.config)
        self.generator = AlternativePlanGenerator(self.learning, self.config)
        self.recovery = RecoveryExecutor(
            config=self.config,
            event_bus=self.events,
            lock_refresher=lock_refresher,
            dependency_signaler=dependency_signaler,
        )

    # --- Detection & analysis ---

    def detect_failure(
        self,
        action: TaskAction,
        error: ActionError,
        context: Optional[Dict[str, Any]] = None,
    ) -> Failure:
        """Classify a failed action and record it against its action type."""
        context = context or {}
        failure = Failure(
            id=f"failure_{uuid4().hex[:12]}",
            timestamp=int(time.time() * 1000),
            failure_type=classify_failure(action, error, context),
            action=action,
            error=error,
            context=context,
            retry_count=action.retries,
        )
        self.learning.record_action_outcome(action.type, success=False)

        logger.info(
            "Failure %s detected: %s on action %s (%s)",
            failure.id, failure.failure_type.value, action.id, action.type,
        )
        self.events.emit(FAILURE_DETECTED, failure=failure.model_dump(mode="json"))
        return failure

    def analyze_failure_root(self, failure: Failure, state: SystemState) -> RootCause:
        root_cause = self.analyzer.analyze(failure, state)
        self.events.emit(
            FAILURE_ANALYZED,
            failure_id=failure.id,
            root_cause=root_cause.model_dump(mode="json"),
        )
        return root_cause

    # --- Alternatives & recovery ---

    def generate_alternative_plans(
        self,
        state: SystemState,
        goal: Goal,
        failed_action: TaskAction,
        failure: Failure,
    ) -> List[AlternativePlan]:
        alternatives = self.generator.generate(state, goal, failed_action, failure)
        self.events.emit(
            PLANS_GENERATED,
            failure_id=failure.id,
            count=len(alternatives),
            strategies=[alt.strategy.value for alt in alternatives],
        )
        return alternatives

    async def attempt_recovery(self, failure: Failure, state: SystemState) -> RecoveryResult:
        return await self.recovery.attempt(failure, state)

    # --- Escalation ---

    def escalate_if_needed(
        self, failure: Failure, alternatives: List[AlternativePlan]
    ) -> bool:
        """Decide whether a human must take over. Emits escalation:required when so."""
        root_cause = failure.root_cause
        should_escalate = (
            root_cause is None
            or not root_cause.recoverable
            or root_cause.severity == Severity.CRITICAL
            or all(alt.strategy == ReplanStrategy.ESCALATE for alt in alternatives)
            or failure.retry_count >= self.config.max_retry_attempts
        )
        if not should_escalate:
            return False

        reason = self.escalation_reason(failure, alternatives)
        logger.warning("Escalating failure %s: %s", failure.id, reason)
        self.events.emit(
            ESCALATION_REQUIRED,
            failure_id=failure.id,
            root_cause=root_cause.model_dump(mode="json") if root_cause else None,
            alternatives=[alt.strategy.value for alt in alternatives],
            reason=reason,
        )
        return True

    def escalation_reason(
        self, failure: Failure, alternatives: List[AlternativePlan]
    ) -> str:
        root_cause = failure.root_cause
        reasons = []

        if root_cause is not None and root_cause.severity == Severity.CRITICAL:
            reasons.append("Critical severity failure")
        if root_cause is None or not root_cause.recoverable:
            reasons.append("Failure is not recoverable")
        if failure.retry_count >= self.config.max_retry_attempts:
            reasons.append(
                f"Maximum retry attempts exceeded ({self.config.max_retry_attempts})"
            )
        if not alternatives:
            reasons.append("No alternative plans available")
        elif all(alt.confidence < LOW_CONFIDENCE_THRESHOLD for alt in alternatives):
            reasons.append("All alternatives have low confidence")

        return "; ".join(reasons)

    # --- Learning ---

    def record_successful_strategy(
        self, failure: Failure, strategy: ReplanStrategy, recovery_time_ms: float
    ) -> None:
        self.learning.record_successful_strategy(failure, strategy, recovery_time_ms)

    def record_failed_strategy(self, failure: Failure, strategy: ReplanStrategy) -> None:
        self.learning.record_strategy_outcome(strategy, success=False)

    def record_action_success(self, action_type: str) -> None:
        self.learning.record_action_outcome(action_type, success=True)

    def get_failure_insights(self, limit: int = 10) -> FailureInsights:
        return self.learning.insights(limit)


def create_replanner(
    config: Optional[ReplannerConfig] = None, **kwargs
) -> AdaptiveReplanner:
    """Build a replanner with its own Learning Store and Event Bus."""
    return AdaptiveReplanner(config=config, **kwargs)
