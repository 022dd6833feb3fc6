"""
Root-Cause Analyzer — explains a classified failure against live system state.

One analysis branch per FailureType. Each branch fixes the category label,
inspects the relevant slice of SystemState for contributing factors, and
decides severity and recoverability. Reaching the retry ceiling or a fatal
error code (permissions, disk space) makes any failure unrecoverable.

The branch table must cover every FailureType; a gap is a configuration
error raised at construction, never a silent default.

Side effect: the failure's pattern is recorded in the Learning Store.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from sentinel_kernel.errors import AnalyzerConfigurationError
from sentinel_kernel.learning.store import LearningStore
from sentinel_kernel.models.config import ReplannerConfig
from sentinel_kernel.models.failure import (
    Failure,
    FailureType,
    RootCause,
    Severity,
)
from sentinel_kernel.models.system import AgentStatus, SystemState

logger = logging.getLogger(__name__)

NON_RECOVERABLE_MARKERS = ("EACCES", "EPERM", "ENOSPC", "FATAL")
CRITICAL_MARKERS = ("fatal", "critical")

# (category, factors, severity, recoverable)
_Analysis = Tuple[str, List[str], Severity, bool]
_Branch = Callable[[Failure, SystemState], _Analysis]


class RootCauseAnalyzer:
    """Stateless apart from the Learning Store it writes patterns to."""

    def __init__(
        self,
        learning_store: LearningStore,
        config: Optional[ReplannerConfig] = None,
    ):
        self.learning = learning_store
        self.config = config or ReplannerConfig()
        self._branches: Dict[FailureType, _Branch] = {
            FailureType.ACTION_PRECONDITIONS_FAILED: self._analyze_preconditions,
            FailureType.RESOURCE_UNAVAILABLE: self._analyze_resources,
            FailureType.TIMEOUT_EXCEEDED: self._analyze_timeout,
            FailureType.DEPENDENCY_BLOCKED: self._analyze_dependencies,
            FailureType.QUALITY_GATE_FAILED: self._analyze_quality_gate,
            FailureType.ACTION_EXECUTION_FAILED: self._analyze_execution,
        }
        missing = set(FailureType) - set(self._branches)
        if missing:
            raise AnalyzerConfigurationError(
                "No analysis branch for: "
                + ", ".join(sorted(m.value for m in missing))
            )

    def analyze(self, failure: Failure, state: SystemState) -> RootCause:
        """Derive the root cause, attach it to the failure and record its pattern."""
        branch = self._branches[failure.failure_type]
        category, factors, severity, recoverable = branch(failure, state)
        # Retry ceiling and fatal error codes override every branch
        recoverable = recoverable and self._is_recoverable(failure)

        root_cause = RootCause(
            category=category,
            reason=failure.error.message,
            contributing_factors=factors,
            severity=severity,
            recoverable=recoverable,
        )
        failure.attach_root_cause(root_cause)
        self.learning.record_failure_pattern(failure)

        logger.info(
            "Failure %s analyzed: category=%s severity=%s recoverable=%s",
            failure.id, category, severity.value, recoverable,
        )
        return root_cause

    # --- Branches ---

    def _analyze_preconditions(self, failure: Failure, state: SystemState) -> _Analysis:
        factors = []
        for precondition in failure.action.preconditions:
            if precondition.type == "resource":
                resource = state.find_resource(precondition.value)
                if resource is None or not resource.available:
                    factors.append(
                        f"Required resource {precondition.value} is unavailable"
                    )
            elif precondition.type == "state":
                factors.append(f"State precondition not met: {precondition.condition}")
            elif precondition.type == "dependency":
                if not state.was_executed(precondition.value):
                    factors.append(
                        f"Dependency action {precondition.value} not completed"
                    )
        return "precondition", factors, Severity.MEDIUM, True

    def _analyze_resources(self, failure: Failure, state: SystemState) -> _Analysis:
        factors = [
            f"Resource {r.id} at full capacity ({r.allocated}/{r.capacity})"
            for r in state.available_resources
            if r.saturated
        ]
        return "resource", factors, Severity.HIGH, True

    def _analyze_timeout(self, failure: Failure, state: SystemState) -> _Analysis:
        action = failure.action
        factors = []

        agent = state.agent_states.get(action.agent_id)
        if agent and agent.average_execution_time_ms > (
            action.expected_duration_ms * self.config.slow_agent_factor
        ):
            factors.append(f"Agent {action.agent_id} performing slower than expected")

        if action.expected_duration_ms < self.config.aggressive_timeout_ms:
            factors.append("Timeout threshold may be too aggressive")

        severity = Severity.HIGH if failure.retry_count > 2 else Severity.MEDIUM
        return "timing", factors, severity, True

    def _analyze_dependencies(self, failure: Failure, state: SystemState) -> _Analysis:
        factors = []
        for dep_id in state.current_plan.dependencies.get(failure.action.id, []):
            failed_dep = state.failure_for(dep_id)
            if failed_dep is not None:
                factors.append(
                    f"Dependency {dep_id} failed: {failed_dep.failure_type.value}"
                )
            elif not state.was_executed(dep_id):
                factors.append(f"Dependency {dep_id} not yet executed")
        return "dependency", factors, Severity.HIGH, True

    def _analyze_quality_gate(self, failure: Failure, state: SystemState) -> _Analysis:
        factors = [
            f"Quality criterion not met: {c.metric} < {c.threshold}"
            for c in state.current_plan.goal.success_criteria
        ]
        return "quality", factors, Severity.MEDIUM, True

    def _analyze_execution(self, failure: Failure, state: SystemState) -> _Analysis:
        action = failure.action
        factors = [f"Execution error: {failure.error.kind}"]

        agent = state.agent_states.get(action.agent_id)
        if agent and agent.status == AgentStatus.FAILED:
            factors.append(f"Agent {action.agent_id} in failed state")
        if agent and agent.success_rate < self.config.low_success_rate_threshold:
            factors.append(
                f"Agent {action.agent_id} has low success rate "
                f"({agent.success_rate * 100:.1f}%)"
            )

        return "execution", factors, self._execution_severity(failure), True

    def _execution_severity(self, failure: Failure) -> Severity:
        if failure.retry_count >= self.config.max_retry_attempts:
            return Severity.CRITICAL
        if any(marker in failure.error.message for marker in CRITICAL_MARKERS):
            return Severity.CRITICAL
        if failure.retry_count > 1:
            return Severity.HIGH
        return Severity.MEDIUM

    def _is_recoverable(self, failure: Failure) -> bool:
        if failure.retry_count >= self.config.max_retry_attempts:
            return False
        return not any(
            code in failure.error.message or code in failure.error.kind
            for code in NON_RECOVERABLE_MARKERS
        )

