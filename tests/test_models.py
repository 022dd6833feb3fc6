"""Tests for core data models."""

import pytest
from pydantic import ValidationError

from sentinel_kernel.errors import RootCauseAlreadyAttached, SentinelError
from sentinel_kernel.models import (
    Action,
    ActionError,
    AgentState,
    AlternativePlan,
    Failure,
    FailureType,
    Goal,
    Plan,
    ReplannerConfig,
    ReplanStrategy,
    Resource,
    RootCause,
    TaskAction,
    TaskPlan,
)


def _make_failure() -> Failure:
    return Failure(
        id="failure_1",
        timestamp=0,
        failure_type=FailureType.ACTION_EXECUTION_FAILED,
        action=TaskAction(id="act_1", type="fetch", agent_id="agent_1"),
        error=ActionError(message="boom"),
    )


class TestAction:
    def test_cost_must_be_positive(self):
        with pytest.raises(ValidationError):
            Action(name="free", cost=0)

    def test_frozen_and_hashable(self):
        action = Action(name="open", preconditions={"locked": False}, effects={"open": True}, cost=1)
        with pytest.raises(ValidationError):
            action.cost = 2
        assert action in {action}

    def test_plan_action_names(self):
        plan = Plan(actions=[Action(name="a", cost=1), Action(name="b", cost=2)], total_cost=3)
        assert plan.action_names == ["a", "b"]


class TestFailure:
    def test_action_error_from_exception(self):
        error = ActionError.from_exception(TimeoutError("slow"))
        assert error.kind == "TimeoutError"
        assert error.message == "slow"

    def test_attach_root_cause_once(self):
        failure = _make_failure()
        assert not failure.analyzed

        failure.attach_root_cause(RootCause(category="execution", reason="boom"))

        assert failure.analyzed
        with pytest.raises(RootCauseAlreadyAttached):
            failure.attach_root_cause(RootCause(category="execution", reason="again"))

    def test_kernel_errors_share_a_base(self):
        assert issubclass(RootCauseAlreadyAttached, SentinelError)

    def test_serializes_to_json(self):
        data = _make_failure().model_dump(mode="json")
        assert data["failure_type"] == "ACTION_EXECUTION_FAILED"
        assert data["root_cause"] is None


class TestSystemModels:
    def test_resource_saturation(self):
        assert Resource(id="r", type="gpu", capacity=2, allocated=2).saturated
        assert not Resource(id="r", type="gpu", capacity=2, allocated=1).saturated

    def test_success_rate_bounds(self):
        with pytest.raises(ValidationError):
            AgentState(id="agent_1", success_rate=1.5)

    def test_confidence_bounds(self):
        plan = TaskPlan(id="plan_1", goal=Goal(id="goal_1", description="Ship"))
        with pytest.raises(ValidationError):
            AlternativePlan(plan=plan, strategy=ReplanStrategy.ESCALATE, confidence=1.2, reasoning="")


class TestReplannerConfig:
    def test_defaults(self):
        config = ReplannerConfig()
        assert config.max_retry_attempts == 3
        assert config.backoff_base_ms == 1000
        assert config.backoff_multiplier == 2
        assert config.pattern_memory_size == 1000
        assert config.resource_wait_ms == 60_000
        assert config.lock_extension_ms == 300_000

    def test_rejects_zero_retries(self):
        with pytest.raises(ValidationError):
            ReplannerConfig(max_retry_attempts=0)
