"""Tests for the recovery executor."""

import asyncio

import pytest

from sentinel_kernel.errors import FailureNotAnalyzed
from sentinel_kernel.events.bus import EventBus
from sentinel_kernel.models.failure import (
    ActionError,
    Failure,
    FailureType,
    RootCause,
    Severity,
    TaskAction,
)
from sentinel_kernel.models.replanning import RecoveryAction
from sentinel_kernel.models.system import (
    AgentState,
    AgentStatus,
    Goal,
    Lock,
    Resource,
    StateCheckpoint,
    SystemState,
    TaskPlan,
)
from sentinel_kernel.replanning.recovery import RecoveryExecutor

NOW = 1_000_000


def _make_failure(
    failure_type=FailureType.TIMEOUT_EXCEEDED,
    category="timing",
    severity=Severity.MEDIUM,
    retry_count=0,
    timestamp=500,
) -> Failure:
    return Failure(
        id="failure_1",
        timestamp=timestamp,
        failure_type=failure_type,
        action=TaskAction(id="act_1", type="fetch", agent_id="agent_1"),
        error=ActionError(message="boom"),
        retry_count=retry_count,
        root_cause=RootCause(category=category, reason="boom", severity=severity),
    )


def _make_state(**overrides) -> SystemState:
    plan = TaskPlan(id="plan_1", goal=Goal(id="goal_1", description="Ship it"))
    return SystemState(current_plan=plan, **overrides)


class _Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    @property
    def names(self):
        return [name for name, _ in self.events]


def _make_executor(**kwargs):
    bus = EventBus()
    recorder = _Recorder()
    bus.subscribe(recorder)
    executor = RecoveryExecutor(event_bus=bus, clock=lambda: NOW, **kwargs)
    return executor, recorder


def _run(executor, failure, state):
    return asyncio.run(executor.attempt(failure, state))


class TestRollback:
    def test_uses_newest_checkpoint_with_no_later_failure(self):
        state = _make_state(
            checkpoints=[
                StateCheckpoint(id="cp_old", timestamp=100, state={"step": 1}),
                StateCheckpoint(id="cp_before", timestamp=400, state={"step": 2}),
                StateCheckpoint(id="cp_after", timestamp=700, state={"step": 3}),
            ],
            failed_actions=[_make_failure(timestamp=500)],
        )
        executor, recorder = _make_executor()

        result = _run(executor, _make_failure(severity=Severity.CRITICAL), state)

        assert result.success
        assert result.recovery_actions == [RecoveryAction.STATE_ROLLBACK]
        assert result.restored_state == {"step": 3}
        assert recorder.names == ["recovery:rollback", "recovery:completed"]

    def test_falls_back_to_oldest(self):
        state = _make_state(
            checkpoints=[
                StateCheckpoint(id="cp_a", timestamp=300, state={"step": 2}),
                StateCheckpoint(id="cp_b", timestamp=100, state={"step": 1}),
            ],
            failed_actions=[_make_failure(timestamp=500)],
        )
        executor, _ = _make_executor()

        result = _run(executor, _make_failure(failure_type=FailureType.QUALITY_GATE_FAILED), state)

        assert result.restored_state == {"step": 1}

    def test_retry_ceiling_triggers_rollback(self):
        state = _make_state(checkpoints=[StateCheckpoint(id="cp", timestamp=0)])
        executor, _ = _make_executor()
        result = _run(executor, _make_failure(retry_count=3), state)
        assert RecoveryAction.STATE_ROLLBACK in result.recovery_actions

    def test_no_checkpoints_no_rollback(self):
        executor, _ = _make_executor()
        result = _run(executor, _make_failure(severity=Severity.CRITICAL), _make_state())
        assert not result.success
        assert result.restored_state is None


class TestStateRepair:
    def test_reallocates_first_partial_resource(self):
        state = _make_state(available_resources=[
            Resource(id="full", type="gpu", capacity=2, allocated=2),
            Resource(id="idle", type="gpu", capacity=2, allocated=0),
            Resource(id="partial", type="gpu", capacity=4, allocated=3),
        ])
        executor, recorder = _make_executor()

        result = _run(executor, _make_failure(category="resource"), state)

        assert result.recovery_actions == [RecoveryAction.RESOURCE_REALLOCATION]
        assert [r.allocated for r in state.available_resources] == [2, 0, 2]
        assert recorder.events[0][1]["resource_id"] == "partial"

    def test_respawns_unhealthy_agent(self):
        state = _make_state(agent_states={
            "agent_1": AgentState(
                id="agent_1", status=AgentStatus.FAILED, current_action="act_1", success_rate=0.9
            ),
        })
        executor, _ = _make_executor()

        result = _run(executor, _make_failure(), state)

        agent = state.agent_states["agent_1"]
        assert result.recovery_actions == [RecoveryAction.AGENT_RESPAWN]
        assert agent.status == AgentStatus.IDLE
        assert agent.current_action is None
        assert agent.success_rate == 0.5

    def test_low_success_rate_respawns(self):
        state = _make_state(agent_states={
            "agent_1": AgentState(id="agent_1", status=AgentStatus.BUSY, success_rate=0.1),
        })
        executor, _ = _make_executor()
        assert _run(executor, _make_failure(), state).recovery_actions == [RecoveryAction.AGENT_RESPAWN]

    def test_healthy_agent_left_alone(self):
        state = _make_state(agent_states={"agent_1": AgentState(id="agent_1")})
        executor, _ = _make_executor()
        assert not _run(executor, _make_failure(), state).success

    def test_refreshes_only_expired_locks(self):
        state = _make_state(locks={
            "stale": Lock(id="stale", resource_id="r", holder_id="agent_1", acquired_at=0, expires_at=NOW - 1),
            "fresh": Lock(id="fresh", resource_id="r", holder_id="agent_2", acquired_at=0, expires_at=NOW + 10),
        })
        executor, recorder = _make_executor()

        result = _run(executor, _make_failure(), state)

        assert result.recovery_actions == [RecoveryAction.LOCK_REFRESH]
        assert state.locks["stale"].expires_at == NOW + 300_000
        assert state.locks["fresh"].expires_at == NOW + 10
        assert recorder.events[0] == ("recovery:locks", {"count": 1})

    def test_custom_lock_refresher(self):
        refreshed = []

        async def refresher(lock, expires_at):
            refreshed.append((lock.id, expires_at))

        state = _make_state(locks={
            "stale": Lock(id="stale", resource_id="r", holder_id="a", acquired_at=0, expires_at=0),
        })
        executor, _ = _make_executor(lock_refresher=refresher)
        _run(executor, _make_failure(), state)

        assert refreshed == [("stale", NOW + 300_000)]

    def test_context_restoration_signals_missing_dependencies(self):
        signalled = []

        async def signaler(action_id):
            signalled.append(action_id)

        plan = TaskPlan(
            id="plan_1",
            goal=Goal(id="goal_1", description="Ship it"),
            dependencies={"act_1": ["dep_done", "dep_missing"]},
        )
        state = SystemState(
            current_plan=plan,
            executed_actions=[TaskAction(id="dep_done", type="fetch", agent_id="agent_2")],
        )
        executor, recorder = _make_executor(dependency_signaler=signaler)

        result = _run(executor, _make_failure(failure_type=FailureType.DEPENDENCY_BLOCKED, category="dependency"), state)

        assert result.recovery_actions == [RecoveryAction.CONTEXT_RESTORATION]
        assert signalled == ["dep_missing"]
        assert recorder.names == ["recovery:dependency", "recovery:context", "recovery:completed"]


class TestOrderingAndErrors:
    def test_steps_run_in_order(self):
        state = _make_state(
            checkpoints=[StateCheckpoint(id="cp", timestamp=0)],
            available_resources=[Resource(id="r", type="gpu", capacity=2, allocated=1)],
            agent_states={"agent_1": AgentState(id="agent_1", status=AgentStatus.FAILED)},
            locks={"l": Lock(id="l", resource_id="r", holder_id="a", acquired_at=0, expires_at=0)},
        )
        executor, _ = _make_executor()

        result = _run(executor, _make_failure(
            failure_type=FailureType.DEPENDENCY_BLOCKED, category="resource", severity=Severity.CRITICAL,
        ), state)

        assert result.recovery_actions == [
            RecoveryAction.STATE_ROLLBACK,
            RecoveryAction.RESOURCE_REALLOCATION,
            RecoveryAction.AGENT_RESPAWN,
            RecoveryAction.LOCK_REFRESH,
            RecoveryAction.CONTEXT_RESTORATION,
        ]

    def test_error_fails_result_but_keeps_completed_steps(self):
        async def broken_refresher(lock, expires_at):
            raise ConnectionError("lock service unreachable")

        state = _make_state(
            agent_states={"agent_1": AgentState(id="agent_1", status=AgentStatus.FAILED)},
            locks={"l": Lock(id="l", resource_id="r", holder_id="a", acquired_at=0, expires_at=0)},
        )
        executor, recorder = _make_executor(lock_refresher=broken_refresher)

        result = _run(executor, _make_failure(failure_type=FailureType.DEPENDENCY_BLOCKED), state)

        assert not result.success
        assert result.recovery_actions == [RecoveryAction.AGENT_RESPAWN]
        assert result.error == "lock service unreachable"
        assert recorder.names == ["recovery:respawn", "recovery:failed", "recovery:completed"]

    def test_cancellation_propagates(self):
        async def cancelled_refresher(lock, expires_at):
            raise asyncio.CancelledError()

        state = _make_state(locks={
            "l": Lock(id="l", resource_id="r", holder_id="a", acquired_at=0, expires_at=0),
        })
        executor, recorder = _make_executor(lock_refresher=cancelled_refresher)

        with pytest.raises(asyncio.CancelledError):
            _run(executor, _make_failure(), state)
        assert "recovery:completed" not in recorder.names

    def test_observer_errors_do_not_abort(self):
        def broken_observer(event, payload):
            raise RuntimeError("observer crashed")

        bus = EventBus()
        bus.subscribe(broken_observer)
        executor = RecoveryExecutor(event_bus=bus, clock=lambda: NOW)
        state = _make_state(agent_states={"agent_1": AgentState(id="agent_1", status=AgentStatus.FAILED)})

        result = _run(executor, _make_failure(), state)

        assert result.success
        assert result.error is None

    def test_requires_analyzed_failure(self):
        failure = _make_failure()
        failure.root_cause = None
        executor, _ = _make_executor()
        with pytest.raises(FailureNotAnalyzed):
            _run(executor, failure, _make_state())
