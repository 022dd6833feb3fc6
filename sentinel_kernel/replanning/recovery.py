"""
Recovery Executor — repairs live system state after an analyzed failure.

Behavioral Contract:
- Steps run in a fixed order, each only when its trigger holds:
    1. State rollback        (critical severity, quality gate, or retry ceiling)
    2. Resource reallocation (root-cause category "resource")
    3. Agent respawn         (agent failed or success rate below threshold)
    4. Lock refresh          (any lock already expired)
    5. Context restoration   (DEPENDENCY_BLOCKED)
- Steps are independent: one not applying does not skip the rest
- Success means at least one step ran and none raised
- An exception aborts the remaining steps and fails the result; steps already
  completed are kept and the error is returned in the result, never raised
- Cancellation is not an error and propagates to the caller
- recovery:completed is emitted for every attempt that was not cancelled
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol

from sentinel_kernel.errors import FailureNotAnalyzed
from sentinel_kernel.events.bus import (
    RECOVERY_COMPLETED,
    RECOVERY_CONTEXT,
    RECOVERY_DEPENDENCY,
    RECOVERY_FAILED,
    RECOVERY_LOCKS,
    RECOVERY_REALLOCATION,
    RECOVERY_RESPAWN,
    RECOVERY_ROLLBACK,
    EventBus,
)
from sentinel_kernel.models.config import ReplannerConfig
from sentinel_kernel.models.failure import Failure, FailureType, Severity
from sentinel_kernel.models.replanning import RecoveryAction, RecoveryResult
from sentinel_kernel.models.system import (
    AgentStatus,
    Lock,
    Resource,
    StateCheckpoint,
    SystemState,
)

logger = logging.getLogger(__name__)

RESPAWN_SUCCESS_RATE = 0.5


def _now_ms() -> int:
    return int(time.time() * 1000)


class LockRefresher(Protocol):
    async def __call__(self, lock: Lock, expires_at: int) -> None: ...


class DependencySignaler(Protocol):
    async def __call__(self, action_id: str) -> None: ...


async def extend_lock_in_place(lock: Lock, expires_at: int) -> None:
    """Default refresher: only the local snapshot is updated."""
    lock.expires_at = expires_at


class RecoveryExecutor:
    """Runs the recovery steps against a caller-owned SystemState."""

    def __init__(
        self,
        config: Optional[ReplannerConfig] = None,
        event_bus: Optional[EventBus] = None,
        lock_refresher: Optional[LockRefresher] = None,
        dependency_signaler: Optional[DependencySignaler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or ReplannerConfig()
        self.events = event_bus or EventBus()
        self._refresh_lock = lock_refresher or extend_lock_in_place
        self._signal_dependency = dependency_signaler
        self._clock = clock or _now_ms

    async def attempt(self, failure: Failure, state: SystemState) -> RecoveryResult:
        root_cause = failure.root_cause
        if root_cause is None:
            raise FailureNotAnalyzed(
                f"Failure {failure.id} must be analyzed before recovery"
            )

        completed: List[RecoveryAction] = []
        restored_state = None
        error = None

        try:
            if self.should_rollback(failure):
                checkpoint = self.find_last_good_checkpoint(state)
                if checkpoint is not None:
                    restored_state = dict(checkpoint.state)
                    completed.append(RecoveryAction.STATE_ROLLBACK)
                    self.events.emit(RECOVERY_ROLLBACK, checkpoint_id=checkpoint.id)

            if root_cause.category == "resource":
                resource = self.reallocate_resources(state)
                if resource is not None:
                    completed.append(RecoveryAction.RESOURCE_REALLOCATION)
                    self.events.emit(
                        RECOVERY_REALLOCATION,
                        action_id=failure.action.id,
                        resource_id=resource.id,
                    )

            agent_id = failure.action.agent_id
            if self.needs_respawn(state, agent_id):
                self.respawn_agent(state, agent_id)
                completed.append(RecoveryAction.AGENT_RESPAWN)
                self.events.emit(RECOVERY_RESPAWN, agent_id=agent_id)

            stale = self.find_stale_locks(state)
            if stale:
                await self.refresh_locks(stale)
                completed.append(RecoveryAction.LOCK_REFRESH)
                self.events.emit(RECOVERY_LOCKS, count=len(stale))

            if failure.failure_type == FailureType.DEPENDENCY_BLOCKED:
                await self.restore_context(failure, state)
                completed.append(RecoveryAction.CONTEXT_RESTORATION)
                self.events.emit(RECOVERY_CONTEXT, action_id=failure.action.id)

        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            logger.warning(
                "Recovery for failure %s aborted after %d steps: %s",
                failure.id, len(completed), error,
            )
            self.events.emit(RECOVERY_FAILED, failure_id=failure.id, error=error)

        result = RecoveryResult(
            success=bool(completed) and error is None,
            recovery_actions=completed,
            restored_state=restored_state,
            error=error,
        )
        logger.info(
            "Recovery for failure %s: success=%s actions=%s",
            failure.id, result.success, [a.value for a in completed],
        )
        self.events.emit(RECOVERY_COMPLETED, result=result.model_dump(mode="json"))
        return result

    # --- Triggers ---

    def should_rollback(self, failure: Failure) -> bool:
        return (
            failure.root_cause.severity == Severity.CRITICAL
            or failure.failure_type == FailureType.QUALITY_GATE_FAILED
            or failure.retry_count >= self.config.max_retry_attempts
        )

    def needs_respawn(self, state: SystemState, agent_id: str) -> bool:
        agent = state.agent_states.get(agent_id)
        if agent is None:
            return False
        return (
            agent.status == AgentStatus.FAILED
            or agent.success_rate < self.config.respawn_success_threshold
        )

    def find_stale_locks(self, state: SystemState) -> List[Lock]:
        now = self._clock()
        return [lock for lock in state.locks.values() if lock.expires_at < now]

    # --- Steps ---

    def find_last_good_checkpoint(self, state: SystemState) -> Optional[StateCheckpoint]:
        """Newest checkpoint with no failure after it, else the oldest one."""
        if not state.checkpoints:
            return None
        newest_first = sorted(state.checkpoints, key=lambda c: c.timestamp, reverse=True)
        for checkpoint in newest_first:
            if not any(f.timestamp > checkpoint.timestamp for f in state.failed_actions):
                return checkpoint
        return newest_first[-1]

    def reallocate_resources(self, state: SystemState) -> Optional[Resource]:
        """Free one unit on the first partially allocated resource."""
        for resource in state.available_resources:
            if 0 < resource.allocated < resource.capacity:
                resource.allocated -= 1
                return resource
        return None

    def respawn_agent(self, state: SystemState, agent_id: str) -> None:
        agent = state.agent_states[agent_id]
        agent.status = AgentStatus.IDLE
        agent.current_action = None
        agent.success_rate = RESPAWN_SUCCESS_RATE

    async def refresh_locks(self, locks: List[Lock]) -> None:
        expires_at = self._clock() + self.config.lock_extension_ms
        for lock in locks:
            await self._refresh_lock(lock, expires_at)

    async def restore_context(self, failure: Failure, state: SystemState) -> None:
        """Re-signal every prerequisite of the failed action that never executed."""
        for dep_id in state.current_plan.dependencies.get(failure.action.id, []):
            if state.was_executed(dep_id):
                continue
            if self._signal_dependency is not None:
                await self._signal_dependency(dep_id)
            self.events.emit(RECOVERY_DEPENDENCY, action_id=dep_id)
