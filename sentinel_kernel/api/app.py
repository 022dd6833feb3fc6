"""
Sentinel Kernel API — FastAPI endpoints.

Exposes the kernel's functionality via a REST API for:
- Goal-oriented planning and plan validation
- Failure detection and root-cause analysis
- Alternative-plan generation
- Recovery
- Strategy outcome reporting and learning insights

Failures are kept in memory by id so later calls can refer to them.
System state is always supplied by the caller; recovery returns the
repaired copy.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sentinel_kernel.errors import PlannerError
from sentinel_kernel.models.config import PlannerConfig
from sentinel_kernel.models.failure import ActionError, Failure, TaskAction
from sentinel_kernel.models.replanning import ReplanStrategy
from sentinel_kernel.models.system import Goal, SystemState
from sentinel_kernel.models.world import Action, Plan, WorldState
from sentinel_kernel.planning.astar import AStarPlanner
from sentinel_kernel.replanning.replanner import AdaptiveReplanner, create_replanner
from sentinel_kernel.world_model.catalog import catalog_actions


# --- Request/Response Models ---

class PlanRequest(BaseModel):
    current_state: WorldState
    goal_state: WorldState
    actions: Optional[List[Action]] = None      # None plans over the task lifecycle catalog
    max_depth: Optional[int] = None


class PlanValidateRequest(BaseModel):
    plan: Plan
    initial_state: WorldState
    goal_state: WorldState


class FailureReportRequest(BaseModel):
    action: TaskAction
    error: ActionError
    context: Dict[str, Any] = {}
    state: SystemState


class AlternativesRequest(BaseModel):
    failure_id: str
    state: SystemState
    goal: Optional[Goal] = None                 # Defaults to the current plan's goal


class RecoveryRequest(BaseModel):
    failure_id: str
    state: SystemState


class StrategyOutcomeRequest(BaseModel):
    failure_id: str
    strategy: ReplanStrategy
    success: bool
    recovery_time_ms: float = 0.0


class ActionOutcomeRequest(BaseModel):
    action_type: str


# --- Application Factory ---

def create_app(
    replanner: Optional[AdaptiveReplanner] = None,
    planner_config: Optional[PlannerConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Sentinel Kernel API",
        description="Goal-oriented planning and adaptive replanning",
        version="0.1.0",
    )

    rp = replanner or create_replanner()
    planner = AStarPlanner(planner_config)
    failures: Dict[str, Failure] = {}

    # Store components on app state for access in endpoints
    app.state.replanner = rp
    app.state.planner = planner
    app.state.failures = failures

    def _get_failure(failure_id: str) -> Failure:
        failure = failures.get(failure_id)
        if failure is None:
            raise HTTPException(404, "Failure not found")
        return failure

    # === PLANNING ===

    @app.post("/plan")
    def plan(req: PlanRequest):
        """Find the cheapest action sequence reaching the goal."""
        actions = catalog_actions() if req.actions is None else req.actions
        try:
            result = planner.plan(req.current_state, req.goal_state, actions, req.max_depth)
        except PlannerError as e:
            raise HTTPException(422, str(e))

        if result is None:
            return {"found": False}
        return {
            "found": True,
            "plan": result.model_dump(mode="json"),
            "action_names": result.action_names,
        }

    @app.post("/plan/validate")
    def validate_plan(req: PlanValidateRequest):
        validation = planner.validate(req.plan, req.initial_state, req.goal_state)
        return validation.model_dump(mode="json")

    # === FAILURES ===

    @app.post("/failures")
    def report_failure(req: FailureReportRequest):
        """Detect and analyze a failed action."""
        failure = rp.detect_failure(req.action, req.error, req.context)
        rp.analyze_failure_root(failure, req.state)
        failures[failure.id] = failure
        return failure.model_dump(mode="json")

    @app.get("/failures/{failure_id}")
    def get_failure(failure_id: str):
        return _get_failure(failure_id).model_dump(mode="json")

    @app.post("/alternatives")
    def generate_alternatives(req: AlternativesRequest):
        """Ranked alternatives, plus whether a human must decide."""
        failure = _get_failure(req.failure_id)
        goal = req.goal or req.state.current_plan.goal
        alternatives = rp.generate_alternative_plans(
            req.state, goal, failure.action, failure
        )
        escalate = rp.escalate_if_needed(failure, alternatives)
        return {
            "failure_id": failure.id,
            "alternatives": [a.model_dump(mode="json") for a in alternatives],
            "escalate": escalate,
        }

    # === RECOVERY ===

    @app.post("/recovery")
    async def attempt_recovery(req: RecoveryRequest):
        failure = _get_failure(req.failure_id)
        state = req.state
        result = await rp.attempt_recovery(failure, state)
        return {
            "result": result.model_dump(mode="json"),
            "state": state.model_dump(mode="json"),
        }

    # === LEARNING ===

    @app.post("/strategies/outcome")
    def record_strategy_outcome(req: StrategyOutcomeRequest):
        failure = _get_failure(req.failure_id)
        if req.success:
            rp.record_successful_strategy(failure, req.strategy, req.recovery_time_ms)
        else:
            rp.record_failed_strategy(failure, req.strategy)
        return {
            "strategy": req.strategy.value,
            "success_rate": rp.learning.strategy_success_rate(req.strategy),
        }

    @app.post("/actions/outcome")
    def record_action_success(req: ActionOutcomeRequest):
        rp.record_action_success(req.action_type)
        return {
            "action_type": req.action_type,
            "success_rate": rp.learning.action_success_rate(req.action_type),
        }

    @app.get("/insights")
    def get_insights(limit: int = 10):
        return rp.get_failure_insights(limit).model_dump(mode="json")

    # === HEALTH ===

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "failures_tracked": len(failures),
            "patterns_learned": len(rp.learning),
        }

    return app
