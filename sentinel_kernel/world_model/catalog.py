"""
Task Lifecycle Catalog — the state space of a single orchestrated task.

Defines the lifecycle flags a task moves through, the catalog of actions
that move it (with preconditions, effects and costs), and consistency
checks for states and action definitions.
"""

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel

from sentinel_kernel.models.world import Action, WorldState


class TaskStateFlag(str, Enum):
    TASK_CREATED = "task_created"
    TASK_QUEUED = "task_queued"
    TASK_CLAIMED = "task_claimed"
    DEPENDENCIES_RESOLVED = "dependencies_resolved"
    AGENTS_SPAWNED = "agents_spawned"
    CODE_IMPLEMENTED = "code_implemented"
    TESTS_WRITTEN = "tests_written"
    TESTS_PASSING = "tests_passing"
    QA_STARTED = "qa_started"
    QA_COMPLETE = "qa_complete"
    REVIEWED = "reviewed"
    PR_CREATED = "pr_created"
    CI_PASSING = "ci_passing"
    APPROVED = "approved"
    MERGED = "merged"
    TASK_COMPLETE = "task_complete"


class ActionType(str, Enum):
    CLAIM_TASK = "claim_task"
    RESOLVE_DEPENDENCIES = "resolve_dependencies"
    SPAWN_AGENTS = "spawn_agents"
    IMPLEMENT_CODE = "implement_code"
    WRITE_TESTS = "write_tests"
    RUN_TESTS = "run_tests"
    START_QA = "start_qa"
    COMPLETE_QA = "complete_qa"
    REVIEW_CODE = "review_code"
    CREATE_PR = "create_pr"
    RUN_CI = "run_ci"
    APPROVE_PR = "approve_pr"
    MERGE_PR = "merge_pr"
    COMPLETE_TASK = "complete_task"


class ValidationReport(BaseModel):
    valid: bool
    errors: List[str] = []


def _action(
    action_type: ActionType,
    description: str,
    preconditions: WorldState,
    effects: WorldState,
    cost: float,
) -> Action:
    return Action(
        name=action_type.value,
        description=description,
        preconditions=preconditions,
        effects=effects,
        cost=cost,
    )


ACTIONS: Dict[ActionType, Action] = {
    ActionType.CLAIM_TASK: _action(
        ActionType.CLAIM_TASK,
        "Agent claims ownership of a queued task",
        {"task_queued": True, "task_claimed": False},
        {"task_claimed": True},
        1,
    ),
    ActionType.RESOLVE_DEPENDENCIES: _action(
        ActionType.RESOLVE_DEPENDENCIES,
        "Ensure all task dependencies are satisfied",
        {"task_claimed": True, "dependencies_resolved": False},
        {"dependencies_resolved": True},
        2,
    ),
    ActionType.SPAWN_AGENTS: _action(
        ActionType.SPAWN_AGENTS,
        "Create specialized agents for task execution",
        {"task_claimed": True, "dependencies_resolved": True, "agents_spawned": False},
        {"agents_spawned": True},
        3,
    ),
    ActionType.IMPLEMENT_CODE: _action(
        ActionType.IMPLEMENT_CODE,
        "Write the actual implementation code",
        {"agents_spawned": True, "code_implemented": False},
        {"code_implemented": True},
        8,
    ),
    ActionType.WRITE_TESTS: _action(
        ActionType.WRITE_TESTS,
        "Create test cases for the implementation",
        {"code_implemented": True, "tests_written": False},
        {"tests_written": True},
        5,
    ),
    ActionType.RUN_TESTS: _action(
        ActionType.RUN_TESTS,
        "Execute test suite and validate results",
        {"tests_written": True, "tests_passing": False},
        {"tests_passing": True},
        2,
    ),
    ActionType.START_QA: _action(
        ActionType.START_QA,
        "Begin quality assurance review",
        {"tests_passing": True, "qa_started": False},
        {"qa_started": True},
        2,
    ),
    ActionType.COMPLETE_QA: _action(
        ActionType.COMPLETE_QA,
        "Finish quality assurance and document findings",
        {"qa_started": True, "qa_complete": False},
        {"qa_complete": True},
        3,
    ),
    ActionType.REVIEW_CODE: _action(
        ActionType.REVIEW_CODE,
        "Conduct code review for quality and standards",
        {"qa_complete": True, "reviewed": False},
        {"reviewed": True},
        3,
    ),
    ActionType.CREATE_PR: _action(
        ActionType.CREATE_PR,
        "Open a pull request for code review",
        {"reviewed": True, "pr_created": False},
        {"pr_created": True},
        1,
    ),
    ActionType.RUN_CI: _action(
        ActionType.RUN_CI,
        "Execute continuous integration checks",
        {"pr_created": True, "ci_passing": False},
        {"ci_passing": True},
        2,
    ),
    ActionType.APPROVE_PR: _action(
        ActionType.APPROVE_PR,
        "Approve PR after successful review",
        {"ci_passing": True, "approved": False},
        {"approved": True},
        1,
    ),
    ActionType.MERGE_PR: _action(
        ActionType.MERGE_PR,
        "Merge approved PR into main branch",
        {"approved": True, "merged": False},
        {"merged": True},
        1,
    ),
    ActionType.COMPLETE_TASK: _action(
        ActionType.COMPLETE_TASK,
        "Mark task as complete and cleanup",
        {"merged": True, "task_complete": False},
        {"task_complete": True},
        1,
    ),
}


def catalog_actions() -> List[Action]:
    """All catalog actions in lifecycle order."""
    return list(ACTIONS.values())


def create_initial_state(task_id: str) -> WorldState:
    """A freshly created, queued task with every lifecycle flag unset."""
    state: WorldState = {flag.value: False for flag in TaskStateFlag}
    state[TaskStateFlag.TASK_CREATED.value] = True
    state[TaskStateFlag.TASK_QUEUED.value] = True
    state.update({
        "task_id": task_id,
        "dependency_count": 0,
        "test_coverage": 0,
        "qa_issues_count": 0,
        "reviewer_count": 0,
    })
    return state


def create_goal_state() -> WorldState:
    """Partial goal for a finished task."""
    return {
        TaskStateFlag.TASK_COMPLETE.value: True,
        TaskStateFlag.MERGED.value: True,
        TaskStateFlag.CI_PASSING.value: True,
        TaskStateFlag.TESTS_PASSING.value: True,
    }


# (flag that is set, flag it requires, message)
_PROGRESSION_RULES = [
    ("code_implemented", "agents_spawned", "Code cannot be implemented without spawning agents"),
    ("tests_passing", "tests_written", "Tests cannot pass without being written"),
    ("qa_complete", "qa_started", "QA cannot be complete without being started"),
    ("pr_created", "reviewed", "PR cannot be created without code review"),
    ("merged", "approved", "PR cannot be merged without approval"),
    ("task_complete", "merged", "Task cannot be complete without merging PR"),
]


class StateValidator:
    """Consistency checks for lifecycle states and action definitions."""

    MIN_TEST_COVERAGE = 80

    @staticmethod
    def validate_state(state: WorldState) -> ValidationReport:
        """Check logical progression and metadata consistency of a task state."""
        errors = []

        for flag, required, message in _PROGRESSION_RULES:
            if state.get(flag) and not state.get(required):
                errors.append(message)

        if state.get("task_claimed") and not state.get("assigned_agent"):
            errors.append("Claimed task must have an assigned agent")

        coverage = state.get("test_coverage", 0)
        if state.get("tests_passing") and coverage < StateValidator.MIN_TEST_COVERAGE:
            errors.append(
                f"Test coverage must be at least {StateValidator.MIN_TEST_COVERAGE}% "
                f"for passing tests"
            )

        if state.get("qa_complete") and state.get("qa_issues_count", 1) > 0:
            errors.append("QA cannot be complete with unresolved issues")

        return ValidationReport(valid=not errors, errors=errors)

    @staticmethod
    def validate_action(action: Action) -> ValidationReport:
        """Check that an action definition is complete."""
        errors = []
        if not action.name:
            errors.append("Action must have a name")
        if action.cost <= 0:
            errors.append("Action cost must be positive")
        if not action.preconditions:
            errors.append("Action must have at least one precondition")
        if not action.effects:
            errors.append("Action must have at least one effect")
        return ValidationReport(valid=not errors, errors=errors)
