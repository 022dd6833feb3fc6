"""Planner and replanner configuration."""

from pydantic import BaseModel, Field


class PlannerConfig(BaseModel):
    """Configuration for the A* planner."""

    max_depth: int = Field(ge=0, default=50)


class ReplannerConfig(BaseModel):
    """
    Configuration for the adaptive replanner.

    The confidence multipliers are tuning knobs, not derived quantities.
    """

    max_retry_attempts: int = Field(ge=1, default=3)
    backoff_base_ms: float = 1000.0
    backoff_multiplier: float = 2.0
    pattern_memory_size: int = Field(ge=1, default=1000)
    pattern_eviction_fraction: float = Field(gt=0.0, le=1.0, default=0.2)
    resource_wait_ms: float = 60_000.0
    lock_extension_ms: int = 300_000

    # Confidence shaping
    retry_confidence_cap: float = 0.9
    retry_confidence_decay: float = 0.2     # Per prior retry
    simplify_confidence_factor: float = 0.8
    resource_confidence_factor: float = 0.7

    # Priors
    default_action_success_rate: float = 0.5
    default_strategy_success_rate: float = 0.6

    # Agent health
    respawn_success_threshold: float = 0.3
    low_success_rate_threshold: float = 0.5
    slow_agent_factor: float = 1.5
    aggressive_timeout_ms: float = 1000.0
