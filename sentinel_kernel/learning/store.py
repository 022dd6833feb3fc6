"""
Learning Store — failure signatures and strategy outcomes.

Feeds confidence scores back into alternative-plan generation.

Two independent counter tables:
- Per action type: successes/failures, updated on every detected failure
  and on reported successes
- Per replanning strategy: successes/failures, updated when a caller reports
  which strategy worked or failed

Failure-signature patterns are bounded. When the table grows past its
capacity the oldest fraction (by last_seen) is evicted.

This is the only shared mutable state in the kernel. Every mutator and every
read accessor holds the store's lock; reads copy what they need under it.
"""

import logging
import threading
import time
from typing import Dict, List, Optional

from sentinel_kernel.models.config import ReplannerConfig
from sentinel_kernel.models.failure import Failure
from sentinel_kernel.models.replanning import (
    ActionRisk,
    FailureCount,
    FailureInsights,
    FailurePattern,
    ReplanStrategy,
    StrategyEffectiveness,
)

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def failure_signature(failure: Failure) -> str:
    """Derived grouping key: failure type, action type, root-cause category."""
    category = failure.root_cause.category if failure.root_cause else "unknown"
    return f"{failure.failure_type.value}:{failure.action.type}:{category}"


class _Counter:
    __slots__ = ("successes", "failures")

    def __init__(self, successes: int = 0, failures: int = 0):
        self.successes = successes
        self.failures = failures

    @property
    def total(self) -> int:
        return self.successes + self.failures

    def record(self, success: bool) -> None:
        if success:
            self.successes += 1
        else:
            self.failures += 1


class LearningStore:
    """
    Process-lifetime learning tables. Construct one per replanner and pass it
    explicitly to the analyzer and generator.
    """

    def __init__(self, config: Optional[ReplannerConfig] = None, clock=None):
        self.config = config or ReplannerConfig()
        self._clock = clock or _now_ms
        self._lock = threading.Lock()
        self._patterns: Dict[str, FailurePattern] = {}
        self._action_stats: Dict[str, _Counter] = {}
        self._strategy_stats: Dict[ReplanStrategy, _Counter] = {}
        self._seed_strategy_priors()

    def _seed_strategy_priors(self) -> None:
        """One success and one failure per strategy: no zero division, no early overconfidence."""
        for strategy in ReplanStrategy:
            self._strategy_stats[strategy] = _Counter(successes=1, failures=1)

    def reset(self) -> None:
        """Forget everything learned and re-seed the strategy priors."""
        with self._lock:
            self._patterns.clear()
            self._action_stats.clear()
            self._strategy_stats.clear()
            self._seed_strategy_priors()

    # --- Failure patterns ---

    @property
    def capacity(self) -> int:
        return self.config.pattern_memory_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)

    def record_failure_pattern(self, failure: Failure) -> FailurePattern:
        """Create or update the pattern for this failure's signature."""
        signature = failure_signature(failure)
        now = self._clock()

        with self._lock:
            pattern = self._patterns.get(signature)
            if pattern is None:
                pattern = FailurePattern(signature=signature, last_seen=now)
                self._patterns[signature] = pattern

            pattern.occurrences += 1
            pattern.last_seen = now

            if len(self._patterns) > self.capacity:
                self._prune_old_patterns()

        return pattern

    def _prune_old_patterns(self) -> None:
        """Evict the oldest fraction of patterns by last_seen. Caller holds the lock."""
        to_remove = int(self.capacity * self.config.pattern_eviction_fraction)
        # Always make room for at least one entry
        to_remove = max(to_remove, len(self._patterns) - self.capacity)

        oldest = sorted(self._patterns.values(), key=lambda p: p.last_seen)
        for pattern in oldest[:to_remove]:
            del self._patterns[pattern.signature]

        logger.debug(
            "Evicted %d failure patterns (%d remain)", to_remove, len(self._patterns)
        )

    def get_pattern(self, signature: str) -> Optional[FailurePattern]:
        with self._lock:
            return self._patterns.get(signature)

    def get_all_patterns(self) -> List[FailurePattern]:
        with self._lock:
            return list(self._patterns.values())

    def record_successful_strategy(
        self,
        failure: Failure,
        strategy: ReplanStrategy,
        recovery_time_ms: float,
    ) -> None:
        """Credit a strategy for resolving a failure and fold in its recovery time."""
        signature = failure_signature(failure)

        with self._lock:
            pattern = self._patterns.get(signature)
            if pattern is not None:
                pattern.successful_strategies[strategy] = (
                    pattern.successful_strategies.get(strategy, 0) + 1
                )
                occurrences = max(pattern.occurrences, 1)
                pattern.average_recovery_time_ms = (
                    pattern.average_recovery_time_ms * (occurrences - 1)
                    + recovery_time_ms
                ) / occurrences

            self._strategy_stats.setdefault(strategy, _Counter()).record(True)

    def record_strategy_outcome(self, strategy: ReplanStrategy, success: bool) -> None:
        with self._lock:
            self._strategy_stats.setdefault(strategy, _Counter()).record(success)

    # --- Action outcomes ---

    def record_action_outcome(self, action_type: str, success: bool) -> None:
        with self._lock:
            self._action_stats.setdefault(action_type, _Counter()).record(success)

    # --- Rates ---

    def action_success_rate(self, action_type: str) -> float:
        with self._lock:
            stats = self._action_stats.get(action_type)
            if stats is None or stats.total == 0:
                return self.config.default_action_success_rate
            return stats.successes / stats.total

    def strategy_success_rate(self, strategy: ReplanStrategy) -> float:
        with self._lock:
            stats = self._strategy_stats.get(strategy)
            if stats is None or stats.total == 0:
                return self.config.default_strategy_success_rate
            return stats.successes / stats.total

    # --- Observability ---

    def insights(self, limit: int = 10) -> FailureInsights:
        """Top-N views for observers. Read-only."""
        with self._lock:
            patterns = [(p.signature, p.occurrences) for p in self._patterns.values()]
            strategy_counts = [
                (strategy, stats.successes, stats.total)
                for strategy, stats in self._strategy_stats.items()
            ]
            action_counts = [
                (action_type, stats.failures, stats.total)
                for action_type, stats in self._action_stats.items()
            ]

        top_failures = sorted(patterns, key=lambda p: p[1], reverse=True)[:limit]

        strategies = sorted(
            (
                StrategyEffectiveness(strategy=strategy, success_rate=successes / total)
                for strategy, successes, total in strategy_counts
                if total > 0
            ),
            key=lambda s: s.success_rate,
            reverse=True,
        )

        risky = sorted(
            (
                ActionRisk(action_type=action_type, failure_rate=failures / total)
                for action_type, failures, total in action_counts
                if total > 0
            ),
            key=lambda a: a.failure_rate,
            reverse=True,
        )[:limit]

        return FailureInsights(
            top_failures=[
                FailureCount(signature=signature, occurrences=occurrences)
                for signature, occurrences in top_failures
            ],
            most_effective_strategies=strategies,
            riskiest_actions=risky,
        )

    def snapshot(self) -> dict:
        """Serializable copy of all tables, for callers that externalize learning."""
        with self._lock:
            return {
                "patterns": [
                    p.model_dump(mode="json") for p in self._patterns.values()
                ],
                "actions": {
                    t: {"successes": s.successes, "failures": s.failures}
                    for t, s in self._action_stats.items()
                },
                "strategies": {
                    s.value: {"successes": c.successes, "failures": c.failures}
                    for s, c in self._strategy_stats.items()
                },
            }
