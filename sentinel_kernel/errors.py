"""Kernel exceptions. Structural outcomes ("no plan", escalation) are return values, not errors."""


class SentinelError(Exception):
    """Base class for all kernel errors."""
    pass


class PlannerError(SentinelError):
    """Raised when the planner is called with unusable input."""
    pass


class FailureNotAnalyzed(SentinelError):
    """Raised when an operation needs a root cause that was never attached."""
    pass


class RootCauseAlreadyAttached(SentinelError):
    """Raised on a second attempt to attach a root cause to a failure."""
    pass


class AnalyzerConfigurationError(SentinelError):
    """Raised when the analyzer has no branch for some failure type."""
    pass
