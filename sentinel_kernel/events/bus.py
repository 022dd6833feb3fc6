"""
Event Bus — advisory telemetry for external observers.

Events are side-effect only. An observer that raises is logged and skipped;
it never changes what the kernel returns.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

FAILURE_DETECTED = "failure:detected"
FAILURE_ANALYZED = "failure:analyzed"
PLANS_GENERATED = "plans:generated"
RECOVERY_ROLLBACK = "recovery:rollback"
RECOVERY_REALLOCATION = "recovery:reallocation"
RECOVERY_RESPAWN = "recovery:respawn"
RECOVERY_LOCKS = "recovery:locks"
RECOVERY_CONTEXT = "recovery:context"
RECOVERY_DEPENDENCY = "recovery:dependency"
RECOVERY_FAILED = "recovery:failed"
RECOVERY_COMPLETED = "recovery:completed"
ESCALATION_REQUIRED = "escalation:required"

# callback(event_name, payload)
Observer = Callable[[str, Dict[str, Any]], None]


class EventBus:
    """Named-event observer registry."""

    def __init__(self):
        self._observers: Dict[Optional[str], List[Observer]] = {}

    def subscribe(self, callback: Observer, event: Optional[str] = None) -> None:
        """Subscribe to one event name, or to every event when event is None."""
        self._observers.setdefault(event, []).append(callback)

    def unsubscribe(self, callback: Observer, event: Optional[str] = None) -> None:
        callbacks = self._observers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, **payload: Any) -> None:
        """Notify observers of an event."""
        for callback in self._observers.get(event, []) + self._observers.get(None, []):
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Observer %r failed on event %s", callback, event)
