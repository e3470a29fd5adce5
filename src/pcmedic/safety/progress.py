"""Progress channel for fix execution.

The guard publishes :class:`ProgressEvent` objects in order. Any number of
subscribers (the CLI progress bar, a test recorder) can listen. A failing
subscriber is logged and skipped; it never interrupts a fix.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from pcmedic.core.models import ProgressEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[ProgressEvent], None]

# Stage names, in the order a successful run emits them.
STARTING = "starting"
SAFETY_CHECK = "safety-check"
RESTORE_POINT = "restore-point"
EXECUTING = "executing"
EXECUTING_STEP = "executing-step"
STEP_COMPLETE = "step-complete"
STEP_FAILED = "step-failed"
VERIFYING = "verifying"
COMPLETE = "complete"
ROLLBACK = "rollback"
ROLLBACK_COMPLETE = "rollback-complete"
ROLLBACK_FAILED = "rollback-failed"

EXECUTION_START_PCT = 30
EXECUTION_SPAN_PCT = 60


def step_percentage(index: int, total: int) -> int:
    """Percentage shown while step *index* (0-based) of *total* runs."""
    if total <= 0:
        return EXECUTION_START_PCT
    return EXECUTION_START_PCT + (index * EXECUTION_SPAN_PCT) // total


class ProgressChannel:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.warning(
                    "Progress subscriber %r failed on %s", callback, event.stage, exc_info=True
                )

    def emit(self, stage: str, message: str, percentage: int, **details: object) -> ProgressEvent:
        event = ProgressEvent(stage=stage, message=message, percentage=percentage, **details)  # type: ignore[arg-type]
        self.publish(event)
        return event
