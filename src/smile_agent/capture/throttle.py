"""
Capture Throttle
================

Debounce for capture triggers.

A trigger is accepted only if at least `cooldown_ms` has passed since
the last accepted trigger. Rejected triggers are dropped, not queued.

State:
    last_trigger_time - ms timestamp of the last accepted trigger,
                        None until the first one. Never decreases.

The check and the update happen under one lock, so concurrent callers
can never both be accepted inside the same window.
"""

import logging
import threading
import time
from typing import Callable, Optional


logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


class CaptureThrottle:
    """
    Leaky bucket of one for capture triggers.

    Attributes:
        cooldown_ms: Minimum interval between accepted triggers
        last_trigger_time: Timestamp (ms) of the last accepted trigger

    Example:
        throttle = CaptureThrottle(cooldown_ms=2000)

        throttle.should_trigger(now_ms=0)      # True
        throttle.should_trigger(now_ms=500)    # False
        throttle.should_trigger(now_ms=2100)   # True
    """

    def __init__(
        self,
        cooldown_ms: float = 2000.0,
        clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must be non-negative")

        self.cooldown_ms = cooldown_ms
        self._clock = clock
        self._lock = threading.Lock()

        self._last_trigger_time: Optional[float] = None
        self._accepted_count: int = 0
        self._rejected_count: int = 0

    @property
    def last_trigger_time(self) -> Optional[float]:
        return self._last_trigger_time

    @property
    def accepted_count(self) -> int:
        return self._accepted_count

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    def should_trigger(self, now_ms: Optional[float] = None) -> bool:
        """
        Accept or reject a trigger at `now_ms`.

        Accepting records `now_ms` as the new last trigger time.
        A timestamp earlier than the last accepted one is rejected.

        Args:
            now_ms: Trigger time in milliseconds (defaults to the clock)

        Returns:
            True if the trigger is accepted
        """
        if now_ms is None:
            now_ms = self._clock()

        with self._lock:
            last = self._last_trigger_time
            if last is not None and now_ms - last < self.cooldown_ms:
                self._rejected_count += 1
                return False

            self._last_trigger_time = now_ms
            self._accepted_count += 1

        logger.debug(f"Capture trigger accepted at {now_ms:.0f}ms")
        return True

    def get_metrics(self) -> dict:
        """Get throttle metrics for observability."""
        return {
            "cooldown_ms": self.cooldown_ms,
            "last_trigger_time": self._last_trigger_time,
            "accepted": self._accepted_count,
            "rejected": self._rejected_count,
        }
