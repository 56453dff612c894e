# ==============================================================================
# Cooperative Scheduler
# ==============================================================================
"""
Scheduler implementation on top of the standard library's sched module.

Callbacks run one at a time on the thread that calls run(). The scheduler's
notion of time comes from the injected Clock (in integer milliseconds), so a
virtual clock makes the whole popup lifecycle deterministic in tests.
"""

import logging
import sched
from collections.abc import Callable

from promopopup.base.clock import Clock
from promopopup.base.scheduler import Scheduler

logger = logging.getLogger(__name__)


class SchedScheduler(Scheduler):
    """
    sched.scheduler-backed Scheduler.

    Handles are sched.Event objects. Cancelling an event that already fired
    (or was already cancelled) is a no-op.
    """

    def __init__(self, clock: Clock):
        """
        Initialize the scheduler.

        Args:
            clock: Time source; its sleep() is used while waiting for events
        """
        self._clock = clock
        self._sched = sched.scheduler(clock.now_ms, self._sleep_ms)

    def _sleep_ms(self, delay_ms: float) -> None:
        self._clock.sleep(delay_ms / 1000.0)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> sched.Event:
        if delay_ms < 0:
            raise ValueError("delay_ms must be non-negative")
        return self._sched.enter(delay_ms, 0, callback)

    def cancel(self, handle: sched.Event | None) -> None:
        if handle is None:
            return
        try:
            self._sched.cancel(handle)
        except ValueError:
            # Already fired or cancelled
            pass

    def cancel_all(self) -> None:
        for event in list(self._sched.queue):
            self.cancel(event)

    @property
    def pending(self) -> int:
        """Number of callbacks waiting to fire."""
        return len(self._sched.queue)

    def run(self, until_ms: int | None = None) -> None:
        """
        Run callbacks until the queue is empty, or until ``until_ms``.

        Args:
            until_ms: Optional absolute clock time (epoch ms) to stop at.
                      The clock is advanced to this time before returning.
        """
        if until_ms is None:
            self._sched.run()
            return

        while self._sched.queue:
            next_event = self._sched.queue[0]
            if next_event.time > until_ms:
                break
            wait_ms = next_event.time - self._clock.now_ms()
            if wait_ms > 0:
                self._sleep_ms(wait_ms)
            self._sched.run(blocking=False)

        remaining_ms = until_ms - self._clock.now_ms()
        if remaining_ms > 0:
            self._sleep_ms(remaining_ms)
