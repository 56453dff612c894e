# ==============================================================================
# System Clock
# ==============================================================================
"""
Wall-clock implementation of the Clock interface.
"""

import time

from promopopup.base.clock import Clock


class SystemClock(Clock):
    """Clock backed by time.time() and time.sleep()."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
