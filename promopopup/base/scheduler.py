# ==============================================================================
# Scheduler Abstract Base Class
# ==============================================================================
"""
Cooperative callback scheduling for the popup engine.

Display delays, exit-intent delays and countdown ticks are single-fire
callbacks registered here. All callbacks run on one thread, one at a time.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class Scheduler(ABC):
    """Schedules and cancels single-fire callbacks."""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        """
        Schedule ``callback`` to run once after ``delay_ms``.

        Args:
            delay_ms: Delay in milliseconds (>= 0)
            callback: Zero-argument callable

        Returns:
            Opaque handle accepted by cancel()
        """
        ...

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Cancel a pending callback. Unknown or already-fired handles are ignored."""
        ...

    @abstractmethod
    def cancel_all(self) -> None:
        """Cancel every pending callback (page unload)."""
        ...
