# ==============================================================================
# Clock Abstract Base Class
# ==============================================================================
"""
Wall-clock abstraction.

Every timestamp in the popup engine (frequency state, deadlines, events)
comes from a Clock so tests can drive time explicitly.
"""

from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of wall-clock time in epoch milliseconds."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current time as a Unix timestamp in milliseconds."""
        ...

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block until ``seconds`` have elapsed on this clock."""
        ...
