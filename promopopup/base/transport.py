# ==============================================================================
# Event Transport Abstract Base Class
# ==============================================================================
"""
Outbound delivery of a single analytics event.

Transports do the blocking send. The EventEmitter wraps them with
fire-and-forget semantics, so a transport is free to raise.
"""

from abc import ABC, abstractmethod

from promopopup.core.models import AnalyticsEvent


class EventTransport(ABC):
    """Delivers one event to the event log."""

    @abstractmethod
    def send(self, event: AnalyticsEvent) -> None:
        """
        Deliver an event.

        Raises:
            EmissionFailure: If the event was not accepted
        """
        ...

    def close(self) -> None:
        """Release transport resources."""
