# ==============================================================================
# Repository Abstract Base Classes
# ==============================================================================
"""
Repository ABCs for the analytics event log.

These define the "what" (append events, read a window of events) not the
"how". Concrete implementations in infrastructure/ handle the specifics.

The log is append-only: there is no update or delete on this path.
"""

from abc import ABC, abstractmethod

from promopopup.core.models import AnalyticsEvent


class EventRepository(ABC):
    """Repository for popup analytics events."""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the data store."""
        ...

    @abstractmethod
    def append(self, events: list[AnalyticsEvent]) -> int:
        """
        Append events to the log.

        Args:
            events: Typed analytics events

        Returns:
            Count of events written
        """
        ...

    @abstractmethod
    def fetch(self, shop: str, since_ms: int, popup_id: str | None = None) -> list[AnalyticsEvent]:
        """
        Read one consistent snapshot of a shop's events.

        Args:
            shop: Shop domain
            since_ms: Inclusive lower bound on event timestamp (epoch ms)
            popup_id: Optional popup filter

        Returns:
            Events in no guaranteed order

        Raises:
            AggregationUnavailable: If the store cannot be read
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        ...
