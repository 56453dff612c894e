# ==============================================================================
# Analytics Service
# ==============================================================================
"""
Reporting entry point: reads one snapshot from the event log and hands it to
the pure aggregation functions.

Store failures surface as AggregationUnavailable. A report is never built
from a partial read.
"""

import logging
from datetime import tzinfo
from zoneinfo import ZoneInfo

from promopopup.base.clock import Clock
from promopopup.base.repositories import EventRepository
from promopopup.core.aggregation import (
    aggregate,
    aggregate_popup,
    parse_window,
    subscriber_profiles,
    validate_recent_limit,
)
from promopopup.core.models import PopupReport, Report, ReportWindow, SubscriberProfile

logger = logging.getLogger(__name__)

# Subscriber profiles look back this far
SUBSCRIBER_LOOKBACK = ReportWindow.LAST_30D


def get_event_repository() -> EventRepository:
    """
    Get an event repository based on configuration.

    The store is selected by ANALYTICS_EVENT_STORE:
    - "postgresql" (default): popup_analytics table
    - "valkey": per-shop sorted sets

    Raises:
        ValueError: If an unknown store is configured
    """
    from promopopup.utils.config import get_settings

    store = get_settings().analytics.event_store

    match store:
        case "postgresql":
            from promopopup.infrastructure.repositories.postgresql import (
                PostgreSQLEventRepository,
            )

            return PostgreSQLEventRepository()
        case "valkey":
            from promopopup.infrastructure.repositories.valkey import ValkeyEventRepository

            return ValkeyEventRepository()
        case _:
            raise ValueError(
                f"Unknown event store: '{store}'.\nValid options are: postgresql, valkey"
            )


class AnalyticsService:
    """Builds reports from the event log."""

    def __init__(
        self,
        repository: EventRepository,
        clock: Clock,
        recent_limit: int = 10,
        tz: tzinfo | str = "UTC",
    ):
        """
        Initialize the service.

        Args:
            repository: Connected event repository
            clock: Supplies the report time
            recent_limit: Default activity feed size (10..15)
            tz: Timezone (or IANA name) for hour-of-day labels
        """
        self._repository = repository
        self._clock = clock
        self._recent_limit = recent_limit
        self._tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def report(
        self,
        shop: str,
        window: ReportWindow | str = ReportWindow.LAST_24H,
        popup_id: str | None = None,
        recent_limit: int | None = None,
    ) -> Report:
        """
        Shop-level report for a trailing window.

        Args:
            shop: Shop domain
            window: "24h", "7d" or "30d"
            popup_id: Restrict the report to one popup
            recent_limit: Activity feed size, overriding the default

        Raises:
            AggregationUnavailable: If the event log cannot be read
            InvalidInput: Unknown window or out-of-range recent_limit
        """
        window = parse_window(window)
        limit = validate_recent_limit(
            recent_limit if recent_limit is not None else self._recent_limit
        )

        now = self._clock.now_ms()
        events = self._repository.fetch(shop, now - window.milliseconds, popup_id=popup_id)
        logger.info("Loaded %d events for %s (%s)", len(events), shop, window.value)
        return aggregate(events, shop, window, now, recent_limit=limit, tz=self._tz)

    def popup_report(
        self, shop: str, popup_id: str, window: ReportWindow | str = ReportWindow.LAST_30D
    ) -> PopupReport:
        """Funnel summary and unique subscribers for one popup."""
        window = parse_window(window)
        now = self._clock.now_ms()
        events = self._repository.fetch(shop, now - window.milliseconds, popup_id=popup_id)
        return aggregate_popup(events, shop, popup_id, window, now)

    def subscribers(self, shop: str, search: str = "") -> list[SubscriberProfile]:
        """Profiles of everyone who entered an email in the last 30 days."""
        now = self._clock.now_ms()
        events = self._repository.fetch(shop, now - SUBSCRIBER_LOOKBACK.milliseconds)
        return subscriber_profiles(events, shop, search=search)

    def close(self) -> None:
        self._repository.close()
