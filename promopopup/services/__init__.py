# ==============================================================================
# Application Services
# ==============================================================================
"""
Services wiring the core engine to the event log.

- analytics: report, per-popup report and subscriber profiles
- ingestion: validate and store events posted by the storefront
"""

from promopopup.services.analytics import AnalyticsService, get_event_repository
from promopopup.services.ingestion import IngestionService, IngestionTransport

__all__ = [
    "AnalyticsService",
    "IngestionService",
    "IngestionTransport",
    "get_event_repository",
]
