# ==============================================================================
# Core Domain
# ==============================================================================
"""
Domain models, errors and the pure computations of the popup engine.

The stateful engine pieces (session, trigger, countdown, emitter) are
imported from their own modules.
"""

from promopopup.core.aggregation import aggregate, aggregate_popup, subscriber_profiles
from promopopup.core.errors import (
    AggregationUnavailable,
    ConfigUnavailable,
    ConfigurationError,
    DiscountUnavailable,
    EmissionFailure,
    InvalidInput,
    PopupError,
)
from promopopup.core.models import (
    AnalyticsEvent,
    EventType,
    PopupConfig,
    Report,
    ReportWindow,
    parse_event,
    parse_popup_config,
)
from promopopup.core.prize import select_prize, target_angle

__all__ = [
    "AggregationUnavailable",
    "AnalyticsEvent",
    "ConfigUnavailable",
    "ConfigurationError",
    "DiscountUnavailable",
    "EmissionFailure",
    "EventType",
    "InvalidInput",
    "PopupConfig",
    "PopupError",
    "Report",
    "ReportWindow",
    "aggregate",
    "aggregate_popup",
    "parse_event",
    "parse_popup_config",
    "select_prize",
    "subscriber_profiles",
    "target_angle",
]
