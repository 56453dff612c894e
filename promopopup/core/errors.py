# ==============================================================================
# Popup Error Taxonomy
# ==============================================================================
"""
Typed failures raised by the popup engine and the analytics layer.

Best-effort paths (config fetch, event emission) catch these and degrade.
Correctness paths (prize selection, rate arithmetic, report parameters)
let them propagate.
"""


class PopupError(Exception):
    """Base class for all promopopup errors."""


class ConfigUnavailable(PopupError):
    """Popup config could not be fetched or has an unknown shape."""


class ConfigurationError(PopupError):
    """Popup config violates an invariant (e.g. a wheel with no segments)."""


class InvalidInput(PopupError):
    """Input rejected at a boundary.

    ``user_message`` is safe to show to the visitor.
    """

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class EmissionFailure(PopupError):
    """An analytics event could not be delivered."""


class AggregationUnavailable(PopupError):
    """The event log could not be read for reporting.

    Distinct from an empty log, which produces a valid all-zero report.
    """


class DiscountUnavailable(PopupError):
    """The discount issuer could not produce a code."""
