# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the ports of the popup engine.

Core logic depends only on these; infrastructure/ provides the adapters.
"""

from promopopup.base.cache import Cache
from promopopup.base.clock import Clock
from promopopup.base.discounts import DiscountIssuer
from promopopup.base.repositories import EventRepository
from promopopup.base.scheduler import Scheduler
from promopopup.base.transport import EventTransport
from promopopup.base.view import PopupView

__all__ = [
    "Cache",
    "Clock",
    "DiscountIssuer",
    "EventRepository",
    "EventTransport",
    "PopupView",
    "Scheduler",
]
