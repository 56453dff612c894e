# ==============================================================================
# Popup View Abstract Base Class
# ==============================================================================
"""
The narrow interface between the trigger engine and the presentation layer.

Only the TriggerController and the CountdownTimer call it. Rendering and
styling live entirely on the other side of this interface.
"""

from abc import ABC, abstractmethod

from promopopup.core.models import PopupConfig


class PopupView(ABC):
    """Presentation callbacks driven by the popup engine."""

    @abstractmethod
    def show(self, config: PopupConfig) -> None:
        """Display the popup."""
        ...

    @abstractmethod
    def hide(self) -> None:
        """Remove the popup from the page."""
        ...

    @abstractmethod
    def show_validation_error(self, message: str) -> None:
        """Tell the visitor their input was rejected."""
        ...

    @abstractmethod
    def render_timer(self, days: int, hours: int, minutes: int, seconds: int) -> None:
        """Update the countdown display."""
        ...

    @abstractmethod
    def render_expired(self) -> None:
        """Replace the countdown with the terminal "offer expired" state."""
        ...

    @abstractmethod
    def render_prize(self, label: str, discount_code: str | None, rotation: float) -> None:
        """Reveal a wheel outcome; ``discount_code`` is None for a losing segment."""
        ...

    @abstractmethod
    def render_code(self, discount_code: str) -> None:
        """Reveal the discount code earned by an email or timer submission."""
        ...
