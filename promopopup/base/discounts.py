# ==============================================================================
# Discount Issuer Abstract Base Class
# ==============================================================================
"""
Port to the external discount-issuing collaborator.

The popup hands off a prize label and a recipient after a win or an email
capture and expects a redeemable code back, or DiscountUnavailable.
"""

from abc import ABC, abstractmethod


class DiscountIssuer(ABC):
    @abstractmethod
    def issue(self, prize_label: str, email: str) -> str:
        """
        Issue a redeemable code.

        Raises:
            DiscountUnavailable: If no code could be issued
        """
        ...
