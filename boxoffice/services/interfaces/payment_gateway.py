"""
Payment gateway interface.
Checkout calls confirm() before any seat is sold, so a failed or fake payment
never reaches the inventory.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class PaymentGateway(ABC):
    """
    Interface for payment confirmation.

    Implementations:
    - ReferencePaymentGateway: trusts any non-empty reference (capture happens upstream)
    - Provider-backed gateways: look the transaction up with the provider
    """

    @abstractmethod
    async def confirm(self, transaction_id: str, amount: Decimal) -> bool:
        """
        Check that a payment succeeded.

        Args:
            transaction_id: Provider reference returned to the client
            amount: Total the order will be charged

        Returns:
            True if the payment is confirmed for this amount
        """
        pass
