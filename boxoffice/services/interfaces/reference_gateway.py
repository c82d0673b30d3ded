"""
Reference gateway - trusts the transaction reference.
"""

from decimal import Decimal

from boxoffice.services.interfaces.payment_gateway import PaymentGateway


class ReferencePaymentGateway(PaymentGateway):
    """
    Accept any non-empty reference.

    Use when:
    - Payment is captured by a hosted checkout before the order call
    - Local development and tests
    """

    async def confirm(self, transaction_id: str, amount: Decimal) -> bool:
        return bool(transaction_id and transaction_id.strip())
