"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .notifier import Notifier, OrderNotification
from .payment_gateway import PaymentGateway
from .reference_gateway import ReferencePaymentGateway

__all__ = ['Notifier', 'OrderNotification', 'PaymentGateway', 'ReferencePaymentGateway']
