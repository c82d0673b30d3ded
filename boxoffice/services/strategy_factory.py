"""
Collaborator factory.
Configures which payment gateway and notifier the order flow uses.
"""

from typing import Optional

from boxoffice.core.config import get_settings
from boxoffice.services.interfaces.notifier import Notifier
from boxoffice.services.interfaces.payment_gateway import PaymentGateway
from boxoffice.services.interfaces.reference_gateway import ReferencePaymentGateway
from boxoffice.services.notification_service import LoggingNotifier


def get_payment_gateway_strategy() -> PaymentGateway:
    """
    Get configured payment gateway.

    Selected via the PAYMENT_GATEWAY env var:
    - reference: trust the transaction reference (default)
    """
    gateway = get_settings().PAYMENT_GATEWAY

    if gateway == "reference":
        return ReferencePaymentGateway()
    raise ValueError(f"Unknown payment gateway: {gateway}")


# Singleton instances
_gateway: Optional[PaymentGateway] = None
_notifier: Optional[Notifier] = None


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = get_payment_gateway_strategy()
    return _gateway


def get_notifier() -> Notifier:
    """Get notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = LoggingNotifier()
    return _notifier
