"""
Order notification interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass
class OrderNotification:
    order_id: int
    event_id: int
    event_title: str
    customer_name: str
    customer_email: str
    organizer_email: Optional[str]
    admin_email: Optional[str]
    total_amount: Decimal
    ticket_ids: list[str] = field(default_factory=list)


class Notifier(ABC):
    """
    Interface for post-checkout notifications.

    Delivery is best effort: the order is already committed when this runs,
    and a delivery failure must never surface to the buyer.
    """

    @abstractmethod
    async def send_order_confirmation(self, notification: OrderNotification) -> None:
        pass
