"""
Post-checkout notifications.

Runs as a FastAPI background task after the order response is sent. Failures
are logged and dropped: the order is committed and paid for, so nothing about
a missed email may turn it into an error.
"""

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.models.event import Event
from boxoffice.models.order import Order
from boxoffice.services.interfaces.notifier import Notifier, OrderNotification

logger = get_logger(__name__)
settings = get_settings()


class LoggingNotifier(Notifier):
    """Writes the confirmation as a structured log line instead of sending mail."""

    async def send_order_confirmation(self, notification: OrderNotification) -> None:
        recipients = [
            email
            for email in (notification.customer_email, notification.organizer_email, notification.admin_email)
            if email
        ]
        logger.info(
            "order_confirmation_sent",
            order_id=notification.order_id,
            event_id=notification.event_id,
            event_title=notification.event_title,
            recipients=recipients,
            total_amount=str(notification.total_amount),
            tickets=len(notification.ticket_ids),
        )


def build_order_notification(order: Order, event: Event) -> OrderNotification:
    return OrderNotification(
        order_id=order.id,
        event_id=event.id,
        event_title=event.title,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        organizer_email=event.organizer_email,
        admin_email=settings.ADMIN_EMAIL,
        total_amount=order.total_amount,
        ticket_ids=[ticket.id for ticket in order.tickets],
    )


async def dispatch_order_confirmation(notifier: Notifier, notification: OrderNotification) -> None:
    try:
        await notifier.send_order_confirmation(notification)
    except Exception as e:
        logger.error(
            "order_notification_failed",
            order_id=notification.order_id,
            error=str(e),
            exc_info=True,
        )
